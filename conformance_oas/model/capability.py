"""Typed view of a CapabilityStatement, immutable for the duration of a compile."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Tuple

from .extensions import Expectation, Extension, all_of

# Resource interaction codes
SEARCH_TYPE = "search-type"
READ = "read"
VREAD = "vread"
UPDATE = "update"
PATCH = "patch"
DELETE = "delete"
CREATE = "create"
HISTORY_TYPE = "history-type"
HISTORY_INSTANCE = "history-instance"

# System interaction codes
TRANSACTION = "transaction"
BATCH = "batch"
HISTORY_SYSTEM = "history-system"
SEARCH_SYSTEM = "search-system"


@dataclass(frozen=True, slots=True)
class Contact:
    name: Optional[str] = None
    email: Optional[str] = None
    url: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Interaction:
    code: str
    documentation: Optional[str] = None
    extensions: Tuple[Extension, ...] = ()

    @property
    def expectations(self) -> Tuple[str, ...]:
        return tuple(item.code for item in all_of(self.extensions, Expectation))


@dataclass(frozen=True, slots=True)
class SearchParameterDeclaration:
    name: str
    definition: Optional[str] = None
    type: Optional[str] = None
    documentation: Optional[str] = None
    extensions: Tuple[Extension, ...] = ()

    @property
    def segments(self) -> Tuple[str, ...]:
        return tuple(self.name.split("."))


@dataclass(frozen=True, slots=True)
class OperationDeclaration:
    name: str
    definition: Optional[str] = None
    documentation: Optional[str] = None
    extensions: Tuple[Extension, ...] = ()


@dataclass(frozen=True, slots=True)
class ResourceCapability:
    type: str
    profile: Optional[str] = None
    documentation: Optional[str] = None
    interactions: Tuple[Interaction, ...] = ()
    search_params: Tuple[SearchParameterDeclaration, ...] = ()
    operations: Tuple[OperationDeclaration, ...] = ()
    search_include: Tuple[str, ...] = ()
    search_rev_include: Tuple[str, ...] = ()
    extensions: Tuple[Extension, ...] = ()

    def supports(self, code: str) -> bool:
        return any(interaction.code == code for interaction in self.interactions)


@dataclass(frozen=True, slots=True)
class SupportedMessage:
    definition: Optional[str] = None
    mode: Optional[str] = None
    extensions: Tuple[Extension, ...] = ()


@dataclass(frozen=True, slots=True)
class MessagingEntry:
    documentation: Optional[str] = None
    supported_messages: Tuple[SupportedMessage, ...] = ()


@dataclass(frozen=True, slots=True)
class ConformanceDescription:
    """Root input of a compile."""

    title: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None
    software_name: Optional[str] = None
    software_version: Optional[str] = None
    implementation_url: Optional[str] = None
    contacts: Tuple[Contact, ...] = ()
    formats: Tuple[str, ...] = ()
    has_security: bool = False
    interactions: Tuple[Interaction, ...] = ()
    operations: Tuple[OperationDeclaration, ...] = ()
    resources: Tuple[ResourceCapability, ...] = ()
    messaging: Tuple[MessagingEntry, ...] = ()
    source: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def xml_enabled(self) -> bool:
        return any("xml" in code for code in self.formats)

    def supports_system(self, *codes: str) -> bool:
        return any(interaction.code in codes for interaction in self.interactions)


__all__ = [
    "BATCH",
    "CREATE",
    "ConformanceDescription",
    "Contact",
    "DELETE",
    "HISTORY_INSTANCE",
    "HISTORY_SYSTEM",
    "HISTORY_TYPE",
    "Interaction",
    "MessagingEntry",
    "OperationDeclaration",
    "PATCH",
    "READ",
    "ResourceCapability",
    "SEARCH_SYSTEM",
    "SEARCH_TYPE",
    "SearchParameterDeclaration",
    "SupportedMessage",
    "TRANSACTION",
    "UPDATE",
    "VREAD",
]
