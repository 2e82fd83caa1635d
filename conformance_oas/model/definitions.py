"""Typed external definitions resolved through the registries."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True, slots=True)
class SearchParameterDefinition:
    code: str
    type: str
    url: Optional[str] = None
    base: Tuple[str, ...] = ()
    expression: Optional[str] = None
    description: Optional[str] = None
    target: Tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class OperationParameter:
    name: str
    use: str = "in"
    min: int = 0
    max: str = "1"
    type: Optional[str] = None
    documentation: Optional[str] = None
    target_profile: Tuple[str, ...] = ()
    examples: Tuple[str, ...] = ()
    parts: Tuple["OperationParameter", ...] = ()


@dataclass(frozen=True, slots=True)
class OperationDefinition:
    code: str
    url: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    comment: Optional[str] = None
    affects_state: bool = False
    system: bool = False
    type: bool = False
    instance: bool = False
    parameters: Tuple[OperationParameter, ...] = ()

    def input_parameters(self) -> Tuple[OperationParameter, ...]:
        return tuple(parameter for parameter in self.parameters if parameter.use != "out")


@dataclass(frozen=True, slots=True)
class MessageFocus:
    code: str
    profile: Optional[str] = None
    min: int = 0
    max: str = "1"


@dataclass(frozen=True, slots=True)
class MessageDefinition:
    url: str
    description: Optional[str] = None
    purpose: Optional[str] = None
    event_code: Optional[str] = None
    focus: Tuple[MessageFocus, ...] = ()


@dataclass(frozen=True, slots=True)
class StructureDefinitionSummary:
    url: str
    title: Optional[str] = None
    type: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ValueSetSummary:
    url: str
    name: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ValueSetCode:
    code: str
    system: Optional[str] = None
    display: Optional[str] = None


__all__ = [
    "MessageDefinition",
    "MessageFocus",
    "OperationDefinition",
    "OperationParameter",
    "SearchParameterDefinition",
    "StructureDefinitionSummary",
    "ValueSetCode",
    "ValueSetSummary",
]
