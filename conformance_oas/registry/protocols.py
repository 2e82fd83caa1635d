"""Collaborator interfaces consulted by the compiler."""
from __future__ import annotations

from typing import Any, List, Mapping, Optional, Protocol

from ..model.definitions import (
    MessageDefinition,
    OperationDefinition,
    SearchParameterDefinition,
    StructureDefinitionSummary,
    ValueSetCode,
    ValueSetSummary,
)


class DefinitionRegistry(Protocol):
    """Resolve canonical identifiers to operation, message and structure definitions."""

    def operation_definition(self, url: str) -> Optional[OperationDefinition]:
        ...

    def message_definition(self, url: str) -> Optional[MessageDefinition]:
        ...

    def structure_definition(self, url: str) -> Optional[StructureDefinitionSummary]:
        ...

    def default_profile(self, resource_type: str) -> Optional[StructureDefinitionSummary]:
        ...

    def example(self, reference: str) -> Optional[Mapping[str, Any]]:
        ...


class SearchParameterRegistry(Protocol):
    """Resolve search parameters by (resource type, code) or by canonical URL."""

    def search_parameter(
        self, resource_type: str, code: str
    ) -> Optional[SearchParameterDefinition]:
        ...

    def search_parameter_by_url(self, url: str) -> Optional[SearchParameterDefinition]:
        ...


class ValueSetExpander(Protocol):
    """Expand coded value sets into literal codes."""

    def value_set(self, url: str) -> Optional[ValueSetSummary]:
        ...

    def expand(self, url: str) -> List[ValueSetCode]:
        ...


__all__ = ["DefinitionRegistry", "SearchParameterRegistry", "ValueSetExpander"]
