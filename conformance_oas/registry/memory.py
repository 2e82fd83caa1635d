"""In-memory registry built from loaded FHIR JSON resources."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from ..model.decode import decode_resource, decode_value_set_codes
from ..model.definitions import (
    MessageDefinition,
    OperationDefinition,
    SearchParameterDefinition,
    StructureDefinitionSummary,
    ValueSetCode,
    ValueSetSummary,
)

logger = logging.getLogger("conformance_oas.registry.memory")

_GENERIC_BASES = frozenset({"Resource", "DomainResource"})
_INDEXES = (
    "_search_by_url",
    "_search_by_code",
    "_generic_search",
    "_operations",
    "_messages",
    "_structures",
    "_value_sets",
    "_value_set_codes",
    "_examples",
    "_default_profiles",
)


class InMemoryRegistry:
    """Index definitional resources and example payloads by their identifiers.

    Implements the definition, search-parameter and value-set protocols so a
    single instance can back a compile. The first resource loaded for an
    identifier wins; later duplicates are ignored.
    """

    def __init__(
        self,
        resources: Iterable[Mapping[str, Any]] = (),
        *,
        default_profiles: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._search_by_url: Dict[str, SearchParameterDefinition] = {}
        self._search_by_code: Dict[Tuple[str, str], SearchParameterDefinition] = {}
        self._generic_search: Dict[str, SearchParameterDefinition] = {}
        self._operations: Dict[str, OperationDefinition] = {}
        self._messages: Dict[str, MessageDefinition] = {}
        self._structures: Dict[str, StructureDefinitionSummary] = {}
        self._value_sets: Dict[str, ValueSetSummary] = {}
        self._value_set_codes: Dict[str, List[ValueSetCode]] = {}
        self._examples: Dict[str, Mapping[str, Any]] = {}
        self._default_profiles: Dict[str, str] = dict(default_profiles or {})
        for resource in resources:
            self.add(resource)

    # ------------------------------------------------------------------
    # loading
    # ------------------------------------------------------------------

    def add(self, resource: Mapping[str, Any]) -> None:
        """Index *resource*, unpacking Bundles entry by entry."""

        if not isinstance(resource, Mapping):
            raise TypeError("FHIR resources must be JSON objects")
        resource_type = resource.get("resourceType")
        if resource_type == "Bundle":
            for entry in resource.get("entry") or []:
                inner = entry.get("resource") if isinstance(entry, Mapping) else None
                if isinstance(inner, Mapping):
                    self.add(inner)
            self._add_example(resource)
            return

        definition = decode_resource(resource)
        if isinstance(definition, SearchParameterDefinition):
            self._add_search_parameter(definition)
        elif isinstance(definition, OperationDefinition) and definition.url:
            self._operations.setdefault(definition.url, definition)
        elif isinstance(definition, MessageDefinition):
            self._messages.setdefault(definition.url, definition)
        elif isinstance(definition, StructureDefinitionSummary):
            self._structures.setdefault(definition.url, definition)
            if definition.type and resource.get("derivation") == "constraint":
                self._default_profiles.setdefault(definition.type, definition.url)
        elif isinstance(definition, ValueSetSummary):
            self._value_sets.setdefault(definition.url, definition)
            self._value_set_codes.setdefault(definition.url, decode_value_set_codes(resource))
        self._add_example(resource)

    def _add_search_parameter(self, definition: SearchParameterDefinition) -> None:
        if definition.url:
            self._search_by_url.setdefault(definition.url, definition)
        for base in definition.base:
            if base in _GENERIC_BASES:
                self._generic_search.setdefault(definition.code, definition)
            else:
                self._search_by_code.setdefault((base, definition.code), definition)

    def _add_example(self, resource: Mapping[str, Any]) -> None:
        resource_type = resource.get("resourceType")
        resource_id = resource.get("id")
        if isinstance(resource_type, str) and isinstance(resource_id, str):
            self._examples.setdefault(f"{resource_type}/{resource_id}", resource)

    def load_paths(self, paths: Iterable[Path | str]) -> int:
        """Load JSON files and directories of JSON files; return the file count."""

        count = 0
        for raw in paths:
            path = Path(raw)
            files = sorted(path.rglob("*.json")) if path.is_dir() else [path]
            for file in files:
                with file.open("r", encoding="utf-8") as handle:
                    payload = json.load(handle)
                self.add(payload)
                count += 1
        logger.info(
            "registry.load",
            extra={
                "files": count,
                "search_parameters": len(self._search_by_url),
                "operations": len(self._operations),
                "examples": len(self._examples),
            },
        )
        return count

    @classmethod
    def from_paths(cls, paths: Iterable[Path | str]) -> "InMemoryRegistry":
        registry = cls()
        registry.load_paths(paths)
        return registry

    def layered(self, resources: Iterable[Mapping[str, Any]]) -> "InMemoryRegistry":
        """Return a new registry where *resources* take precedence over this one."""

        layered = InMemoryRegistry(resources)
        for name in _INDEXES:
            target = getattr(layered, name)
            for key, value in getattr(self, name).items():
                target.setdefault(key, value)
        return layered

    # ------------------------------------------------------------------
    # SearchParameterRegistry
    # ------------------------------------------------------------------

    def search_parameter(
        self, resource_type: str, code: str
    ) -> Optional[SearchParameterDefinition]:
        found = self._search_by_code.get((resource_type, code))
        if found is not None:
            return found
        return self._generic_search.get(code)

    def search_parameter_by_url(self, url: str) -> Optional[SearchParameterDefinition]:
        return self._search_by_url.get(url)

    # ------------------------------------------------------------------
    # DefinitionRegistry
    # ------------------------------------------------------------------

    def operation_definition(self, url: str) -> Optional[OperationDefinition]:
        return self._operations.get(url)

    def message_definition(self, url: str) -> Optional[MessageDefinition]:
        return self._messages.get(url)

    def structure_definition(self, url: str) -> Optional[StructureDefinitionSummary]:
        return self._structures.get(url)

    def default_profile(self, resource_type: str) -> Optional[StructureDefinitionSummary]:
        url = self._default_profiles.get(resource_type)
        if url is None:
            return None
        return self._structures.get(url) or StructureDefinitionSummary(url=url, type=resource_type)

    def example(self, reference: str) -> Optional[Mapping[str, Any]]:
        """Return the example payload for a ``Type/id`` or absolute reference."""

        found = self._examples.get(reference)
        if found is not None:
            return found
        parts = [part for part in reference.rstrip("/").split("/") if part]
        if len(parts) >= 2:
            return self._examples.get(f"{parts[-2]}/{parts[-1]}")
        return None

    # ------------------------------------------------------------------
    # ValueSetExpander
    # ------------------------------------------------------------------

    def value_set(self, url: str) -> Optional[ValueSetSummary]:
        return self._value_sets.get(url)

    def expand(self, url: str) -> List[ValueSetCode]:
        return list(self._value_set_codes.get(url, ()))


__all__ = ["InMemoryRegistry"]
