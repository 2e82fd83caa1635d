"""The OpenAPI document under construction."""
from __future__ import annotations

import logging
from typing import Any, Dict, Generic, Iterator, List, Optional, Tuple, TypeVar

from ..utils.errors import DuplicateOperationError
from ..utils.logging import increment_counter

logger = logging.getLogger("conformance_oas.features.document")

OPENAPI_VERSION = "3.0.1"
HTTP_METHODS: Tuple[str, ...] = ("get", "put", "post", "delete", "patch")

K = TypeVar("K")
V = TypeVar("V")


class FirstWriteWinsMap(Generic[K, V]):
    """Ordered mapping whose entries can be inserted once and never replaced."""

    def __init__(self) -> None:
        self._items: Dict[K, V] = {}

    def insert_if_absent(self, key: K, value: V) -> bool:
        """Store *value* unless *key* is present. Returns True when stored."""

        if key in self._items:
            return False
        self._items[key] = value
        return True

    def get(self, key: K) -> Optional[V]:
        return self._items.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __iter__(self) -> Iterator[K]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def items(self) -> List[Tuple[K, V]]:
        return list(self._items.items())

    def values(self) -> List[V]:
        return list(self._items.values())


class SpecDocument:
    """OpenAPI document built in a single pass.

    Tags and component schemas are first-writer-wins. Each path holds at
    most one operation per HTTP method; a second registration raises
    :class:`DuplicateOperationError`.
    """

    def __init__(self) -> None:
        self.info: Dict[str, Any] = {}
        self.external_docs: Dict[str, Any] = {}
        self.servers: List[Dict[str, Any]] = []
        self.tags: FirstWriteWinsMap[str, Dict[str, Any]] = FirstWriteWinsMap()
        self.schemas: FirstWriteWinsMap[str, Dict[str, Any]] = FirstWriteWinsMap()
        self.paths: Dict[str, Dict[str, Dict[str, Any]]] = {}

    def add_tag(self, name: str, description: Optional[str] = None) -> bool:
        tag: Dict[str, Any] = {"name": name}
        if description:
            tag["description"] = description
        return self.tags.insert_if_absent(name, tag)

    def add_schema(self, name: str, schema: Dict[str, Any]) -> bool:
        added = self.schemas.insert_if_absent(name, schema)
        if added:
            increment_counter("schemas.registered")
        return added

    def has_schema(self, name: str) -> bool:
        return name in self.schemas

    def operation(self, path: str, method: str) -> Dict[str, Any]:
        """Register and return an empty operation for *path* and *method*."""

        key = method.lower()
        if key not in HTTP_METHODS:
            raise ValueError(f"Unsupported HTTP method for operation registration: {method}")
        item = self.paths.setdefault(path, {})
        if key in item:
            raise DuplicateOperationError(path, key)
        operation: Dict[str, Any] = {}
        item[key] = operation
        increment_counter("operations.registered")
        logger.debug("document.operation", extra={"path": path, "method": key.upper()})
        return operation

    def get_operation(self, path: str, method: str) -> Optional[Dict[str, Any]]:
        return self.paths.get(path, {}).get(method.lower())

    def to_dict(self) -> Dict[str, Any]:
        document: Dict[str, Any] = {"openapi": OPENAPI_VERSION, "info": dict(self.info)}
        if self.external_docs:
            document["externalDocs"] = dict(self.external_docs)
        document["servers"] = list(self.servers)
        document["tags"] = self.tags.values()
        document["paths"] = {
            path: {method: item[method] for method in HTTP_METHODS if method in item}
            for path, item in self.paths.items()
        }
        document["components"] = {"schemas": dict(self.schemas.items())}
        return document


__all__ = ["FirstWriteWinsMap", "HTTP_METHODS", "OPENAPI_VERSION", "SpecDocument"]
