"""Map FHIR search parameter types onto OpenAPI schema shapes."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

DATE_PATTERN = (
    "([0-9]([0-9]([0-9][1-9]|[1-9]0)|[1-9]00)|[1-9]000)"
    "(-(0[1-9]|1[0-2])(-(0[1-9]|[1-2][0-9]|3[0-1]))?)?"
)
NUMBER_PATTERN = "[0]|[-+]?[1-9][0-9]*"
NON_EMPTY_PATTERN = "^[\\s\\S]+$"

TOKEN_NOTE = "token format: [system]|[code],[code],[system]"
REFERENCE_NOTE = "reference format: [type]/[id] or [id] or [uri]"
DATE_NOTE = "See FHIR documentation for more details."


@dataclass(frozen=True, slots=True)
class MappedSchema:
    """A schema shape plus the documentation fragment that goes with it."""

    schema: Dict[str, Any]
    note: Optional[str] = None
    explode: bool = False


def map_type(type_tag: Optional[str]) -> MappedSchema:
    """Return the schema for a search parameter *type_tag*.

    Unknown tags fall back to a string whose ``format`` is the tag itself,
    so every declared parameter receives a schema.
    """

    tag = (type_tag or "").lower()
    if tag == "token":
        return MappedSchema(
            schema={
                "type": "array",
                "format": "token",
                "items": {"type": "string", "format": "token", "description": TOKEN_NOTE},
            },
            note=TOKEN_NOTE,
        )
    if tag == "reference":
        return MappedSchema(
            schema={"type": "string", "format": "reference", "description": REFERENCE_NOTE},
            note=REFERENCE_NOTE,
        )
    if tag == "date":
        return MappedSchema(
            schema={
                "type": "array",
                "format": "date",
                "items": {"type": "string", "format": "date", "pattern": DATE_PATTERN},
            },
            note=DATE_NOTE,
            explode=True,
        )
    if tag == "number":
        return MappedSchema(schema={"type": "string", "pattern": NUMBER_PATTERN})
    if tag == "string":
        return MappedSchema(schema={"type": "string", "pattern": NON_EMPTY_PATTERN})
    return MappedSchema(schema={"type": "string", "format": type_tag or "string"})


__all__ = [
    "DATE_PATTERN",
    "MappedSchema",
    "NON_EMPTY_PATTERN",
    "NUMBER_PATTERN",
    "REFERENCE_NOTE",
    "TOKEN_NOTE",
    "map_type",
]
