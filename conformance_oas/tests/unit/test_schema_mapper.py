from __future__ import annotations

import pytest

from conformance_oas.features.schema_mapper import (
    DATE_PATTERN,
    NON_EMPTY_PATTERN,
    NUMBER_PATTERN,
    REFERENCE_NOTE,
    TOKEN_NOTE,
    map_type,
)


def test_token_maps_to_array_of_token_strings() -> None:
    mapped = map_type("token")
    assert mapped.schema["type"] == "array"
    assert mapped.schema["format"] == "token"
    assert mapped.schema["items"]["type"] == "string"
    assert mapped.note == TOKEN_NOTE
    assert mapped.explode is False


def test_date_is_exploded_array_with_pattern() -> None:
    mapped = map_type("date")
    assert mapped.schema["type"] == "array"
    assert mapped.schema["items"]["pattern"] == DATE_PATTERN
    assert "\n" not in DATE_PATTERN
    assert mapped.explode is True


def test_reference_string_and_note() -> None:
    mapped = map_type("reference")
    assert mapped.schema == {"type": "string", "format": "reference", "description": REFERENCE_NOTE}
    assert mapped.note == REFERENCE_NOTE


@pytest.mark.parametrize(
    ("tag", "pattern"),
    [("number", NUMBER_PATTERN), ("string", NON_EMPTY_PATTERN)],
)
def test_patterned_strings(tag: str, pattern: str) -> None:
    mapped = map_type(tag)
    assert mapped.schema == {"type": "string", "pattern": pattern}
    assert mapped.note is None


def test_unknown_types_fall_back_to_string_with_format() -> None:
    assert map_type("quantity").schema == {"type": "string", "format": "quantity"}
    assert map_type(None).schema == {"type": "string", "format": "string"}


def test_mapping_is_case_insensitive_and_fresh() -> None:
    first = map_type("TOKEN")
    first.schema["items"]["enum"] = ["x"]
    assert "enum" not in map_type("token").schema["items"]
