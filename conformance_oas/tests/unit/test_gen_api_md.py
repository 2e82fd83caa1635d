"""Tests for scripts.gen_api_md utilities."""

import json

from conformance_oas.features.compiler import compile_capability_statement
from conformance_oas.features.context import CompileOptions, Registries
from conformance_oas.tests.fixtures import fhir
from scripts.gen_api_md import load_openapi, render_api, schema_summary


def _document() -> dict:
    return compile_capability_statement(
        fhir.capability_statement(),
        Registries.from_registry(fhir.registry()),
        CompileOptions(enhance=False, example_base_url=fhir.BASE_URL),
    )


def test_schema_summary_labels() -> None:
    assert schema_summary({"$ref": "#/components/schemas/Bundle"}) == "Bundle"
    assert schema_summary({"type": "array", "items": {"type": "string"}}) == "array<string>"
    assert schema_summary({"type": "string", "format": "date"}) == "string (date)"
    assert schema_summary(None) == ""


def test_render_api_groups_operations_by_tag() -> None:
    markdown = render_api(_document(), "capability.json")
    assert markdown.startswith("# Example FHIR Server API reference")
    assert "## Patient" in markdown
    assert "### GET `/Patient/{id}`" in markdown
    assert "| `name` | query | string | No |" in markdown
    assert "- `200` Success (Patient)" in markdown
    assert markdown.index("## System Level Operations") < markdown.index("## Patient")


def test_load_openapi_compiles_capability_statements(tmp_path) -> None:
    source = tmp_path / "capability.json"
    source.write_text(json.dumps(fhir.capability_statement()), encoding="utf-8")
    document = load_openapi(str(source))
    assert document["openapi"] == "3.0.1"
    assert "/Patient/{id}" in document["paths"]


def test_load_openapi_passes_documents_through(tmp_path) -> None:
    source = tmp_path / "openapi.json"
    source.write_text(json.dumps({"openapi": "3.0.1", "paths": {}}), encoding="utf-8")
    assert load_openapi(source.as_uri()) == {"openapi": "3.0.1", "paths": {}}
