from __future__ import annotations

import pytest

from conformance_oas.features.search_chain import (
    CHAINED_NOTE,
    NON_REFERENCE_CHAIN_CAUTION,
    UNKNOWN_PARAMETER_CAUTION,
    resolve_search_parameter,
)
from conformance_oas.model.capability import SearchParameterDeclaration
from conformance_oas.model.extensions import Expectation
from conformance_oas.registry.memory import InMemoryRegistry
from conformance_oas.tests.fixtures import fhir


@pytest.fixture()
def registry() -> InMemoryRegistry:
    return fhir.registry()


def _declare(name: str, **kwargs) -> SearchParameterDeclaration:
    return SearchParameterDeclaration(name=name, **kwargs)


def test_simple_parameter_row_and_schema(registry: InMemoryRegistry) -> None:
    resolved = resolve_search_parameter(
        _declare("name", extensions=(Expectation("SHALL"),)), "Patient", registry
    )
    assert resolved.resolved
    assert resolved.chain is None
    assert resolved.schema["pattern"] == "^[\\s\\S]+$"
    rendered = resolved.documentation().render()
    assert "| **SHALL** | [name](https://www.hl7.org/fhir/R4/Patient.html#search) " in rendered
    assert "[string](https://www.hl7.org/fhir/R4/search.html#string)" in rendered


def test_expression_and_description_narrowed_to_resource_type(registry: InMemoryRegistry) -> None:
    resolved = resolve_search_parameter(_declare("birthdate"), "Patient", registry)
    assert resolved.definition.expression == "Patient.birthDate"
    assert resolved.description.startswith("[Patient](patient.html)")
    assert resolved.explode is True
    assert "See FHIR documentation for more details." in resolved.documentation().render()


def test_narrowing_does_not_touch_registry_entry(registry: InMemoryRegistry) -> None:
    resolve_search_parameter(_declare("birthdate"), "Patient", registry)
    stored = registry.search_parameter("Patient", "birthdate")
    assert "|" in stored.expression


def test_chain_tail_matches_direct_resolution(registry: InMemoryRegistry) -> None:
    chained = resolve_search_parameter(_declare("subject:Patient.name"), "Observation", registry)
    direct = resolve_search_parameter(_declare("name"), "Patient", registry)
    assert chained.chain == direct
    assert chained.schema == direct.schema
    assert chained.definition.expression == "Observation.subject.where(resolve() is Patient)"
    rendered = chained.documentation().render()
    assert CHAINED_NOTE in rendered
    assert rendered.index("[subject]") < rendered.index("[name]")


def test_reference_note_only_on_leaf(registry: InMemoryRegistry) -> None:
    chained = resolve_search_parameter(_declare("organization.name"), "Patient", registry)
    assert chained.chain is not None
    assert chained.chain.resource_type == "Organization"
    assert "reference format" not in chained.documentation().render()


def test_chain_target_is_last_non_group_target(registry: InMemoryRegistry) -> None:
    chained = resolve_search_parameter(_declare("subject.code"), "Observation", registry)
    # Observation.subject targets Group, Device, Patient, Location.
    assert chained.chain.resource_type == "Location"
    assert not chained.chain.resolved


def test_identifier_modifier(registry: InMemoryRegistry) -> None:
    resolved = resolve_search_parameter(_declare("subject:identifier"), "Observation", registry)
    assert resolved.definition.code == "subject:identifier"
    assert resolved.type == "token"
    assert resolved.definition.expression == "Observation.subject.identifier"
    assert resolved.schema["format"] == "token"


def test_chain_through_non_reference_is_flagged(registry: InMemoryRegistry) -> None:
    resolved = resolve_search_parameter(_declare("name.family"), "Patient", registry)
    assert resolved.chain is None
    assert NON_REFERENCE_CHAIN_CAUTION in resolved.documentation().render()


def test_chain_depth_is_bounded(registry: InMemoryRegistry) -> None:
    resolved = resolve_search_parameter(
        _declare("subject:Patient.organization.name"), "Observation", registry, max_depth=2
    )
    assert resolved.chain is not None
    assert resolved.chain.chain is None
    assert "deeper than 2" in resolved.documentation().render()


def test_unknown_parameter_gets_caution_and_string_schema(registry: InMemoryRegistry) -> None:
    resolved = resolve_search_parameter(_declare("nonsense"), "Patient", registry)
    assert not resolved.resolved
    assert resolved.schema == {"type": "string"}
    assert UNKNOWN_PARAMETER_CAUTION in resolved.documentation().render()


def test_generic_parameter_resolves_for_any_type(registry: InMemoryRegistry) -> None:
    resolved = resolve_search_parameter(_declare("_id"), "Observation", registry)
    assert resolved.resolved
    assert resolved.definition.expression == "Resource.id"


def test_declared_definition_url_wins(registry: InMemoryRegistry) -> None:
    declaration = _declare(
        "pat", definition="http://hl7.org/fhir/SearchParameter/clinical-patient"
    )
    resolved = resolve_search_parameter(declaration, "Observation", registry)
    assert resolved.definition.expression == "Observation.subject.where(resolve() is Patient)"


def test_expression_pipes_are_escaped_when_not_narrowed() -> None:
    registry = InMemoryRegistry(
        [fhir.search_parameter("alias", "string", ["Patient"], "name.given | name.family")]
    )
    resolved = resolve_search_parameter(_declare("alias"), "Patient", registry)
    assert resolved.definition.expression == "name.given | name.family"
    assert resolved.expression == "name.given &#124; name.family"
