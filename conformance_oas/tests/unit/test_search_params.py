from __future__ import annotations

from typing import Any, Dict, List

import pytest

from conformance_oas.features.context import CompileContext, CompileOptions
from conformance_oas.features.search_chain import SEARCH_TABLE_HEADER
from conformance_oas.features.search_params import (
    INCLUDE_EXAMPLE,
    ITERATE_DESCRIPTION,
    query_parameters,
)
from conformance_oas.model.capability import ResourceCapability
from conformance_oas.registry.memory import InMemoryRegistry
from conformance_oas.tests.fixtures import fhir


@pytest.fixture()
def ctx() -> CompileContext:
    return fhir.make_context()


def _patient(ctx: CompileContext) -> ResourceCapability:
    return next(resource for resource in ctx.conformance.resources if resource.type == "Patient")


def _by_name(parameters: List[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    return {parameter["name"]: parameter for parameter in parameters}


def test_parameters_follow_declaration_order(ctx: CompileContext) -> None:
    names = [parameter["name"] for parameter in query_parameters(ctx, _patient(ctx))]
    assert names == ["name", "birthdate", "identifier", "gender", "_include", "_include:iterate"]


def test_every_parameter_is_form_style_query(ctx: CompileContext) -> None:
    for parameter in query_parameters(ctx, _patient(ctx)):
        assert parameter["in"] == "query"
        assert parameter["style"] == "form"
        assert "schema" in parameter


def test_date_parameter_explodes(ctx: CompileContext) -> None:
    birthdate = _by_name(query_parameters(ctx, _patient(ctx)))["birthdate"]
    assert birthdate["explode"] is True
    assert birthdate["schema"]["type"] == "array"
    assert birthdate["description"].startswith("[Patient](patient.html)")
    assert SEARCH_TABLE_HEADER in birthdate["description"]


def test_declared_documentation_replaces_definition_description(ctx: CompileContext) -> None:
    identifier = _by_name(query_parameters(ctx, _patient(ctx)))["identifier"]
    assert identifier["description"].startswith("NHS Number")
    assert identifier["explode"] is False


def test_include_values_are_partitioned(ctx: CompileContext) -> None:
    parameters = _by_name(query_parameters(ctx, _patient(ctx)))
    include = parameters["_include"]
    assert include["explode"] is True
    assert include["schema"]["items"]["enum"] == ["Patient:organization", "*"]
    assert include["schema"]["items"]["example"] == INCLUDE_EXAMPLE
    assert "**FHIR ERROR _include bad format" in include["description"]

    iterate = parameters["_include:iterate"]
    assert iterate["description"] == ITERATE_DESCRIPTION
    assert iterate["schema"]["items"]["enum"] == ["Observation:patient"]


def test_include_iterate_omitted_without_foreign_values(ctx: CompileContext) -> None:
    statement = fhir.capability_statement()
    patient = statement["rest"][0]["resource"][0]
    patient["searchInclude"] = ["Patient:organization", "Patient:unknown"]
    local = fhir.make_context(statement)
    parameters = _by_name(query_parameters(local, local.conformance.resources[0]))
    assert "_include:iterate" not in parameters
    assert parameters["_include"]["schema"]["items"]["enum"] == [
        "Patient:organization",
        "Patient:unknown",
    ]
    assert "searchParameter unknown does not exist for Patient" in parameters["_include"]["description"]


def test_revinclude_lists_valid_values(ctx: CompileContext) -> None:
    statement = fhir.capability_statement()
    patient = statement["rest"][0]["resource"][0]
    patient["searchParam"].append({"name": "_revinclude", "type": "special"})
    patient["searchRevInclude"] = ["Observation:subject", "broken"]
    local = fhir.make_context(statement)
    revinclude = _by_name(query_parameters(local, local.conformance.resources[0]))["_revinclude"]
    assert revinclude["schema"]["items"]["enum"] == ["Observation:subject"]
    assert "**FHIR ERROR _revinclude broken format" in revinclude["description"]


def test_constraints_and_value_set_enum(ctx: CompileContext) -> None:
    gender = _by_name(query_parameters(ctx, _patient(ctx)))["gender"]
    assert gender["required"] is True
    assert gender["schema"]["items"]["enum"] == [
        "http://hl7.org/fhir/administrative-gender|male",
        "http://hl7.org/fhir/administrative-gender|female",
    ]
    assert (
        f"A code from FHIR ValueSet [AdministrativeGender]({fhir.GENDER_VALUE_SET})"
        in gender["description"]
    )


def test_unresolved_value_set_leaves_parameter_untouched() -> None:
    ctx = fhir.make_context(registry_=InMemoryRegistry(fhir.SEARCH_PARAMETERS))
    gender = _by_name(query_parameters(ctx, _patient(ctx)))["gender"]
    assert gender["required"] is True
    assert "enum" not in gender["schema"]["items"]
    assert "ValueSet" not in gender["description"]


def test_chained_parameter_uses_leaf_schema(ctx: CompileContext) -> None:
    observation = ctx.conformance.resources[1]
    parameters = _by_name(query_parameters(ctx, observation))
    chained = parameters["subject:Patient.name"]
    assert chained["schema"] == {"type": "string", "pattern": "^[\\s\\S]+$"}
    assert "Chained search parameter" in chained["description"]


def test_parameter_schemas_are_not_shared(ctx: CompileContext) -> None:
    first = _by_name(query_parameters(ctx, _patient(ctx)))["identifier"]
    first["schema"]["items"]["enum"] = ["mutated"]
    second = _by_name(query_parameters(ctx, _patient(ctx)))["identifier"]
    assert "enum" not in second["schema"]["items"]


def test_wildcard_include_values_skip_registry_lookup() -> None:
    statement = fhir.capability_statement()
    patient = statement["rest"][0]["resource"][0]
    patient["searchInclude"] = ["*:*", "Patient:organization"]
    local = fhir.make_context(statement)
    include = _by_name(query_parameters(local, local.conformance.resources[0]))["_include"]
    assert include["schema"]["items"]["enum"] == ["*:*", "Patient:organization"]
    assert "FHIR ERROR" not in include["description"]


def test_enhanced_description_shows_narrowed_expression() -> None:
    local = fhir.make_context(options=CompileOptions(enhance=True, example_base_url=fhir.BASE_URL))
    birthdate = _by_name(query_parameters(local, _patient(local)))["birthdate"]
    assert birthdate["description"].endswith("\n\n **Expression:** Patient.birthDate")


def test_plain_description_omits_expression(ctx: CompileContext) -> None:
    birthdate = _by_name(query_parameters(ctx, _patient(ctx)))["birthdate"]
    assert "**Expression:**" not in birthdate["description"]
