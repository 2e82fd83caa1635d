from __future__ import annotations

import pytest

from conformance_oas.model.decode import (
    decode_capability_statement,
    decode_extensions,
    decode_resource,
    decode_value_set_codes,
)
from conformance_oas.model.definitions import (
    MessageDefinition,
    OperationDefinition,
    SearchParameterDefinition,
    StructureDefinitionSummary,
    ValueSetSummary,
)
from conformance_oas.model.extensions import (
    COMBINATION_URL,
    EXPECTATION_URL,
    QUERY_PARAMETERS_URL,
    ExampleSet,
    Expectation,
    QueryParameterConstraints,
    SearchParameterCombination,
    first_of,
)
from conformance_oas.tests.fixtures import fhir


def test_rejects_other_resource_types() -> None:
    with pytest.raises(ValueError):
        decode_capability_statement({"resourceType": "Patient"})
    with pytest.raises(ValueError):
        decode_capability_statement([])  # type: ignore[arg-type]


def test_capability_statement_header() -> None:
    conformance = decode_capability_statement(fhir.capability_statement())
    assert conformance.title == "Example FHIR Server"
    assert conformance.software_version == "1.2.3"
    assert conformance.implementation_url == "https://api.example.org/FHIR/R4"
    assert conformance.contacts[0].email == "interop@example.org"
    assert conformance.has_security is True
    assert conformance.xml_enabled is True
    assert conformance.supports_system("transaction", "batch")
    assert [resource.type for resource in conformance.resources] == ["Patient", "Observation"]
    assert conformance.resources[0].supports("vread")
    assert not conformance.resources[1].supports("delete")
    assert conformance.messaging[0].supported_messages[0].definition == fhir.PRESCRIPTION_ORDER
    assert conformance.source["id"] == "example-server"


def test_missing_rest_and_formats() -> None:
    conformance = decode_capability_statement({"resourceType": "CapabilityStatement"})
    assert conformance.resources == ()
    assert conformance.has_security is False
    assert conformance.xml_enabled is False


def test_known_extensions_are_typed() -> None:
    node = {
        "extension": [
            fhir.expectation("SHALL"),
            fhir.examples_extension({"reference": "Patient/example", "summary": "One"}),
            fhir.gender_constraints(),
            {
                "url": COMBINATION_URL,
                "extension": [
                    {"url": EXPECTATION_URL, "valueCode": "SHOULD"},
                    {"url": "required", "valueString": "family"},
                    {"url": "optional", "valueString": "birthdate"},
                ],
            },
            {"url": "http://example.org/unknown", "valueString": "ignored"},
            "not an object",
        ]
    }
    extensions = decode_extensions(node)
    assert len(extensions) == 4
    assert first_of(extensions, Expectation) == Expectation("SHALL")
    examples = first_of(extensions, ExampleSet)
    assert examples is not None
    assert examples.examples[0].reference == "Patient/example"
    assert examples.for_request(True) == []
    constraints = first_of(extensions, QueryParameterConstraints)
    assert constraints is not None
    assert constraints.required is True
    assert constraints.allowed_values == fhir.GENDER_VALUE_SET
    assert constraints.show_code_and_system is True
    combination = first_of(extensions, SearchParameterCombination)
    assert combination == SearchParameterCombination("SHOULD", ("family",), ("birthdate",))


def test_query_parameter_numbers_accept_strings() -> None:
    node = {
        "extension": [
            {
                "url": QUERY_PARAMETERS_URL,
                "extension": [
                    {"url": "minimum", "valueString": "1"},
                    {"url": "maximum", "valueInteger": 50},
                    {"url": "required", "valueString": "false"},
                    {"url": "showCodeAndSystem", "valueBoolean": False},
                ],
            }
        ]
    }
    constraints = first_of(decode_extensions(node), QueryParameterConstraints)
    assert constraints == QueryParameterConstraints(
        required=False, minimum=1, maximum=50, show_code_and_system=False
    )


def test_definitional_resources() -> None:
    search = decode_resource(fhir.SEARCH_PARAMETERS[6])
    assert isinstance(search, SearchParameterDefinition)
    assert search.target == ("Group", "Device", "Patient", "Location")

    operation = decode_resource(fhir.EVERYTHING_DEFINITION)
    assert isinstance(operation, OperationDefinition)
    assert operation.instance and operation.type and not operation.system
    assert [parameter.name for parameter in operation.input_parameters()] == ["start"]

    message = decode_resource(fhir.PRESCRIPTION_MESSAGE)
    assert isinstance(message, MessageDefinition)
    assert message.event_code == "prescription-order"
    assert message.focus[0].code == "MedicationRequest"
    assert message.focus[0].max == "*"

    structure = decode_resource(
        {"resourceType": "StructureDefinition", "url": fhir.PATIENT_PROFILE, "name": "UKCorePatient", "type": "Patient"}
    )
    assert structure == StructureDefinitionSummary(url=fhir.PATIENT_PROFILE, title="UKCorePatient", type="Patient")

    assert decode_resource(fhir.GENDER_VALUE_SET_RESOURCE) == ValueSetSummary(
        url=fhir.GENDER_VALUE_SET, name="AdministrativeGender"
    )
    assert decode_resource(fhir.PATIENT_EXAMPLE) is None
    assert decode_resource({"resourceType": "StructureDefinition"}) is None


def test_operation_parameter_examples_and_parts() -> None:
    definition = decode_resource(
        {
            "resourceType": "OperationDefinition",
            "url": "http://example.org/OperationDefinition/lookup",
            "code": "lookup",
            "parameter": [
                {
                    "name": "code",
                    "use": "in",
                    "min": "1",
                    "max": "1",
                    "type": "code",
                    "extension": [
                        {"url": "http://hapifhir.io/fhir/StructureDefinition/op-parameter-example-value", "valueString": "1234"}
                    ],
                },
                {"name": "property", "use": "out", "part": [{"name": "value", "type": "string"}]},
            ],
        }
    )
    assert isinstance(definition, OperationDefinition)
    code, prop = definition.parameters
    assert code.min == 1
    assert code.examples == ("1234",)
    assert prop.use == "out"
    assert prop.parts[0].name == "value"


def test_value_set_codes_prefer_expansion() -> None:
    expanded = {
        "resourceType": "ValueSet",
        "expansion": {
            "contains": [
                {"system": "urn:a", "code": "parent", "contains": [{"system": "urn:a", "code": "child"}]}
            ]
        },
        "compose": {"include": [{"system": "urn:b", "concept": [{"code": "ignored"}]}]},
    }
    assert [code.code for code in decode_value_set_codes(expanded)] == ["parent", "child"]
    composed = decode_value_set_codes(fhir.GENDER_VALUE_SET_RESOURCE)
    assert [(code.system, code.code) for code in composed] == [
        ("http://hl7.org/fhir/administrative-gender", "male"),
        ("http://hl7.org/fhir/administrative-gender", "female"),
    ]
