"""Request and response example synthesis.

Examples referenced by a CapabilityStatement extension are copied from the
definition registry. Everything else is synthesized from fixed placeholder
values so two compiles of the same input produce identical documents.
"""
from __future__ import annotations

import copy
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from ..model.definitions import OperationDefinition
from ..model.extensions import ExampleSet
from ..registry.protocols import DefinitionRegistry
from .markdown import escape, unescape

DEFAULT_EXAMPLE_ID = "1234"
OUTCOME_LAST_UPDATED = "2021-04-14T11:35:00+00:00"
ERROR_CODE_SYSTEM = "https://fhir.nhs.uk/CodeSystem/Spine-ErrorOrWarningCode"


@dataclass(frozen=True, slots=True)
class GeneratedExample:
    """One named example; ``payload`` is ``None`` when it should be synthesized."""

    payload: Optional[Mapping[str, Any]]
    summary: Optional[str] = None
    description: Optional[str] = None

    @property
    def value(self) -> Optional[str]:
        if self.payload is None:
            return None
        return json.dumps(self.payload)

    @property
    def resource_type(self) -> Optional[str]:
        if self.payload is None:
            return None
        value = self.payload.get("resourceType")
        return value if isinstance(value, str) else None

    def with_payload(self, payload: Mapping[str, Any]) -> "GeneratedExample":
        return GeneratedExample(payload=payload, summary=self.summary, description=self.description)

    def to_openapi(self) -> Dict[str, Any]:
        entry: Dict[str, Any] = {}
        if self.summary:
            entry["summary"] = self.summary
        if self.description:
            entry["description"] = self.description
        entry["value"] = self.value
        return entry


def default_instance(resource_type: str, *, resource_id: Optional[str] = None) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"resourceType": resource_type}
    if resource_id is not None:
        payload["id"] = resource_id
    return payload


def success_outcome() -> Dict[str, Any]:
    return {
        "resourceType": "OperationOutcome",
        "meta": {"lastUpdated": OUTCOME_LAST_UPDATED},
        "issue": [{"severity": "information", "code": "informational"}],
    }


def error_outcome() -> Dict[str, Any]:
    return {
        "resourceType": "OperationOutcome",
        "meta": {"lastUpdated": OUTCOME_LAST_UPDATED},
        "issue": [
            {
                "severity": "error",
                "code": "value",
                "details": {"coding": [{"system": ERROR_CODE_SYSTEM, "code": "INVALID_VALUE"}]},
                "diagnostics": "(invalid_request) firstName is missing",
                "expression": ["Patient.name.given"],
            }
        ],
    }


def forbidden_outcome() -> Dict[str, Any]:
    return {
        "resourceType": "OperationOutcome",
        "meta": {"lastUpdated": OUTCOME_LAST_UPDATED},
        "issue": [
            {
                "severity": "error",
                "code": "forbidden",
                "details": {"coding": [{"system": ERROR_CODE_SYSTEM, "code": "ACCESS_DENIED"}]},
            }
        ],
    }


def generic_payload(
    resource_type: str, *, capability_statement: Optional[Mapping[str, Any]] = None
) -> Dict[str, Any]:
    """Return the fallback example for *resource_type*."""

    if resource_type == "CapabilityStatement" and capability_statement:
        return dict(capability_statement)
    if resource_type == "OperationOutcome":
        return success_outcome()
    return default_instance(resource_type)


def searchset(resource: Mapping[str, Any], base_url: str) -> Dict[str, Any]:
    """Wrap one resource in a single-page searchset Bundle."""

    resource_type = str(resource.get("resourceType", "Resource"))
    resource_id = resource.get("id") or DEFAULT_EXAMPLE_ID
    prefix = f"{base_url}{resource_type}?parameterExample=123"
    return {
        "resourceType": "Bundle",
        "type": "searchset",
        "link": [
            {"relation": "self", "url": f"{prefix}&page=1"},
            {"relation": "next", "url": f"{prefix}&page=2"},
        ],
        "entry": [{"fullUrl": f"{base_url}{resource_type}/{resource_id}", "resource": dict(resource)}],
        "total": 1,
    }


def searchset_example(resource_type: str, base_url: str) -> GeneratedExample:
    return GeneratedExample(
        payload=searchset(default_instance(resource_type, resource_id=DEFAULT_EXAMPLE_ID), base_url)
    )


def history_example(resource_type: str, base_url: str) -> GeneratedExample:
    bundle = searchset(default_instance(resource_type, resource_id=DEFAULT_EXAMPLE_ID), base_url)
    bundle["type"] = "history"
    bundle["link"] = [{"relation": "self", "url": f"{base_url}{resource_type}/_history"}]
    return GeneratedExample(payload=bundle)


def explicit_examples(
    examples: Optional[ExampleSet],
    registry: DefinitionRegistry,
    *,
    request: bool,
    base_url: str,
    search: bool = False,
    create: bool = False,
) -> List[GeneratedExample]:
    """Resolve the example references of an extension for one direction.

    Response examples of a search are wrapped in a searchset unless they are
    already a Bundle. Create request examples lose their ``id``.
    """

    if examples is None:
        return []
    resolved: List[GeneratedExample] = []
    for reference in examples.for_request(request):
        payload: Optional[Mapping[str, Any]] = None
        if reference.reference:
            found = registry.example(reference.reference)
            if found is not None:
                payload = copy.deepcopy(dict(found))
        if payload is not None and search and payload.get("resourceType") != "Bundle":
            payload = searchset(payload, base_url)
        if payload is not None and create:
            payload = {key: value for key, value in payload.items() if key != "id"}
        if request:
            description = unescape(reference.description) or None
        else:
            description = escape(reference.description, table=True) or None
        resolved.append(
            GeneratedExample(payload=payload, summary=reference.summary, description=description)
        )
    return resolved


def acknowledgement_example() -> GeneratedExample:
    return GeneratedExample(payload=success_outcome(), summary="Acknowledgement")


def patch_example(resource_type: str) -> Dict[str, Any]:
    if resource_type == "MedicationDispense":
        patches = [
            {"op": "replace", "path": "/status", "value": "in-progress"},
            {"op": "add", "path": "/whenPrepared", "value": ["2022-02-08T00:00:00+00:00"]},
        ]
    elif resource_type == "MedicationRequest":
        patches = [{"op": "replace", "path": "/status", "value": "cancelled"}]
    else:
        patches = [
            {"op": "add", "path": "/foo", "value": ["bar"]},
            {"op": "add", "path": "/foo2", "value": ["barbar"]},
        ]
    return {"patches": patches}


def _parameter_value(type_code: Optional[str], resource_type: Optional[str]) -> Optional[Dict[str, Any]]:
    if type_code in {"uri", "url", "code", "string"}:
        return {f"value{type_code[0].upper()}{type_code[1:]}": "example"}
    if type_code == "integer":
        return {"valueInteger": 0}
    if type_code == "boolean":
        return {"valueBoolean": False}
    if type_code == "CodeableConcept":
        return {"valueCodeableConcept": {"coding": [{"system": "http://example.com", "code": "1234"}]}}
    if type_code == "Coding":
        return {"valueCoding": {"system": "http://example.com", "code": "1234"}}
    if type_code == "Reference":
        return {"valueReference": {"reference": "example"}}
    if type_code == "Resource" and resource_type is not None:
        return {"resource": default_instance(resource_type, resource_id="1")}
    return None


def parameters_example(
    definition: OperationDefinition, resource_type: Optional[str]
) -> Dict[str, Any]:
    """Build a Parameters request body from the operation's input parameters."""

    parameters: List[Dict[str, Any]] = []
    for parameter in definition.input_parameters():
        entry: Dict[str, Any] = {"name": parameter.name}
        value = _parameter_value(parameter.type, resource_type)
        if value is not None:
            entry.update(value)
        parameters.append(entry)
    return {"resourceType": "Parameters", "parameter": parameters}


__all__ = [
    "DEFAULT_EXAMPLE_ID",
    "GeneratedExample",
    "acknowledgement_example",
    "default_instance",
    "error_outcome",
    "explicit_examples",
    "forbidden_outcome",
    "generic_payload",
    "history_example",
    "parameters_example",
    "patch_example",
    "searchset",
    "searchset_example",
    "success_outcome",
]
