from __future__ import annotations

from typing import Any, Dict

from starlette.testclient import TestClient

from conformance_oas.api.validators import validate_payload
from conformance_oas.tests.fixtures import fhir


def _assert_envelope(payload: Dict[str, Any], *, ok: bool) -> None:
    valid, errors = validate_payload("envelope.v1.json", payload)
    assert valid, f"Envelope validation failed: {errors}"
    assert payload["ok"] is ok


def _compile_body(**extra: Any) -> Dict[str, Any]:
    return {"capabilityStatement": fhir.capability_statement(), **extra}


def test_openapi_document_for_configured_statement(contract_client: TestClient) -> None:
    response = contract_client.get("/openapi.json")
    assert response.status_code == 200
    document = response.json()
    assert document["openapi"] == "3.0.1"
    assert document["info"]["title"] == "Example FHIR Server"
    assert "/Patient/$everything" in document["paths"]
    assert contract_client.get("/openapi.json").json() == document


def test_openapi_without_statement_is_not_configured(unconfigured_client: TestClient) -> None:
    response = unconfigured_client.get("/openapi.json")
    assert response.status_code == 503
    payload = response.json()
    _assert_envelope(payload, ok=False)
    assert payload["errors"][0]["code"] == "NOT_CONFIGURED"


def test_compile_then_cached(contract_client: TestClient) -> None:
    first = contract_client.post("/api/compile.json", json=_compile_body())
    assert first.status_code == 200
    payload = first.json()
    _assert_envelope(payload, ok=True)
    valid, errors = validate_payload("compile.v1.json", payload["data"])
    assert valid, errors
    assert payload["data"]["cached"] is False

    second = contract_client.post("/api/compile.json", json=_compile_body())
    assert second.status_code == 200
    assert second.json()["data"]["cached"] is True
    assert second.json()["data"]["openapi"] == payload["data"]["openapi"]


def test_compile_options_change_output(contract_client: TestClient) -> None:
    plain = contract_client.post("/api/compile.json", json=_compile_body()).json()
    enhanced = contract_client.post("/api/compile.json", json=_compile_body(enhance=True)).json()
    assert enhanced["data"]["cached"] is False
    read = "/Patient/{id}"
    assert "externalDocs" not in plain["data"]["openapi"]["paths"][read]["get"]
    assert "externalDocs" in enhanced["data"]["openapi"]["paths"][read]["get"]


def test_request_resources_resolve_operations(contract_client: TestClient) -> None:
    statement = fhir.capability_statement()
    statement["rest"][0]["resource"][1]["operation"] = [
        {"name": "stats", "definition": "http://example.org/OperationDefinition/Observation-stats"}
    ]
    stats = {
        "resourceType": "OperationDefinition",
        "url": "http://example.org/OperationDefinition/Observation-stats",
        "code": "stats",
        "title": "Observation statistics",
        "type": True,
    }
    response = contract_client.post(
        "/api/compile.json", json={"capabilityStatement": statement, "resources": [stats]}
    )
    assert response.status_code == 200
    paths = response.json()["data"]["openapi"]["paths"]
    assert paths["/Observation/$stats"]["get"]["summary"] == "Observation statistics"


def test_invalid_body_is_rejected(contract_client: TestClient) -> None:
    response = contract_client.post("/api/compile.json", json={"capabilityStatement": {"resourceType": "Patient"}})
    assert response.status_code == 400
    payload = response.json()
    _assert_envelope(payload, ok=False)
    assert payload["errors"][0]["code"] == "INVALID_REQUEST"


def test_malformed_json_is_rejected(contract_client: TestClient) -> None:
    response = contract_client.post(
        "/api/compile.json", content=b"{not json", headers={"content-type": "application/json"}
    )
    assert response.status_code == 400
    _assert_envelope(response.json(), ok=False)


def test_duplicate_declaration_is_contradictory(contract_client: TestClient) -> None:
    statement = fhir.capability_statement()
    statement["rest"][0]["resource"][0]["interaction"].append({"code": "read"})
    response = contract_client.post("/api/compile.json", json={"capabilityStatement": statement})
    assert response.status_code == 422
    payload = response.json()
    _assert_envelope(payload, ok=False)
    error = payload["errors"][0]
    assert error["code"] == "CONTRADICTORY_CONFORMANCE"
    assert error["message"] == "Have duplicate GET at path: /Patient/{id}"
    assert error["detail"] == {"path": "/Patient/{id}", "method": "GET"}
