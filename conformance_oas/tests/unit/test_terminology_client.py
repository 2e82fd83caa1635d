from __future__ import annotations

import httpx

from conformance_oas.model.definitions import ValueSetCode, ValueSetSummary
from conformance_oas.registry.terminology import ChainedExpander, TerminologyClient
from conformance_oas.tests.fixtures import fhir

BASE = "https://tx.example.org/fhir"


def _client(handler) -> TerminologyClient:
    return TerminologyClient(BASE, transport=httpx.MockTransport(handler))


def test_value_set_search_returns_first_bundle_entry() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "resourceType": "Bundle",
                "entry": [{"resource": fhir.GENDER_VALUE_SET_RESOURCE}],
            },
        )

    with _client(handler) as client:
        found = client.value_set(fhir.GENDER_VALUE_SET)

    assert found == ValueSetSummary(url=fhir.GENDER_VALUE_SET, name="AdministrativeGender")
    assert seen[0].url.path == "/fhir/ValueSet"
    assert seen[0].url.params["url"] == fhir.GENDER_VALUE_SET
    assert seen[0].headers["accept"] == "application/fhir+json"


def test_value_set_empty_bundle() -> None:
    with _client(lambda request: httpx.Response(200, json={"resourceType": "Bundle"})) as client:
        assert client.value_set(fhir.GENDER_VALUE_SET) is None
        assert client.last_error is None


def test_expand_reads_expansion_contains() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/fhir/ValueSet/$expand"
        return httpx.Response(
            200,
            json={
                "resourceType": "ValueSet",
                "expansion": {"contains": [{"system": "urn:s", "code": "a", "display": "A"}]},
            },
        )

    with _client(handler) as client:
        assert client.expand(fhir.GENDER_VALUE_SET) == [ValueSetCode(code="a", system="urn:s", display="A")]


def test_server_error_is_recorded_not_raised() -> None:
    with _client(lambda request: httpx.Response(500, text="boom")) as client:
        assert client.expand(fhir.GENDER_VALUE_SET) == []
        error = client.last_error
    assert error is not None
    assert error.as_dict() == {"status": 500, "reason": "boom", "retryable": True}


def test_not_found_is_not_retryable() -> None:
    with _client(lambda request: httpx.Response(404, text="missing")) as client:
        assert client.value_set(fhir.GENDER_VALUE_SET) is None
        assert client.last_error.retryable is False


def test_transport_error_marks_unreachable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with _client(handler) as client:
        assert client.is_reachable() is False
        assert client.last_error.status is None
        assert "connection refused" in client.last_error.reason


def test_invalid_json_is_recorded() -> None:
    with _client(lambda request: httpx.Response(200, text="<html>")) as client:
        assert client.expand(fhir.GENDER_VALUE_SET) == []
        assert client.last_error.reason.startswith("invalid JSON")


def test_reachable_metadata_clears_previous_error() -> None:
    responses = iter([httpx.Response(503, text="down"), httpx.Response(200, json={"resourceType": "CapabilityStatement"})])

    with _client(lambda request: next(responses)) as client:
        assert client.is_reachable() is False
        assert client.is_reachable() is True
        assert client.last_error is None


def test_chained_expander_falls_through_to_terminology() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200, json={"resourceType": "ValueSet", "expansion": {"contains": [{"code": "remote"}]}}
        )

    with _client(handler) as client:
        chained = ChainedExpander([fhir.registry(), client])
        assert [code.code for code in chained.expand(fhir.GENDER_VALUE_SET)] == ["male", "female"]
        assert [code.code for code in chained.expand("http://example.org/ValueSet/remote")] == ["remote"]
