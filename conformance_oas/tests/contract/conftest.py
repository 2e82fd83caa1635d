from __future__ import annotations

import json
from pathlib import Path
from typing import Callable, Iterator, Optional

import httpx
import pytest
from starlette.applications import Starlette
from starlette.testclient import TestClient

from conformance_oas.app import build_api_app
from conformance_oas.features.context import CompileOptions
from conformance_oas.registry.terminology import TerminologyClient
from conformance_oas.tests._env import env_flag, in_ci
from conformance_oas.tests.fixtures import fhir
from conformance_oas.utils.cache import TTLCache


_RUN_CONTRACT_TESTS = env_flag("RUN_CONTRACT_TESTS", default=not in_ci())

if not _RUN_CONTRACT_TESTS:
    _SKIP_REASON = "Contract tests disabled. Set RUN_CONTRACT_TESTS=1 to enable."

    def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
        skip_marker = pytest.mark.skip(reason=_SKIP_REASON)
        for item in items:
            item.add_marker(skip_marker)


TERMINOLOGY_URL = "https://tx.example.org/fhir"


class StubTerminologyServer:
    """Answers ``metadata`` and value-set expansion like a small FHIR server."""

    def __init__(self, *, healthy: bool = True) -> None:
        self.healthy = healthy
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.healthy:
            return httpx.Response(503, text="terminology offline")
        if request.url.path.endswith("/metadata"):
            return httpx.Response(200, json={"resourceType": "CapabilityStatement"})
        if request.url.path.endswith("/ValueSet/$expand"):
            return httpx.Response(
                200,
                json={"resourceType": "ValueSet", "expansion": {"contains": [{"code": "remote"}]}},
            )
        if request.url.path.endswith("/ValueSet"):
            value_set = {
                "resourceType": "ValueSet",
                "url": request.url.params["url"],
                "name": "RemoteValueSet",
            }
            return httpx.Response(200, json={"resourceType": "Bundle", "entry": [{"resource": value_set}]})
        return httpx.Response(404, text="not found")


@pytest.fixture()
def definitions_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "definitions"
    directory.mkdir()
    for index, resource in enumerate(fhir.definitions()):
        (directory / f"{index:02d}.json").write_text(json.dumps(resource), encoding="utf-8")
    return directory


@pytest.fixture()
def capability_file(tmp_path: Path) -> Path:
    path = tmp_path / "capability.json"
    path.write_text(json.dumps(fhir.capability_statement()), encoding="utf-8")
    return path


AppFactory = Callable[..., Starlette]


@pytest.fixture()
def app_factory(definitions_dir: Path) -> AppFactory:
    def factory(
        *,
        capability_statement_path: Optional[Path] = None,
        terminology: Optional[TerminologyClient] = None,
    ) -> Starlette:
        return build_api_app(
            capability_statement_path=capability_statement_path,
            definition_paths=[definitions_dir],
            options=CompileOptions(enhance=False, example_base_url=fhir.BASE_URL),
            terminology=terminology,
            cache=TTLCache(ttl_seconds=60, namespace="contract.compile"),
        )

    return factory


@pytest.fixture()
def contract_client(app_factory: AppFactory, capability_file: Path) -> Iterator[TestClient]:
    client = TestClient(app_factory(capability_statement_path=capability_file))
    try:
        yield client
    finally:
        client.close()


@pytest.fixture()
def unconfigured_client(app_factory: AppFactory) -> Iterator[TestClient]:
    client = TestClient(app_factory())
    try:
        yield client
    finally:
        client.close()


@pytest.fixture()
def terminology_server() -> StubTerminologyServer:
    return StubTerminologyServer()


@pytest.fixture()
def terminology_client(
    app_factory: AppFactory, capability_file: Path, terminology_server: StubTerminologyServer
) -> Iterator[TestClient]:
    terminology = TerminologyClient(TERMINOLOGY_URL, transport=httpx.MockTransport(terminology_server))
    with TestClient(
        app_factory(capability_statement_path=capability_file, terminology=terminology)
    ) as client:
        yield client
