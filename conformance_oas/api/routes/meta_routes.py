from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from ...utils.logging import request_scope
from .._shared import envelope_ok
from ..validators import validate_payload
from ._common import RouteDependencies

CapabilityEntry = Tuple[str, str, str]


def _ordered_capabilities(definitions: Sequence[CapabilityEntry]) -> List[dict[str, str]]:
    sorted_defs = sorted(definitions, key=lambda entry: (entry[0], entry[1]))
    return [
        {"path": path, "method": method, "description": description}
        for path, method, description in sorted_defs
    ]


def _capability_definitions() -> Iterable[CapabilityEntry]:
    return (
        ("/api/capabilities.json", "GET", "List available endpoints."),
        ("/api/compile.json", "POST", "Compile a CapabilityStatement into OpenAPI 3.0.1."),
        ("/api/health.json", "GET", "Service and terminology server health."),
        ("/openapi.json", "GET", "OpenAPI document for the configured CapabilityStatement."),
    )


def create_meta_routes(deps: RouteDependencies) -> List[Route]:
    async def capabilities_route(request: Request) -> JSONResponse:
        with request_scope(
            "capabilities",
            logger=deps.logger,
            extra={"path": "/api/capabilities.json"},
        ):
            payload = {"endpoints": _ordered_capabilities(tuple(_capability_definitions()))}
            valid, errors = validate_payload("capabilities.v1.json", payload)
            if not valid:
                deps.logger.warning("capabilities.validation_failed", extra={"errors": errors})
            return JSONResponse(envelope_ok(payload))

    return [
        Route(
            "/api/capabilities.json",
            capabilities_route,
            methods=["GET", "HEAD"],
            name="capabilities",
        )
    ]


__all__ = ["create_meta_routes"]
