from __future__ import annotations

from typing import Any, Dict, List

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from ... import __version__
from ...utils.logging import request_scope
from .._shared import envelope_ok
from ._common import RouteDependencies


def create_health_routes(deps: RouteDependencies) -> List[Route]:
    async def health_route(request: Request) -> JSONResponse:
        with request_scope(
            "health",
            logger=deps.logger,
            extra={"path": "/api/health.json"},
        ):
            client = deps.terminology
            terminology: Dict[str, Any] = {
                "configured": client is not None,
                "base_url": client.base_url if client is not None else None,
                "reachable": False,
            }
            if client is not None:
                terminology["reachable"] = client.is_reachable()
                if client.last_error is not None:
                    terminology["error"] = client.last_error.reason
            payload = {
                "service": "conformance-oas",
                "version": __version__,
                "configured": deps.capability_statement_path is not None,
                "terminology": terminology,
            }
            return JSONResponse(envelope_ok(payload))

    return [Route("/api/health.json", health_route, methods=["GET"], name="health")]


__all__ = ["create_health_routes"]
