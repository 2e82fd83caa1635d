from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, List

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from ...features.compiler import compile_capability_statement
from ...features.context import CompileOptions
from ...utils.cache import build_compile_cache_key
from ...utils.errors import DuplicateOperationError, ErrorCode
from ...utils.logging import request_scope
from .._shared import envelope_ok, envelope_response, error_response
from ..validators import validate_payload
from ._common import RouteDependencies


def _options_for(deps: RouteDependencies, data: Dict[str, Any]) -> CompileOptions:
    overrides: Dict[str, Any] = {}
    if "enhance" in data:
        overrides["enhance"] = bool(data["enhance"])
    if "exampleBaseUrl" in data:
        overrides["example_base_url"] = str(data["exampleBaseUrl"])
    if "maxChainDepth" in data:
        overrides["max_chain_depth"] = int(data["maxChainDepth"])
    return replace(deps.options, **overrides) if overrides else deps.options


def create_compile_routes(deps: RouteDependencies) -> List[Route]:
    async def compile_route(request: Request) -> JSONResponse:
        with request_scope(
            "compile",
            logger=deps.logger,
            extra={"path": "/api/compile.json"},
        ) as scope:
            data = await deps.validated_json_body(request, "compile.request.v1.json")
            key = build_compile_cache_key(data)
            cached = deps.cache.get(key)
            if cached is not None:
                return envelope_response(envelope_ok({"openapi": cached, "cached": True}))

            options = _options_for(deps, data)
            registries = deps.registries_for(data.get("resources") or ())
            try:
                async with deps.compile_semaphore:
                    document = compile_capability_statement(
                        data["capabilityStatement"], registries, options
                    )
            except DuplicateOperationError as exc:
                scope.log(
                    logging.WARNING,
                    "compile.contradictory",
                    extra={"operation_path": exc.path, "method": exc.method},
                )
                return error_response(
                    ErrorCode.CONTRADICTORY_CONFORMANCE,
                    str(exc),
                    detail={"path": exc.path, "method": exc.method},
                )

            deps.cache.set(key, document)
            payload = {"openapi": document, "cached": False}
            valid, errors = validate_payload("compile.v1.json", payload)
            if not valid:
                deps.logger.warning("compile.validation_failed", extra={"errors": errors})
            return envelope_response(envelope_ok(payload))

    return [Route("/api/compile.json", compile_route, methods=["POST"], name="compile")]


__all__ = ["create_compile_routes"]
