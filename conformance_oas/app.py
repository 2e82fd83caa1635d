"""Application wiring for the compiler HTTP service."""
from __future__ import annotations

import contextlib
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from .api._shared import error_response
from .api.routes import make_routes
from .error_handlers import install_error_handlers
from .features.compiler import compile_capability_statement
from .features.context import CompileOptions, Registries
from .registry.memory import InMemoryRegistry
from .registry.terminology import TerminologyClient
from .utils import config
from .utils.cache import TTLCache
from .utils.errors import DuplicateOperationError, ErrorCode
from .utils.logging import configure_root

logger = logging.getLogger("conformance_oas.app")


def load_capability_statement(path: Path) -> Dict[str, Any]:
    with Path(path).open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    if not isinstance(payload, dict):
        raise ValueError(f"{path} does not contain a JSON object")
    return payload


def build_api_app(
    *,
    capability_statement_path: Optional[Path] = None,
    definition_paths: Sequence[Path] = (),
    terminology_url: Optional[str] = None,
    options: Optional[CompileOptions] = None,
    terminology: Optional[TerminologyClient] = None,
    cache: Optional[TTLCache] = None,
) -> Starlette:
    """Build the Starlette app.

    ``GET /openapi.json`` serves the compiled document for the configured
    CapabilityStatement, compiled once on first request. ``POST
    /api/compile.json`` compiles an arbitrary statement per request.
    """

    options = options or CompileOptions()
    registry = InMemoryRegistry.from_paths(definition_paths)
    if terminology is None and terminology_url:
        terminology = TerminologyClient(terminology_url)

    routes = list(
        make_routes(
            registry,
            options=options,
            terminology=terminology,
            capability_statement_path=capability_statement_path,
            cache=cache,
        )
    )
    registries = (
        Registries.from_registry(registry, terminology)
        if terminology is not None
        else Registries.from_registry(registry)
    )
    compiled: Dict[str, Any] = {}

    async def openapi(_: Request) -> JSONResponse:
        if capability_statement_path is None:
            return error_response(ErrorCode.NOT_CONFIGURED)
        if "document" not in compiled:
            statement = load_capability_statement(capability_statement_path)
            try:
                compiled["document"] = compile_capability_statement(
                    statement, registries, options
                )
            except DuplicateOperationError as exc:
                return error_response(
                    ErrorCode.CONTRADICTORY_CONFORMANCE,
                    str(exc),
                    detail={"path": exc.path, "method": exc.method},
                )
            logger.info(
                "openapi.compiled",
                extra={"source": str(capability_statement_path), "paths": len(compiled["document"]["paths"])},
            )
        return JSONResponse(compiled["document"])

    routes.append(Route("/openapi.json", openapi, methods=["GET"], name="openapi"))

    @contextlib.asynccontextmanager
    async def lifespan(_: Starlette):
        try:
            yield
        finally:
            if terminology is not None:
                terminology.close()

    app = Starlette(routes=routes, lifespan=lifespan)
    install_error_handlers(app)
    return app


def create_app() -> Starlette:
    """Factory compatible with ``uvicorn --factory``."""

    configure_root()
    return build_api_app(
        capability_statement_path=config.CAPABILITY_STATEMENT_PATH,
        definition_paths=config.DEFINITION_PATHS,
        terminology_url=config.TERMINOLOGY_URL,
    )


__all__ = ["build_api_app", "create_app", "load_capability_statement"]
