from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional

from starlette.routing import Route

from ...features.context import CompileOptions
from ...registry.memory import InMemoryRegistry
from ...registry.terminology import TerminologyClient
from ...utils.cache import TTLCache, get_compile_cache
from ._common import RouteDependencies, validated_json_body
from .compile_routes import create_compile_routes
from .health_routes import create_health_routes
from .meta_routes import create_meta_routes


def make_routes(
    registry: Optional[InMemoryRegistry] = None,
    *,
    options: Optional[CompileOptions] = None,
    terminology: Optional[TerminologyClient] = None,
    cache: Optional[TTLCache] = None,
    capability_statement_path: Optional[Path] = None,
) -> List[Route]:
    logger = logging.getLogger("conformance_oas.api")
    deps = RouteDependencies(
        logger=logger,
        validated_json_body=validated_json_body,
        registry=registry if registry is not None else InMemoryRegistry(),
        options=options or CompileOptions(),
        cache=cache if cache is not None else get_compile_cache(),
        terminology=terminology,
        capability_statement_path=capability_statement_path,
    )

    groups: Iterable[List[Route]] = (
        create_health_routes(deps),
        create_meta_routes(deps),
        create_compile_routes(deps),
    )

    routes: List[Route] = []
    for group in groups:
        routes.extend(group)
    return routes


__all__ = ["RouteDependencies", "make_routes"]
