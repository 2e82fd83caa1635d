from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Iterable, Mapping, Optional

from starlette.requests import Request

from ...features.context import CompileOptions, Registries
from ...registry.memory import InMemoryRegistry
from ...registry.terminology import TerminologyClient
from ...utils.cache import TTLCache
from ..validators import validate_payload

JsonBodyValidator = Callable[[Request, str], Awaitable[Dict[str, object]]]


@dataclass(frozen=True)
class RouteDependencies:
    logger: logging.Logger
    validated_json_body: JsonBodyValidator
    registry: InMemoryRegistry
    options: CompileOptions
    cache: TTLCache
    terminology: Optional[TerminologyClient] = None
    capability_statement_path: Optional[Path] = None
    compile_semaphore: asyncio.Semaphore = field(default_factory=lambda: asyncio.Semaphore(1))

    def registries_for(self, resources: Iterable[Mapping[str, Any]] = ()) -> Registries:
        """Registries for one compile: request resources first, then the loaded ones."""

        registry = self.registry.layered(resources)
        if self.terminology is None:
            return Registries.from_registry(registry)
        return Registries.from_registry(registry, self.terminology)


async def validated_json_body(request: Request, schema: str) -> Dict[str, object]:
    try:
        data = await request.json()
    except json.JSONDecodeError:
        # Re-raise to let the central error handler catch it
        raise

    if not isinstance(data, dict):
        raise ValueError("Payload must be a JSON object.")

    valid, errors = validate_payload(schema, data)
    if not valid:
        raise ValueError("; ".join(errors))

    return data
