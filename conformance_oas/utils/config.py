"""Runtime configuration for the compiler and the HTTP surface."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Final, Optional, Tuple


def _parse_bool(value: str | None, *, default: bool = False) -> bool:
    if value is None:
        return default
    value = value.strip().lower()
    return value in {"1", "true", "yes", "on"}


def _parse_int(value: str | None, *, default: int) -> int:
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _parse_paths(value: str | None) -> Tuple[Path, ...]:
    if not value:
        return ()
    return tuple(
        Path(item).expanduser() for item in value.split(os.pathsep) if item.strip()
    )


def _env_bool(name: str, *, default: bool = False) -> bool:
    return _parse_bool(os.getenv(name), default=default)


def _env_int(name: str, *, default: int) -> int:
    return _parse_int(os.getenv(name), default=default)


def _env_str(name: str) -> Optional[str]:
    value = os.getenv(name, "").strip()
    return value or None


EXAMPLE_BASE_URL: Final[str] = os.getenv(
    "CONFORMANCE_OAS_EXAMPLE_BASE_URL", "http://example.org/FHIR/R4/"
)
MAX_CHAIN_DEPTH: Final[int] = max(_env_int("CONFORMANCE_OAS_MAX_CHAIN_DEPTH", default=4), 1)
ENHANCE: Final[bool] = _env_bool("CONFORMANCE_OAS_ENHANCE", default=False)
CACHE_TTL_SECONDS: Final[int] = _env_int("CONFORMANCE_OAS_CACHE_TTL", default=300)
RESOLVER_SCOPE: Final[Optional[str]] = _env_str("CONFORMANCE_OAS_RESOLVER_SCOPE")
TERMINOLOGY_URL: Final[Optional[str]] = _env_str("CONFORMANCE_OAS_TERMINOLOGY_URL")

_capability_env = _env_str("CONFORMANCE_OAS_CAPABILITY_STATEMENT")
CAPABILITY_STATEMENT_PATH: Final[Optional[Path]] = (
    Path(_capability_env).expanduser() if _capability_env else None
)
DEFINITION_PATHS: Final[Tuple[Path, ...]] = _parse_paths(os.getenv("CONFORMANCE_OAS_DEFINITIONS"))


__all__ = [
    "CACHE_TTL_SECONDS",
    "CAPABILITY_STATEMENT_PATH",
    "DEFINITION_PATHS",
    "ENHANCE",
    "EXAMPLE_BASE_URL",
    "MAX_CHAIN_DEPTH",
    "RESOLVER_SCOPE",
    "TERMINOLOGY_URL",
]
