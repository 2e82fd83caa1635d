"""Error codes and helpers for the compiler and its HTTP surface."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Mapping, MutableMapping, Optional, Sequence


class ErrorCode(str, Enum):
    """Stable error codes returned from the HTTP endpoints."""

    INVALID_REQUEST = "INVALID_REQUEST"
    CONTRADICTORY_CONFORMANCE = "CONTRADICTORY_CONFORMANCE"
    NOT_CONFIGURED = "NOT_CONFIGURED"
    INTERNAL = "INTERNAL"


@dataclass(frozen=True)
class ErrorTemplate:
    """Default status, message, and recovery hints for an error code."""

    status: int
    message: str
    recovery: Sequence[str] = ()


_TEMPLATES: Mapping[ErrorCode, ErrorTemplate] = {
    ErrorCode.INVALID_REQUEST: ErrorTemplate(
        status=400,
        message="Request was malformed or failed validation.",
        recovery=(
            "Check required fields and value formats.",
        ),
    ),
    ErrorCode.CONTRADICTORY_CONFORMANCE: ErrorTemplate(
        status=422,
        message="Conformance description declares the same path and method twice.",
        recovery=(
            "Remove the duplicated interaction or operation from the CapabilityStatement.",
        ),
    ),
    ErrorCode.NOT_CONFIGURED: ErrorTemplate(
        status=503,
        message="No CapabilityStatement is configured for this server.",
        recovery=(
            "Set CONFORMANCE_OAS_CAPABILITY_STATEMENT or POST to /api/compile.json.",
        ),
    ),
    ErrorCode.INTERNAL: ErrorTemplate(
        status=500,
        message="Internal server error.",
        recovery=(
            "Retry the request or contact support with request logs.",
        ),
    ),
}


class CautionCode(str, Enum):
    """Non-fatal conformance problems reported inline in generated documentation."""

    UNKNOWN_SEARCH_PARAMETER = "UNKNOWN_SEARCH_PARAMETER"
    INVALID_CHAIN = "INVALID_CHAIN"
    CHAIN_TOO_DEEP = "CHAIN_TOO_DEEP"
    INVALID_INCLUDE = "INVALID_INCLUDE"
    UNKNOWN_OPERATION = "UNKNOWN_OPERATION"


class DuplicateOperationError(RuntimeError):
    """Raised when a second operation is registered at the same path and method."""

    def __init__(self, path: str, method: str):
        super().__init__(f"Have duplicate {method.upper()} at path: {path}")
        self.path = path
        self.method = method.upper()


def _resolve_template(code: ErrorCode) -> ErrorTemplate:
    try:
        return _TEMPLATES[code]
    except KeyError:  # pragma: no cover - defensive guard
        raise ValueError(f"No error template registered for {code!s}") from None


def make_error(
    code: ErrorCode,
    message: Optional[str] = None,
    *,
    recovery: Optional[Iterable[str]] = None,
    status: Optional[int] = None,
) -> Dict[str, object]:
    """Create a JSON-serialisable error dict."""

    template = _resolve_template(code)
    resolved_message = message if message is not None else template.message
    resolved_status = status if status is not None else template.status
    resolved_recovery: List[str] = list(recovery) if recovery is not None else list(
        template.recovery
    )
    payload: MutableMapping[str, object] = {
        "status": int(resolved_status),
        "code": code.value,
        "message": resolved_message,
        "recovery": resolved_recovery,
    }
    return dict(payload)


__all__ = [
    "CautionCode",
    "DuplicateOperationError",
    "ErrorCode",
    "ErrorTemplate",
    "make_error",
]
