"""Shared envelope helpers for HTTP routes."""
from __future__ import annotations

from typing import Dict

from starlette.responses import JSONResponse

from ..utils.errors import ErrorCode, make_error


def envelope_ok(data: Dict[str, object]) -> Dict[str, object]:
    return {"ok": True, "data": data, "errors": []}


def envelope_error(
    code: ErrorCode,
    message: str | None = None,
    *,
    recovery: tuple[str, ...] | None = None,
    status: int | None = None,
    detail: dict | None = None,
) -> Dict[str, object]:
    error_payload = make_error(
        code,
        message=message,
        recovery=recovery,
        status=status,
    )
    if detail is not None:
        error_payload = dict(error_payload)
        error_payload["detail"] = detail
    return {
        "ok": False,
        "data": None,
        "errors": [error_payload],
    }


def envelope_response(payload: Dict[str, object]) -> JSONResponse:
    status = 200
    if not payload.get("ok"):
        errors = payload.get("errors")
        if isinstance(errors, list) and errors:
            first = errors[0]
            status = int(first.get("status", 500))
        else:
            status = 500
    return JSONResponse(payload, status_code=status)


def error_response(
    code: ErrorCode,
    message: str | None = None,
    *,
    recovery: tuple[str, ...] | None = None,
    detail: dict | None = None,
    status: int | None = None,
) -> JSONResponse:
    return envelope_response(
        envelope_error(
            code,
            message,
            recovery=recovery,
            detail=detail,
            status=status,
        )
    )


__all__ = ["envelope_error", "envelope_ok", "envelope_response", "error_response"]
