"""Logging helpers for the compiler."""
from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from time import monotonic
from typing import Dict, Iterator, Mapping, Optional

import contextvars

from .errors import CautionCode


_COMPILE_CONTEXT: contextvars.ContextVar["CompileScope | None"] = contextvars.ContextVar(
    "conformance_oas_compile_scope", default=None
)


def configure_root(level: int = logging.INFO) -> None:
    logging.basicConfig(level=level, format="%(levelname)s:%(name)s:%(message)s")


@contextmanager
def scoped_timer(
    logger: logging.Logger, message: str, *, extra: Optional[Dict[str, object]] = None
) -> Iterator[None]:
    start = monotonic()
    try:
        yield
    finally:
        elapsed = monotonic() - start
        logger.debug("%s", message, extra={"duration_s": elapsed, **(extra or {})})


@dataclass(slots=True)
class CompileScope:
    """Structured logging context for a single compile pass or HTTP request."""

    name: str
    compile_id: str
    logger: logging.Logger
    kind: str = "compile"
    metadata: Dict[str, object] = field(default_factory=dict)
    counters: Dict[str, int] = field(default_factory=dict)
    start_time: float = field(default_factory=monotonic)

    def extra(self, **values: object) -> Dict[str, object]:
        payload = {f"{self.kind}_id": self.compile_id, self.kind: self.name, **self.metadata}
        payload.update(values)
        return payload

    def log(
        self, level: int, message: str, *, extra: Optional[Mapping[str, object]] = None
    ) -> None:
        payload = self.extra(**(dict(extra) if extra else {}))
        self.logger.log(level, message, extra=payload)

    def increment(self, counter: str, amount: int = 1) -> int:
        value = self.counters.get(counter, 0) + amount
        self.counters[counter] = value
        self.logger.debug(
            "counter.%s", counter, extra=self.extra(counter=counter, value=value)
        )
        return value


@contextmanager
def _open_scope(
    kind: str,
    name: str,
    logger: logging.Logger,
    extra: Optional[Mapping[str, object]],
) -> Iterator[CompileScope]:
    scope = CompileScope(
        name=name,
        compile_id=str(uuid.uuid4()),
        logger=logger,
        kind=kind,
        metadata=dict(extra or {}),
    )
    token = _COMPILE_CONTEXT.set(scope)
    scope.log(logging.INFO, f"{kind}.start")
    try:
        with scoped_timer(logger, f"{name}.duration", extra=scope.extra(event="timer")):
            yield scope
    except Exception:
        logger.exception(f"{kind}.error", extra=scope.extra())
        raise
    finally:
        duration = monotonic() - scope.start_time
        scope.log(
            logging.INFO,
            f"{kind}.finish",
            extra={"duration_s": duration, "counters": dict(scope.counters)},
        )
        _COMPILE_CONTEXT.reset(token)


@contextmanager
def compile_scope(
    name: str,
    *,
    logger: Optional[logging.Logger] = None,
    extra: Optional[Mapping[str, object]] = None,
) -> Iterator[CompileScope]:
    """Create a structured logging scope for one compile."""

    with _open_scope(
        "compile", name, logger or logging.getLogger("conformance_oas.compiler"), extra
    ) as scope:
        yield scope


@contextmanager
def request_scope(
    name: str,
    *,
    logger: Optional[logging.Logger] = None,
    extra: Optional[Mapping[str, object]] = None,
) -> Iterator[CompileScope]:
    """Create a structured logging scope for a single HTTP request."""

    with _open_scope(
        "request", name, logger or logging.getLogger("conformance_oas.request"), extra
    ) as scope:
        yield scope


def current_scope() -> Optional[CompileScope]:
    """Return the active compile scope if one is present."""

    return _COMPILE_CONTEXT.get(None)


def increment_counter(name: str, amount: int = 1) -> None:
    """Increment a named counter on the current compile."""

    scope = current_scope()
    if scope is not None:
        scope.increment(name, amount)


def record_caution(code: CautionCode, message: str, **details: object) -> None:
    """Count and log a non-fatal conformance problem surfaced in the document."""

    scope = current_scope()
    if scope is None:
        logging.getLogger("conformance_oas.compiler").warning(
            "caution.%s", code.value.lower(), extra={"caution": code.value, "detail": message, **details}
        )
        return
    scope.increment(f"caution.{code.value.lower()}")
    scope.log(
        logging.WARNING,
        f"caution.{code.value.lower()}",
        extra={"caution": code.value, "detail": message, **details},
    )


__all__ = [
    "CompileScope",
    "compile_scope",
    "configure_root",
    "current_scope",
    "increment_counter",
    "record_caution",
    "request_scope",
    "scoped_timer",
]
