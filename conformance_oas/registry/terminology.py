"""HTTP terminology-server client used for value-set lookup and expansion."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from time import perf_counter
from typing import Any, Dict, List, Mapping, Optional, Sequence
from urllib.parse import urljoin

import httpx

from ..model.decode import decode_value_set_codes
from ..model.definitions import ValueSetCode, ValueSetSummary
from ..utils.logging import current_scope, scoped_timer
from .protocols import ValueSetExpander

logger = logging.getLogger("conformance_oas.registry.terminology")


@dataclass(slots=True)
class RequestError:
    """Structured transport error recorded when terminology calls fail."""

    status: Optional[int]
    reason: str
    retryable: bool

    def as_dict(self) -> Dict[str, object]:
        return {"status": self.status, "reason": self.reason, "retryable": self.retryable}


class TerminologyClient:
    """Resolve and expand ValueSets against a FHIR terminology server.

    Transport and HTTP failures never propagate: the failure is kept on
    :attr:`last_error`, logged, and an empty result is returned.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url if base_url.endswith("/") else f"{base_url}/"
        self.timeout = timeout
        self._session = httpx.Client(
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/fhir+json"},
        )
        self._last_error: Optional[RequestError] = None

    @property
    def last_error(self) -> Optional[RequestError]:
        return self._last_error

    def _request_json(self, path: str, params: Dict[str, Any]) -> Optional[Mapping[str, Any]]:
        self._last_error = None
        url = urljoin(self.base_url, path)
        scope = current_scope()
        if scope is not None:
            timer_extra = scope.extra(event="timer", operation="terminology.get", path=path)
        else:
            timer_extra = {"event": "timer", "operation": "terminology.get", "path": path}
        with scoped_timer(logger, "terminology.get", extra=timer_extra):
            start = perf_counter()
            try:
                response = self._session.get(url, params=params)
            except httpx.HTTPError as exc:
                duration_ms = (perf_counter() - start) * 1000.0
                self._last_error = RequestError(status=None, reason=str(exc), retryable=True)
                logger.warning(
                    "terminology.request",
                    extra={"method": "GET", "path": path, "duration_ms": duration_ms, "error": str(exc)},
                )
                return None
        duration_ms = (perf_counter() - start) * 1000.0
        logger.info(
            "terminology.request",
            extra={
                "method": "GET",
                "path": path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        if response.is_error:
            self._last_error = RequestError(
                status=int(response.status_code),
                reason=response.text.strip(),
                retryable=int(response.status_code) >= 500,
            )
            return None
        try:
            payload = response.json()
        except json.JSONDecodeError as exc:
            self._last_error = RequestError(
                status=int(response.status_code), reason=f"invalid JSON: {exc}", retryable=False
            )
            logger.warning("%s returned invalid JSON", path, extra={"preview": response.text[:256]})
            return None
        if not isinstance(payload, Mapping):
            self._last_error = RequestError(
                status=int(response.status_code), reason="payload was not an object", retryable=False
            )
            return None
        return payload

    def value_set(self, url: str) -> Optional[ValueSetSummary]:
        payload = self._request_json("ValueSet", {"url": url})
        if payload is None:
            return None
        resource: Mapping[str, Any] = payload
        if payload.get("resourceType") == "Bundle":
            entries = payload.get("entry") or []
            if not entries:
                return None
            resource = entries[0].get("resource") or {}
        if resource.get("resourceType") != "ValueSet":
            return None
        return ValueSetSummary(url=str(resource.get("url") or url), name=resource.get("name"))

    def expand(self, url: str) -> List[ValueSetCode]:
        payload = self._request_json("ValueSet/$expand", {"url": url})
        if payload is None or payload.get("resourceType") != "ValueSet":
            return []
        return decode_value_set_codes(payload)

    def is_reachable(self) -> bool:
        """Return True when the server answers its ``metadata`` endpoint."""

        payload = self._request_json("metadata", {"_summary": "true"})
        return payload is not None

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "TerminologyClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class ChainedExpander:
    """Consult several expanders in order and return the first non-empty answer."""

    def __init__(self, expanders: Sequence[ValueSetExpander]) -> None:
        self._expanders = tuple(expanders)

    def value_set(self, url: str) -> Optional[ValueSetSummary]:
        for expander in self._expanders:
            found = expander.value_set(url)
            if found is not None:
                return found
        return None

    def expand(self, url: str) -> List[ValueSetCode]:
        for expander in self._expanders:
            codes = expander.expand(url)
            if codes:
                return codes
        return []


__all__ = ["ChainedExpander", "RequestError", "TerminologyClient"]
