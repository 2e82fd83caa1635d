"""TTL cache for compiled OpenAPI documents."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from threading import Lock
from time import monotonic
from typing import Any, Callable, Dict, Hashable, Mapping, Optional

from .config import CACHE_TTL_SECONDS
from .logging import increment_counter


@dataclass(slots=True)
class _CacheEntry:
    payload: str
    expires_at: float


class TTLCache:
    """A small in-memory TTL cache storing JSON snapshots of documents.

    Entries are serialised on write and decoded on read so callers never
    share a mutable document with each other.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float,
        namespace: str,
        clock: Callable[[], float] = monotonic,
    ) -> None:
        self._ttl = float(ttl_seconds)
        self._namespace = namespace
        self._clock = clock
        self._default_clock = clock
        self._entries: Dict[Hashable, _CacheEntry] = {}
        self._lock = Lock()

    def get(self, key: Hashable) -> Optional[Dict[str, Any]]:
        """Return the cached document for *key* if present and fresh."""

        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.expires_at <= self._clock():
                self._entries.pop(key, None)
                increment_counter(f"{self._namespace}.miss")
                return None
            payload = entry.payload
        increment_counter(f"{self._namespace}.hit")
        return json.loads(payload)

    def set(self, key: Hashable, value: Mapping[str, Any]) -> None:
        """Store *value* for *key* with a TTL."""

        serialized = json.dumps(value, sort_keys=True)
        expires_at = self._clock() + self._ttl
        with self._lock:
            self._entries[key] = _CacheEntry(payload=serialized, expires_at=expires_at)

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def set_clock(self, clock: Callable[[], float]) -> None:
        """Override the clock used for TTL calculations (primarily for tests)."""

        self._clock = clock

    def reset_clock(self) -> None:
        self._clock = self._default_clock


def build_compile_cache_key(payload: Mapping[str, Any]) -> str:
    """Return a stable digest for a compile request body."""

    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


_compile_cache = TTLCache(ttl_seconds=CACHE_TTL_SECONDS, namespace="compile.cache")


def get_compile_cache() -> TTLCache:
    """Return the shared TTL cache for compiled documents."""

    return _compile_cache


__all__ = ["TTLCache", "build_compile_cache_key", "get_compile_cache"]
