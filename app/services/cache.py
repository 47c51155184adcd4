"""Time-bounded in-process cache for discovery responses."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Hashable


@dataclass(slots=True)
class _CacheEntry:
    value: Any
    expires_at: float


class DiscoveryCache:
    """Maps discovery keys onto payloads that expire after a fixed TTL.

    Every write replaces a whole entry, so readers never observe a partially
    updated value. Expired entries are dropped on the read that notices them.
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._ttl = float(ttl_seconds)
        self._clock = clock
        self._entries: dict[Hashable, _CacheEntry] = {}

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    @staticmethod
    def key(operation: str, media_type: str | None, query: str | None = None) -> tuple[str, ...]:
        """Build the composite key for an operation."""

        parts = [operation, media_type or "all"]
        if query is not None:
            parts.append(query.strip().casefold())
        return tuple(parts)

    def get(self, key: Hashable) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            self._entries.pop(key, None)
            return None
        return entry.value

    def set(self, key: Hashable, value: Any) -> None:
        self._entries[key] = _CacheEntry(value=value, expires_at=self._clock() + self._ttl)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
