"""Whole-query result cache with a fixed time-to-live."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

    from firmlink.domain.model import SearchResult


@dataclass(slots=True, frozen=True)
class _CacheEntry:
    result: SearchResult
    stored_at: float


class QueryCache:
    """Replace-only map from query key to the last result computed for it.

    Entries older than ``ttl_seconds`` are treated as absent and dropped on read. A
    TTL of zero disables caching.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, _CacheEntry] = {}

    def get(self, key: str) -> SearchResult | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.stored_at >= self._ttl:
            self._entries.pop(key, None)
            return None
        return entry.result

    def put(self, key: str, result: SearchResult) -> None:
        if self._ttl <= 0:
            return
        self._entries[key] = _CacheEntry(result=result, stored_at=self._clock())

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
