"""Bounded, failure-tolerant fan-out of source calls."""

from __future__ import annotations

import asyncio
from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from firmlink.domain.model import SearchMeta

log = getLogger(__name__)


class BoundedFanout:
    """Run source calls with at most ``limit`` in flight and a per-call timeout.

    One instance is shared by every phase of a search, so the bound holds across
    phases running concurrently. A failing or timed-out call yields ``None`` and is
    recorded in ``meta``; it never cancels its siblings.
    """

    def __init__(self, *, limit: int, timeout_seconds: float, meta: SearchMeta) -> None:
        if limit < 1:
            raise ValueError("Fan-out limit must be at least 1")
        self._semaphore = asyncio.Semaphore(limit)
        self._timeout = timeout_seconds
        self._meta = meta

    async def call[T](
        self,
        api_id: str,
        func: Callable[[], Awaitable[T]],
        *,
        counts_success: Callable[[T], bool] = bool,
    ) -> T | None:
        self._meta.apis_attempted += 1
        try:
            async with self._semaphore:
                async with asyncio.timeout(self._timeout):
                    value = await func()
        except TimeoutError:
            log.warning("Source %s timed out after %.1fs", api_id, self._timeout)
            self._meta.record_failure(api_id, f"timed out after {self._timeout:g}s")
            return None
        except Exception as exc:  # noqa: BLE001
            log.warning("Source %s failed: %s", api_id, exc)
            self._meta.record_failure(api_id, str(exc) or type(exc).__name__)
            return None
        if counts_success(value):
            self._meta.apis_succeeded += 1
        return value

    async def gather[T](
        self,
        calls: Sequence[tuple[str, Callable[[], Awaitable[T]]]],
        *,
        counts_success: Callable[[T], bool] = bool,
    ) -> list[T | None]:
        return list(
            await asyncio.gather(
                *(self.call(api_id, func, counts_success=counts_success) for api_id, func in calls)
            )
        )
