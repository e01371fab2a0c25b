"""Port for the HTTP transport used to reach external sources."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable
    from contextlib import AbstractAsyncContextManager

    from firmlink.domain.ports.sources import SourceRequest


class SourceResponseError(RuntimeError):
    """Raised when a source answers with an error or a payload that cannot be read."""


@runtime_checkable
class SourceTransport(Protocol):
    """Perform one request and return the decoded payload.

    JSON bodies come back as parsed objects, anything else as text. Network failures
    and non-success statuses raise.
    """

    async def fetch(self, request: SourceRequest) -> object: ...


type TransportFactory = Callable[[], AbstractAsyncContextManager[SourceTransport]]
