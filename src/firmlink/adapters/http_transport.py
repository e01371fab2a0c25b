"""Source transport backed by :class:`ResilientClient`."""

from __future__ import annotations

from contextlib import asynccontextmanager
from functools import partial
from logging import getLogger
from typing import TYPE_CHECKING

from firmlink.adapters.http_resilience import ResilientClient

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    import httpx

    from firmlink.config.http_resilience import ResilienceConfig
    from firmlink.domain.ports import SourceRequest, TransportFactory

log = getLogger(__name__)


def decode_payload(response: httpx.Response) -> object:
    """JSON bodies are parsed; anything else (XML, plain-text errors) is returned as text."""

    content_type = response.headers.get("content-type", "")
    if "json" in content_type:
        return response.json()
    text = response.text
    if text.lstrip().startswith(("{", "[")):
        try:
            return response.json()
        except ValueError:
            log.debug("Body of %s looks like JSON but does not parse", response.request.url)
    return text


class HttpxSourceTransport:
    def __init__(self, client: ResilientClient) -> None:
        self._client = client

    async def fetch(self, request: SourceRequest) -> object:
        params = dict(request.params) if request.params else None
        if request.body is None:
            response = await self._client.request(request.method, request.url, params=params)
        else:
            response = await self._client.request(
                request.method, request.url, params=params, json=request.body
            )
        response.raise_for_status()
        return decode_payload(response)


@asynccontextmanager
async def open_source_transport(
    config: ResilienceConfig,
    *,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> AsyncIterator[HttpxSourceTransport]:
    async with ResilientClient(config, transport=http_transport) as client:
        yield HttpxSourceTransport(client)


def build_transport_factory(
    config: ResilienceConfig,
    *,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> TransportFactory:
    return partial(open_source_transport, config, http_transport=http_transport)

