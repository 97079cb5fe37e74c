"""
Pluggable HTTP transport.

The engine only depends on the Transport protocol; HttpxTransport is the
default implementation. Pooling, TLS and HTTP/1.1 framing are the
transport's concern.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol, runtime_checkable

import httpx

from s3wire.core import constants as C
from s3wire.core.errors import TransportError
from s3wire.http.headers import Headers
from s3wire.http.message import HttpRequest, HttpResponse

logger = logging.getLogger(__name__)


@runtime_checkable
class Transport(Protocol):
    async def send(self, request: HttpRequest) -> HttpResponse:
        ...

    async def close(self) -> None:
        ...


class HttpxTransport:
    """
    Transport over httpx.AsyncClient.

    Timeouts are configured once and apply to every request. A client
    passed in by the caller is borrowed and not closed.
    """

    def __init__(
        self,
        connect_timeout_s: float = C.DEFAULT_CONNECT_TIMEOUT_S,
        write_timeout_s: float = C.DEFAULT_WRITE_TIMEOUT_S,
        read_timeout_s: float = C.DEFAULT_READ_TIMEOUT_S,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(
                connect=connect_timeout_s,
                write=write_timeout_s,
                read=read_timeout_s,
                pool=connect_timeout_s,
            ),
        )

    async def send(self, request: HttpRequest) -> HttpResponse:
        url = str(request.url)
        try:
            response = await self._client.request(
                request.method,
                url,
                headers=list(request.headers.multi_items()),
                content=request.body.content(),
            )
        except httpx.TimeoutException as e:
            raise TransportError.timeout(url, e) from e
        except httpx.TransportError as e:
            raise TransportError.connection_failed(url, e) from e

        logger.debug("%s %s -> %d", request.method, request.url.path, response.status_code)
        return HttpResponse(
            status=response.status_code,
            headers=Headers(response.headers.multi_items()),
            content=response.content,
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()


__all__ = ["Transport", "HttpxTransport"]
