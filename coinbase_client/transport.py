from __future__ import annotations

import asyncio
import logging
import ssl
from dataclasses import dataclass, field
from typing import Mapping, Optional, Protocol, Union

import aiohttp
from multidict import CIMultiDict, CIMultiDictProxy
from yarl import URL

from .errors import TransportError


log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RawResponse:
    status: int
    body: bytes = b""
    headers: CIMultiDictProxy = field(default_factory=lambda: CIMultiDictProxy(CIMultiDict()))
    url: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


class Transport(Protocol):
    async def send(
        self,
        method: str,
        url: Union[str, URL],
        headers: Mapping[str, str],
        body: bytes,
        timeout: float,
    ) -> RawResponse:
        ...

    async def close(self) -> None:
        ...


class AiohttpTransport:
    """HTTPS transport over one pooled aiohttp session.

    The connector is the connection pool; aiohttp checks a connection out
    to exactly one request at a time and returns it once the body is read.
    The session is opened lazily inside the running loop and closed by
    ``close()``.
    """

    def __init__(
        self,
        pool_size: int = 10,
        verify_ssl: bool = True,
        ssl_context: Optional[ssl.SSLContext] = None,
    ) -> None:
        self.pool_size = max(1, pool_size)
        self.verify_ssl = verify_ssl
        self._ssl_context = ssl_context
        self._session: Optional[aiohttp.ClientSession] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _get_session(self) -> aiohttp.ClientSession:
        if self._closed:
            raise TransportError("transport is closed")
        if self._session is None:
            if self._ssl_context is not None:
                ssl_arg = self._ssl_context
            else:
                ssl_arg = None if self.verify_ssl else False
            connector = aiohttp.TCPConnector(limit=self.pool_size, ssl=ssl_arg)
            self._session = aiohttp.ClientSession(connector=connector)
        return self._session

    async def send(
        self,
        method: str,
        url: Union[str, URL],
        headers: Mapping[str, str],
        body: bytes,
        timeout: float,
    ) -> RawResponse:
        """Send one request. ``url`` must already be quoted; it is never re-quoted."""
        target = url if isinstance(url, URL) else URL(url, encoded=True)
        session = self._get_session()
        try:
            async with session.request(
                method,
                target,
                headers=dict(headers),
                data=body or None,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as resp:
                payload = await resp.read()
                return RawResponse(
                    status=resp.status,
                    body=payload,
                    headers=CIMultiDictProxy(CIMultiDict(resp.headers)),
                    url=str(resp.url),
                )
        except asyncio.TimeoutError as exc:
            raise TransportError(f"timed out after {timeout}s", url=str(target)) from exc
        except aiohttp.ClientSSLError as exc:
            raise TransportError(f"TLS failure: {exc}", url=str(target)) from exc
        except aiohttp.ClientError as exc:
            raise TransportError(f"{type(exc).__name__}: {exc}", url=str(target)) from exc

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._session is not None:
            await self._session.close()
            self._session = None
            log.debug("transport closed")
