from __future__ import annotations

import asyncio
import logging
import time
import uuid
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union
from urllib.parse import urlsplit

from yarl import URL

from .credentials import Credentials
from .errors import TransportError
from .signing import (
    HEADER_KEY,
    HEADER_PASS,
    HEADER_SIGN,
    HEADER_TIME,
    Clock,
    HttpMethod,
    build_canonical_message,
    sign,
)
from .transport import RawResponse, Transport


log = logging.getLogger(__name__)
audit = logging.getLogger("audit")

VERSION = "0.2.0"
USER_AGENT = f"coinbase-client-py/{VERSION}"


def split_base_url(base_url: str) -> Tuple[str, str]:
    """Return (scheme://host, path prefix) for a base URL such as https://api.coinbase.com/v2."""
    parts = urlsplit(base_url)
    if parts.scheme not in ("https", "http") or not parts.netloc:
        raise ValueError(f"invalid base URL: {base_url!r}")
    return f"{parts.scheme}://{parts.netloc}", parts.path.rstrip("/")


def _query_value(value: Any) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def build_request_path(prefix: str, path: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """Path and query in the encoded form that goes on the wire.

    Quoting happens here and only here: the dispatcher signs this string and
    the transport sends it without re-quoting.
    """
    if not path.startswith("/"):
        path = "/" + path
    ref = URL(prefix + path)
    if params:
        query = {k: _query_value(v) for k, v in params.items() if v is not None}
        if query:
            ref = ref.update_query(query)
    return ref.raw_path_qs


class PublicDispatcher:
    """Sends unauthenticated requests. One transport call per dispatch, no retries."""

    def __init__(
        self,
        transport: Transport,
        base_url: str,
        timeout: float = 10.0,
        user_agent: str = USER_AGENT,
    ) -> None:
        self.transport = transport
        self.origin, self.prefix = split_base_url(base_url)
        self.timeout = timeout
        self.user_agent = user_agent

    def _headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": self.user_agent,
        }

    def _url(self, path: str, params: Optional[Mapping[str, Any]]) -> URL:
        return URL(self.origin + build_request_path(self.prefix, path, params), encoded=True)

    async def _send(
        self,
        method: HttpMethod,
        url: URL,
        headers: Dict[str, str],
        body: bytes,
    ) -> RawResponse:
        request_path = url.raw_path_qs
        request_id = uuid.uuid4().hex[:12]
        t0 = time.monotonic()
        try:
            resp = await asyncio.wait_for(
                self.transport.send(method.value, url, headers, body, self.timeout),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            audit.info("%s | %s %s | timeout after %.1fs", request_id, method.value, request_path, self.timeout)
            raise TransportError(f"request timed out after {self.timeout}s", url=str(url)) from exc
        except TransportError as exc:
            audit.info("%s | %s %s | transport error: %s", request_id, method.value, request_path, exc)
            raise
        latency_ms = (time.monotonic() - t0) * 1000.0
        audit.info(
            "%s | %s %s | %d | %.1fms", request_id, method.value, request_path, resp.status, latency_ms
        )
        return resp

    async def dispatch(
        self,
        method: Union[str, HttpMethod],
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        body: bytes = b"",
    ) -> RawResponse:
        verb = HttpMethod.parse(method)
        return await self._send(verb, self._url(path, params), self._headers(), body)


class AuthenticatedDispatcher(PublicDispatcher):
    """Signs and sends one request.

    Every call takes a fresh timestamp and signature, so a retry is just
    another ``dispatch``.
    """

    def __init__(
        self,
        credentials: Credentials,
        transport: Transport,
        base_url: str,
        clock: Optional[Clock] = None,
        timeout: float = 10.0,
        user_agent: str = USER_AGENT,
    ) -> None:
        super().__init__(transport, base_url, timeout=timeout, user_agent=user_agent)
        self.credentials = credentials
        self.clock = clock or Clock()

    def signed_headers(self, method: HttpMethod, request_path: str, body: bytes) -> Dict[str, str]:
        message = build_canonical_message(method, request_path, body, self.clock.timestamp())
        with self.credentials.borrow() as secret:
            signature = sign(message, secret)
        headers = self._headers()
        headers.update(
            {
                HEADER_KEY: self.credentials.key,
                HEADER_SIGN: signature,
                HEADER_TIME: str(message.timestamp),
            }
        )
        if self.credentials.passphrase:
            headers[HEADER_PASS] = self.credentials.passphrase
        return headers

    async def dispatch(
        self,
        method: Union[str, HttpMethod],
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        body: bytes = b"",
    ) -> RawResponse:
        verb = HttpMethod.parse(method)
        url = self._url(path, params)
        # the transport sends this URL object unchanged, so raw_path_qs is what the server sees
        headers = self.signed_headers(verb, url.raw_path_qs, body)
        log.debug("dispatching %s %s", verb.value, url.raw_path_qs)
        return await self._send(verb, url, headers, body)
