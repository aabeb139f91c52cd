from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import threading
import time
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Union

from .errors import AuthError


HEADER_KEY = "CB-ACCESS-KEY"
HEADER_SIGN = "CB-ACCESS-SIGN"
HEADER_TIME = "CB-ACCESS-TIMESTAMP"
HEADER_PASS = "CB-ACCESS-PASSPHRASE"

DEFAULT_WINDOW_SEC = 30


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"

    @classmethod
    def parse(cls, method: Union[str, "HttpMethod"]) -> "HttpMethod":
        if isinstance(method, cls):
            return method
        try:
            return cls(str(method).upper())
        except ValueError:
            raise ValueError(f"unsupported HTTP method: {method!r}") from None


@dataclass(frozen=True, slots=True)
class CanonicalMessage:
    timestamp: int
    method: HttpMethod
    request_path: str
    body: bytes = b""

    def to_bytes(self) -> bytes:
        head = f"{self.timestamp}{self.method.value}{self.request_path}"
        return head.encode("utf-8") + self.body


def build_canonical_message(
    method: Union[str, HttpMethod],
    request_path: str,
    body: bytes = b"",
    timestamp: int = 0,
) -> CanonicalMessage:
    """Assemble ``timestamp || method || request_path || body``.

    ``request_path`` includes the query string. ``body`` must be the exact
    bytes that go on the wire, see ``encode_body``.
    """
    if not request_path.startswith("/"):
        raise ValueError(f"request path must be absolute: {request_path!r}")
    if not isinstance(body, (bytes, bytearray)):
        raise TypeError("body must be bytes; serialize it with encode_body() first")
    return CanonicalMessage(
        timestamp=int(timestamp),
        method=HttpMethod.parse(method),
        request_path=request_path,
        body=bytes(body),
    )


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def encode_body(payload: Any) -> bytes:
    """Serialize a JSON payload once; the result is both signed and sent."""
    if payload is None:
        return b""
    return json.dumps(payload, separators=(",", ":"), default=_json_default).encode("utf-8")


def decode_secret(secret: Union[str, bytes, bytearray, memoryview]) -> bytes:
    if not secret:
        raise AuthError("API secret is empty")
    raw = secret.encode("ascii", errors="replace") if isinstance(secret, str) else bytes(secret)
    try:
        key = base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise AuthError("API secret is not valid base64") from exc
    if not key:
        raise AuthError("API secret decodes to an empty key")
    return key


def sign(message: CanonicalMessage, secret: Union[str, bytes, bytearray, memoryview]) -> str:
    """Base64 HMAC-SHA256 of the canonical message, keyed by the decoded secret."""
    digest = hmac.new(decode_secret(secret), message.to_bytes(), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify(message: CanonicalMessage, secret: Union[str, bytes], signature: str) -> bool:
    return hmac.compare_digest(sign(message, secret), signature)


class Clock:
    """Request timestamp source in integer epoch seconds.

    Applies an offset measured against the exchange clock. Between syncs it
    never hands out a value lower than one it already returned; a sync
    starts over from the corrected time, since the exchange clock wins.
    """

    def __init__(self, offset: float = 0.0, time_fn=time.time) -> None:
        self._offset = float(offset)
        self._time_fn = time_fn
        self._last = 0
        self._lock = threading.Lock()

    @property
    def offset(self) -> float:
        return self._offset

    def now(self) -> float:
        return self._time_fn() + self._offset

    def timestamp(self) -> int:
        with self._lock:
            ts = max(int(self.now()), self._last)
            self._last = ts
            return ts

    def sync(self, server_epoch: float, local_epoch: Optional[float] = None) -> float:
        """Record the skew between the exchange clock and ours."""
        local = self._time_fn() if local_epoch is None else local_epoch
        with self._lock:
            self._offset = float(server_epoch) - local
            self._last = 0
        return self._offset

    def within_window(self, timestamp: int, window: int = DEFAULT_WINDOW_SEC) -> bool:
        return abs(self.now() - timestamp) <= window
