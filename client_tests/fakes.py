from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Dict, List

from multidict import CIMultiDict, CIMultiDictProxy

from coinbase_client.transport import RawResponse


# base64 of b"super-secret-key-bytes-0123456789"
SECRET_B64 = "c3VwZXItc2VjcmV0LWtleS1ieXRlcy0wMTIzNDU2Nzg5"


def make_response(status: int = 200, payload=None, body: bytes = None, headers: Dict[str, str] = None) -> RawResponse:
    if body is None:
        body = json.dumps(payload).encode() if payload is not None else b""
    return RawResponse(
        status=status,
        body=body,
        headers=CIMultiDictProxy(CIMultiDict(headers or {})),
    )


@dataclass
class SentRequest:
    method: str
    url: str
    headers: Dict[str, str]
    body: bytes
    timeout: float


class FakeTransport:
    """Replays scripted responses (or raises scripted exceptions) in order.

    The last scripted item repeats once the script runs out.
    """

    def __init__(self, *script) -> None:
        self.script = list(script)
        self.requests: List[SentRequest] = []
        self.closed = False

    async def send(self, method, url, headers, body, timeout):
        self.requests.append(SentRequest(method, str(url), dict(headers), body, timeout))
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True
