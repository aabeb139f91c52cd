from __future__ import annotations

import json
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional, Tuple

from .errors import ApiError, DecodeError
from .models import Page, Pagination
from .transport import RawResponse


log = logging.getLogger(__name__)

DATA_ENVELOPE = "data"


def parse_json(body: bytes) -> Any:
    """Parse a JSON body keeping every non-integer number as a Decimal."""
    return json.loads(body, parse_float=Decimal)


def _retry_after(resp: RawResponse) -> Optional[float]:
    value = resp.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def _error_fields(payload: Any) -> Tuple[Optional[str], Optional[str]]:
    """Pull (message, code) out of either error envelope the exchange uses."""
    if not isinstance(payload, dict):
        return None, None
    errors = payload.get("errors")
    if isinstance(errors, list) and errors and isinstance(errors[0], dict):
        first = errors[0]
        code = first.get("id") or first.get("code")
        return first.get("message"), None if code is None else str(code)
    code = payload.get("code") or payload.get("error") or payload.get("id")
    message = payload.get("message") or payload.get("error_description")
    return message, None if code is None else str(code)


def decode_error(resp: RawResponse) -> ApiError:
    message: Optional[str] = None
    code: Optional[str] = None
    try:
        message, code = _error_fields(parse_json(resp.body))
    except ValueError:
        # Gateways answer 5xx with HTML; keep it as the message
        pass
    if not message:
        message = resp.text.strip()[:500] or f"HTTP {resp.status}"
    return ApiError(message, status=resp.status, code=code, retry_after=_retry_after(resp))


def decode(
    resp: RawResponse,
    into: Optional[Callable[[Any], Any]] = None,
    envelope: Optional[str] = DATA_ENVELOPE,
) -> Any:
    """Turn a raw response into a typed value or raise.

    Non-2xx → ``ApiError``. 2xx with a body that is not JSON, or that does
    not fit ``into`` → ``DecodeError``. ``into`` is applied to each element
    when the payload is a list.
    """
    payload = _parse(resp, required=into is not None)
    if envelope is not None and isinstance(payload, dict) and envelope in payload:
        payload = payload[envelope]
    if into is None:
        return payload
    return _build(resp, into, payload)


def decode_page(resp: RawResponse, into: Optional[Callable[[Any], Any]] = None) -> Page:
    """Decode a list endpoint, keeping the ``pagination`` block next to ``data``."""
    payload = _parse(resp, required=True)
    if not isinstance(payload, dict) or not isinstance(payload.get(DATA_ENVELOPE), list):
        raise DecodeError("expected a paginated list response", resp.body, resp.status)
    items = payload[DATA_ENVELOPE]
    if into is not None:
        items = _build(resp, into, items)
    raw_pagination = payload.get("pagination")
    pagination = None
    if raw_pagination is not None:
        pagination = _build(resp, model(Pagination), raw_pagination)
    return Page(data=items, pagination=pagination)


def _parse(resp: RawResponse, required: bool) -> Any:
    if not resp.ok:
        raise decode_error(resp)
    if not resp.body.strip():
        if not required:
            return None
        raise DecodeError("empty response body", resp.body, resp.status)
    try:
        return parse_json(resp.body)
    except ValueError as exc:
        raise DecodeError(f"response is not valid JSON: {exc}", resp.body, resp.status) from exc


def _build(resp: RawResponse, into: Callable[[Any], Any], payload: Any) -> Any:
    try:
        if isinstance(payload, list):
            return [into(item) for item in payload]
        return into(payload)
    except (KeyError, TypeError, ValueError, InvalidOperation, AttributeError) as exc:
        log.debug("decode into %s failed: %r", getattr(into, "__qualname__", into), exc)
        raise DecodeError(
            f"unexpected response shape for {getattr(into, '__qualname__', 'result')}: {exc!r}",
            resp.body,
            resp.status,
        ) from exc


def model(cls: Any) -> Callable[[Any], Any]:
    """Adapter so a model class with ``from_dict`` can be passed as ``into``."""
    def build(item: Any) -> Any:
        if not isinstance(item, dict):
            raise TypeError(f"expected an object for {cls.__name__}, got {type(item).__name__}")
        return cls.from_dict(item)

    build.__qualname__ = cls.__name__
    return build
