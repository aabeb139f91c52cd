from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable, List, Mapping, Optional, Union
from urllib.parse import quote

from .config import MAIN_URL, ClientConfig
from .credentials import Credentials
from .decoder import decode, decode_page, model
from .dispatcher import USER_AGENT, AuthenticatedDispatcher, PublicDispatcher
from .models import (
    Account,
    Currency,
    CurrencyPrice,
    CurrentTime,
    ExchangeRates,
    Order,
    Page,
    format_date,
)
from .retry import RetryPolicy, TokenBucket
from .signing import Clock, HttpMethod, encode_body
from .transport import AiohttpTransport, Transport


log = logging.getLogger(__name__)


class PublicClient:
    """Unauthenticated market data endpoints.

    Owns its transport (and with it the connection pool) unless one is
    passed in. Use as ``async with PublicClient() as client: ...``.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        config: Optional[ClientConfig] = None,
        transport: Optional[Transport] = None,
        retry: Optional[RetryPolicy] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.config = config or ClientConfig()
        self.base_url = base_url or self.config.api_url or MAIN_URL
        self._owns_transport = transport is None
        self.transport: Transport = transport or AiohttpTransport(
            pool_size=self.config.pool_size, verify_ssl=self.config.verify_ssl
        )
        self.retry = retry or self.config.retry_policy()
        self.limiter: Optional[TokenBucket] = (
            TokenBucket(self.config.max_requests_per_sec)
            if self.config.max_requests_per_sec > 0
            else None
        )
        self.clock = clock or Clock()
        self._public = PublicDispatcher(
            self.transport, self.base_url, timeout=self.config.timeout_sec, user_agent=USER_AGENT
        )

    async def _call(
        self,
        dispatcher: PublicDispatcher,
        method: Union[str, HttpMethod],
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
        into: Optional[Callable[[Any], Any]] = None,
        paged: bool = False,
    ) -> Any:
        body = encode_body(json)

        async def attempt(n: int) -> Any:
            resp = await dispatcher.dispatch(method, path, params=params, body=body)
            if paged:
                return decode_page(resp, into=into)
            return decode(resp, into=into)

        return await self.retry.run(attempt, limiter=self.limiter)

    async def get_public(
        self,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        into: Optional[Callable[[Any], Any]] = None,
    ) -> Any:
        return await self._call(self._public, HttpMethod.GET, path, params=params, into=into)

    async def currencies(self) -> List[Currency]:
        """List known currencies (ISO 4217 codes where possible)."""
        return await self.get_public("/currencies", into=model(Currency))

    async def exchange_rates(self, base: Optional[str] = None) -> ExchangeRates:
        """Rates for one unit of ``base`` (USD when omitted)."""
        params = {"currency": base} if base else None
        return await self.get_public("/exchange-rates", params=params, into=model(ExchangeRates))

    async def buy_price(self, currency_pair: str) -> CurrencyPrice:
        return await self.get_public(f"/prices/{currency_pair}/buy", into=model(CurrencyPrice))

    async def sell_price(self, currency_pair: str) -> CurrencyPrice:
        return await self.get_public(f"/prices/{currency_pair}/sell", into=model(CurrencyPrice))

    async def spot_price(self, currency_pair: str, on: Optional[date] = None) -> CurrencyPrice:
        """Market price, between buy and sell; ``on`` asks for a historic UTC day."""
        params = {"date": format_date(on)} if on else None
        return await self.get_public(
            f"/prices/{currency_pair}/spot", params=params, into=model(CurrencyPrice)
        )

    async def current_time(self) -> CurrentTime:
        return await self.get_public("/time", into=model(CurrentTime))

    async def sync_clock(self) -> float:
        """Align request timestamps with the exchange clock; returns the offset in seconds."""
        server = await self.current_time()
        offset = self.clock.sync(server.timestamp())
        level = logging.WARNING if abs(offset) > self.config.timestamp_window_sec else logging.INFO
        log.log(level, "clock offset against exchange: %.3fs", offset)
        return offset

    async def close(self) -> None:
        if self._owns_transport:
            await self.transport.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


class CoinbaseClient(PublicClient):
    """Authenticated client. Every attempt of every call is signed afresh."""

    def __init__(
        self,
        credentials: Credentials,
        config: Optional[ClientConfig] = None,
        transport: Optional[Transport] = None,
        retry: Optional[RetryPolicy] = None,
        base_url: Optional[str] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        super().__init__(
            base_url=base_url, config=config, transport=transport, retry=retry, clock=clock
        )
        self.credentials = credentials
        self._private = AuthenticatedDispatcher(
            credentials,
            self.transport,
            self.base_url,
            clock=self.clock,
            timeout=self.config.timeout_sec,
            user_agent=USER_AGENT,
        )

    @classmethod
    def from_env(cls, config: Optional[ClientConfig] = None) -> "CoinbaseClient":
        return cls(Credentials.from_env(), config=config)

    async def request(
        self,
        method: Union[str, HttpMethod],
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
        into: Optional[Callable[[Any], Any]] = None,
    ) -> Any:
        return await self._call(self._private, method, path, params=params, json=json, into=into)

    async def get(self, path: str, params: Optional[Mapping[str, Any]] = None, into=None) -> Any:
        return await self.request(HttpMethod.GET, path, params=params, into=into)

    async def post(self, path: str, json: Any = None, into=None) -> Any:
        return await self.request(HttpMethod.POST, path, json=json, into=into)

    async def delete(self, path: str, into=None) -> Any:
        return await self.request(HttpMethod.DELETE, path, into=into)

    async def accounts_page(
        self,
        limit: Optional[int] = None,
        starting_after: Optional[str] = None,
        ending_before: Optional[str] = None,
        order: Optional[Order] = None,
    ) -> Page:
        params = {
            "limit": limit,
            "starting_after": starting_after,
            "ending_before": ending_before,
            "order": order,
        }
        return await self._call(
            self._private, HttpMethod.GET, "/accounts", params=params, into=model(Account), paged=True
        )

    async def accounts(self, limit: Optional[int] = None) -> List[Account]:
        """Every account, following ``next_starting_after`` until the last page."""
        found: List[Account] = []
        cursor: Optional[str] = None
        while True:
            page = await self.accounts_page(limit=limit, starting_after=cursor)
            found.extend(page.data)
            if not page.next_cursor or page.next_cursor == cursor:
                return found
            cursor = page.next_cursor

    async def account(self, account_id: str) -> Account:
        return await self.get(f"/accounts/{quote(account_id, safe='')}", into=model(Account))

    async def close(self) -> None:
        try:
            await super().close()
        finally:
            self.credentials.wipe()

    async def __aenter__(self) -> "CoinbaseClient":
        return self

