import asyncio
from datetime import date
from decimal import Decimal

import pytest

from coinbase_client.client import CoinbaseClient, PublicClient
from coinbase_client.config import ClientConfig
from coinbase_client.credentials import Credentials
from coinbase_client.errors import ApiError, TransportError
from coinbase_client.models import Order
from coinbase_client.retry import RetryPolicy
from coinbase_client.signing import Clock, build_canonical_message, verify

from fakes import SECRET_B64, FakeTransport, make_response


CFG = ClientConfig(api_url="https://api.test/v2", timeout_sec=0.5, max_attempts=1)


def _private(transport, **kw):
    return CoinbaseClient(Credentials("key-1", SECRET_B64, "pp"), config=CFG, transport=transport, **kw)


def test_public_buy_price_is_unsigned():
    transport = FakeTransport(make_response(200, {"data": {"amount": "27012.55", "base": "BTC", "currency": "USD"}}))
    client = PublicClient(config=CFG, transport=transport)
    price = asyncio.run(client.buy_price("BTC-USD"))
    assert price.amount == Decimal("27012.55")
    sent = transport.requests[0]
    assert sent.method == "GET"
    assert sent.url == "https://api.test/v2/prices/BTC-USD/buy"
    assert "CB-ACCESS-SIGN" not in sent.headers
    assert sent.headers["User-Agent"].startswith("coinbase-client-py/")


def test_public_query_params():
    transport = FakeTransport(
        make_response(200, {"data": {"currency": "EUR", "rates": {"USD": "1.08"}}}),
        make_response(200, {"data": {"amount": "100.00", "currency": "USD"}}),
    )
    client = PublicClient(config=CFG, transport=transport)
    rates = asyncio.run(client.exchange_rates("EUR"))
    asyncio.run(client.spot_price("BTC-USD", on=date(2021, 3, 4)))
    assert rates.rates["USD"] == Decimal("1.08")
    assert transport.requests[0].url.endswith("/v2/exchange-rates?currency=EUR")
    assert transport.requests[1].url.endswith("/v2/prices/BTC-USD/spot?date=2021-03-04")


def test_signed_request_headers_verify():
    clock = Clock(time_fn=lambda: 1700000000.0)
    transport = FakeTransport(make_response(200, {"data": []}))
    client = _private(transport, clock=clock)
    assert asyncio.run(client.accounts(limit=5)) == []

    sent = transport.requests[0]
    assert sent.headers["CB-ACCESS-KEY"] == "key-1"
    assert sent.headers["CB-ACCESS-PASSPHRASE"] == "pp"
    assert sent.headers["CB-ACCESS-TIMESTAMP"] == "1700000000"
    assert sent.headers["Content-Type"] == "application/json"
    msg = build_canonical_message("GET", "/v2/accounts?limit=5", b"", 1700000000)
    assert verify(msg, SECRET_B64, sent.headers["CB-ACCESS-SIGN"])


def test_post_body_sent_is_the_body_signed():
    clock = Clock(time_fn=lambda: 1700000000.0)
    transport = FakeTransport(make_response(201, {"data": {"id": "x"}}))
    client = _private(transport, clock=clock)
    asyncio.run(client.post("/accounts/abc/transactions", json={"amount": Decimal("0.10"), "currency": "BTC"}))

    sent = transport.requests[0]
    assert sent.body == b'{"amount":"0.10","currency":"BTC"}'
    msg = build_canonical_message("POST", "/v2/accounts/abc/transactions", sent.body, 1700000000)
    assert verify(msg, SECRET_B64, sent.headers["CB-ACCESS-SIGN"])


def test_concurrent_requests_each_get_their_own_signature():
    transport = FakeTransport(make_response(200, {"data": {}}))
    client = _private(transport)

    async def run():
        await asyncio.gather(*(client.get(f"/accounts/{i}") for i in range(5)))

    asyncio.run(run())
    paths = sorted(r.url for r in transport.requests)
    assert paths == [f"https://api.test/v2/accounts/{i}" for i in range(5)]
    assert len({r.headers["CB-ACCESS-SIGN"] for r in transport.requests}) == 5


def test_hung_transport_times_out():
    class SlowTransport(FakeTransport):
        async def send(self, *args):
            await asyncio.sleep(5)

    client = _private(SlowTransport())
    with pytest.raises(TransportError, match="timed out"):
        asyncio.run(client.get("/accounts"))
    assert not client.credentials.wiped


def test_api_error_surfaces_status_and_message():
    transport = FakeTransport(make_response(403, {"errors": [{"id": "invalid_scope", "message": "Missing wallet:accounts:read"}]}))
    client = _private(transport, retry=RetryPolicy(max_attempts=3, base_delay=0.0))
    with pytest.raises(ApiError) as info:
        asyncio.run(client.accounts())
    assert info.value.status == 403
    assert info.value.code == "invalid_scope"


def test_close_wipes_credentials_and_closes_owned_transport_only():
    transport = FakeTransport(make_response(200, {"data": {}}))
    client = _private(transport)

    async def run():
        async with client:
            await client.get("/user")

    asyncio.run(run())
    assert client.credentials.wiped
    # injected transports belong to the caller
    assert not transport.closed


def test_sync_clock_uses_exchange_time():
    transport = FakeTransport(make_response(200, {"data": {"iso": "2023-11-14T22:13:40Z", "epoch": 1700000020}}))
    clock = Clock(time_fn=lambda: 1700000000.0)
    client = PublicClient(config=CFG, transport=transport, clock=clock)
    offset = asyncio.run(client.sync_clock())
    assert offset == pytest.approx(20.0)
    assert clock.timestamp() == 1700000020


def _account(acct_id):
    return {
        "id": acct_id,
        "name": f"{acct_id} wallet",
        "primary": False,
        "type": "wallet",
        "currency": "BTC",
        "balance": {"amount": "0.50000000", "currency": "BTC"},
    }


def test_accounts_follows_cursor_to_last_page():
    transport = FakeTransport(
        make_response(200, {
            "pagination": {"limit": 1, "order": "desc", "next_starting_after": "acct-1"},
            "data": [_account("acct-1")],
        }),
        make_response(200, {
            "pagination": {"limit": 1, "order": "desc", "starting_after": "acct-1", "next_starting_after": None},
            "data": [_account("acct-2")],
        }),
    )
    client = _private(transport)
    found = asyncio.run(client.accounts(limit=1))
    assert [a.id for a in found] == ["acct-1", "acct-2"]
    assert transport.requests[0].url.endswith("/v2/accounts?limit=1")
    assert transport.requests[1].url.endswith("/v2/accounts?limit=1&starting_after=acct-1")


def test_accounts_page_exposes_pagination():
    transport = FakeTransport(make_response(200, {
        "pagination": {"limit": 25, "order": "asc", "next_starting_after": "acct-9"},
        "data": [_account("acct-1")],
    }))
    client = _private(transport)
    page = asyncio.run(client.accounts_page(order=Order.ASCENDING))
    assert page.pagination.order is Order.ASCENDING
    assert page.next_cursor == "acct-9"
    assert transport.requests[0].url.endswith("/v2/accounts?order=asc")


def test_account_id_is_quoted_once_and_signed_as_sent():
    clock = Clock(time_fn=lambda: 1700000000.0)
    transport = FakeTransport(make_response(200, {"data": _account("a/b c")}))
    client = _private(transport, clock=clock)
    acct = asyncio.run(client.account("a/b c"))
    assert acct.id == "a/b c"

    sent = transport.requests[0]
    assert sent.url == "https://api.test/v2/accounts/a%2Fb%20c"
    msg = build_canonical_message("GET", "/v2/accounts/a%2Fb%20c", b"", 1700000000)
    assert verify(msg, SECRET_B64, sent.headers["CB-ACCESS-SIGN"])
