import json
from decimal import Decimal

import pytest

from coinbase_client.models import (
    Account,
    Currency,
    CurrencyPrice,
    CurrentTime,
    ExchangeRates,
    Order,
    Pagination,
    to_decimal,
)


def test_currencies_deserialize():
    payload = json.loads("""
    [
        {"id": "AED", "name": "United Arab Emirates Dirham", "min_size": "0.01000000"},
        {"id": "AFN", "name": "Afghan Afghani", "min_size": "0.01000000"},
        {"id": "ALL", "name": "Albanian Lek", "min_size": "0.01000000"},
        {"id": "AMD", "name": "Armenian Dram", "min_size": "0.01000000"}
    ]""")
    currencies = [Currency.from_dict(c) for c in payload]
    assert len(currencies) == 4
    assert currencies[0].min_size == Decimal("0.01")


def test_exchange_rates_deserialize():
    rates = ExchangeRates.from_dict({
        "currency": "BTC",
        "rates": {
            "AED": "36.73", "AFN": "589.50", "ALL": "1258.82", "AMD": "4769.49",
            "ANG": "17.88", "AOA": "1102.76", "ARS": "90.37", "AUD": "12.93",
            "AWG": "17.93", "AZN": "10.48", "BAM": "17.38",
        },
    })
    assert rates.currency == "BTC"
    assert len(rates.rates) == 11
    assert rates.rates["AFN"] == Decimal("589.50")


def test_currency_price_deserialize():
    price = CurrencyPrice.from_dict({"amount": "1010.25", "currency": "USD"})
    assert price.amount == Decimal("1010.25")
    assert price.currency == "USD"


def test_current_time_deserialize():
    t = CurrentTime.from_dict({"iso": "2015-06-23T18:02:51Z", "epoch": 1435082571})
    assert int(t.timestamp()) == 1435082571
    assert t.epoch == 1435082571


def test_pagination_and_account():
    page = Pagination.from_dict({"limit": 25, "order": "desc", "next_uri": None, "previous_uri": None})
    assert page.order is Order.DESCENDING
    acct = Account.from_dict({
        "id": "58542935-67b5-56e1-a3f9-42686e07fa40",
        "name": "My Vault",
        "primary": False,
        "type": "vault",
        "currency": {"code": "BTC", "name": "Bitcoin"},
        "balance": {"amount": "4.00000000", "currency": "BTC"},
        "created_at": "2015-01-31T20:49:02Z",
    })
    assert acct.currency == "BTC"
    assert acct.balance.amount == Decimal("4")
    assert acct.updated_at is None


def test_to_decimal_rejects_floats_and_garbage():
    with pytest.raises(TypeError):
        to_decimal(0.1)
    with pytest.raises(TypeError):
        to_decimal(True)
    with pytest.raises(ValueError):
        to_decimal("12,5")
    with pytest.raises(ValueError):
        to_decimal("NaN")
    assert to_decimal(7) == Decimal(7)
