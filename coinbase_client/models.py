from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


def to_decimal(value: Any) -> Decimal:
    """Exact decimal from a wire value. Floats are refused; they have already lost precision."""
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"refusing to build a Decimal from {type(value).__name__} {value!r}")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, str)):
        try:
            result = Decimal(value)
        except InvalidOperation:
            raise ValueError(f"not a decimal number: {value!r}") from None
        if not result.is_finite():
            raise ValueError(f"not a finite decimal: {value!r}")
        return result
    raise TypeError(f"expected a decimal string, got {type(value).__name__}")


def parse_datetime(value: Any) -> datetime:
    if not isinstance(value, str):
        raise TypeError(f"expected an ISO-8601 string, got {type(value).__name__}")
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _optional_datetime(value: Any) -> Optional[datetime]:
    return None if value is None else parse_datetime(value)


class Order(str, Enum):
    ASCENDING = "asc"
    DESCENDING = "desc"


@dataclass(frozen=True, slots=True)
class Currency:
    id: str
    name: str
    min_size: Decimal

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "Currency":
        return cls(id=str(d["id"]), name=str(d["name"]), min_size=to_decimal(d["min_size"]))


@dataclass(frozen=True, slots=True)
class ExchangeRates:
    currency: str
    rates: Dict[str, Decimal] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "ExchangeRates":
        rates = d["rates"]
        if not isinstance(rates, Mapping):
            raise TypeError("rates must be an object")
        return cls(currency=str(d["currency"]), rates={k: to_decimal(v) for k, v in rates.items()})


@dataclass(frozen=True, slots=True)
class CurrencyPrice:
    amount: Decimal
    currency: str
    base: Optional[str] = None

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "CurrencyPrice":
        return cls(amount=to_decimal(d["amount"]), currency=str(d["currency"]), base=d.get("base"))


@dataclass(frozen=True, slots=True)
class CurrentTime:
    iso: datetime
    epoch: Optional[int] = None

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "CurrentTime":
        epoch = d.get("epoch")
        return cls(iso=parse_datetime(d["iso"]), epoch=None if epoch is None else int(epoch))

    def timestamp(self) -> float:
        return self.iso.timestamp()


@dataclass(frozen=True, slots=True)
class Pagination:
    limit: int
    order: Order
    ending_before: Optional[str] = None
    starting_after: Optional[str] = None
    previous_ending_before: Optional[str] = None
    next_starting_after: Optional[str] = None
    previous_uri: Optional[str] = None
    next_uri: Optional[str] = None

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "Pagination":
        return cls(
            limit=int(d["limit"]),
            order=Order(d["order"]),
            ending_before=d.get("ending_before"),
            starting_after=d.get("starting_after"),
            previous_ending_before=d.get("previous_ending_before"),
            next_starting_after=d.get("next_starting_after"),
            previous_uri=d.get("previous_uri"),
            next_uri=d.get("next_uri"),
        )


@dataclass(frozen=True, slots=True)
class Page:
    """One page of a list endpoint: the items plus the cursor to the next one."""

    data: List[Any]
    pagination: Optional[Pagination] = None

    @property
    def next_cursor(self) -> Optional[str]:
        if self.pagination is None:
            return None
        return self.pagination.next_starting_after


@dataclass(frozen=True, slots=True)
class Balance:
    amount: Decimal
    currency: str

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "Balance":
        return cls(amount=to_decimal(d["amount"]), currency=str(d["currency"]))


@dataclass(frozen=True, slots=True)
class Account:
    id: str
    name: str
    primary: bool
    type: str
    currency: str
    balance: Balance
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "Account":
        currency = d["currency"]
        # v2 returns either a code or a nested currency object
        if isinstance(currency, Mapping):
            currency = currency["code"]
        return cls(
            id=str(d["id"]),
            name=str(d["name"]),
            primary=bool(d.get("primary", False)),
            type=str(d["type"]),
            currency=str(currency),
            balance=Balance.from_dict(d["balance"]),
            created_at=_optional_datetime(d.get("created_at")),
            updated_at=_optional_datetime(d.get("updated_at")),
        )


def format_date(value: date) -> str:
    return value.strftime("%Y-%m-%d")
