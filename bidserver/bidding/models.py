"""Bid, price and outbid-event data structures."""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from .errors import InvalidFormat

CURRENCY_SYMBOLS = {
    "$": "USD",
    "€": "EUR",
    "£": "GBP",
    "¥": "JPY",
}

_FORMAT_MESSAGE = "Invalid bid value format. It should start with a currency symbol such as $"

_PRICE_PATTERN = re.compile(
    r"^(?P<symbol>[$€£¥])(?P<amount>\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?)$"
)


@dataclass(frozen=True)
class Price:
    currency: str
    amount: Decimal
    text: str

    def __str__(self) -> str:
        return self.text


def parse_price(value: Any) -> Price:
    """Parse a currency-tagged amount such as ``"$15"`` or ``"€1,250.50"``."""
    if not isinstance(value, str):
        raise InvalidFormat(_FORMAT_MESSAGE)
    text = value.strip()
    match = _PRICE_PATTERN.match(text)
    if not match:
        raise InvalidFormat(_FORMAT_MESSAGE)
    try:
        amount = Decimal(match.group("amount").replace(",", ""))
    except InvalidOperation as exc:  # pragma: no cover - regex guarantees digits
        raise InvalidFormat(f"invalid amount {text!r}") from exc
    return Price(currency=CURRENCY_SYMBOLS[match.group("symbol")], amount=amount, text=text)


@dataclass(frozen=True)
class Bid:
    username: str
    bid_price: str

    def to_dict(self) -> dict[str, str]:
        return {"username": self.username, "bid_price": self.bid_price}

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Bid":
        return cls(username=payload["username"], bid_price=payload["bid_price"])


@dataclass(frozen=True)
class OutbidEvent:
    previous_bidder: str
    listing_id: int
    new_price: str

    @property
    def message(self) -> str:
        return f"New bid of {self.new_price} on product with ID {self.listing_id}"

    def to_payload(self) -> dict[str, str]:
        return {"message": self.message}
