"""Lighter data models used by `LighterClient`.

A purpose-built subset of the Lighter REST responses. Amounts arrive as
decimal strings and are parsed into `Decimal`. Malformed payloads raise the
trading `ValidationError` so callers never retry them; a non-OK `code` is a
retryable `VenueError`.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Any

import pydantic
from pydantic import BaseModel, ConfigDict

from trading.errors import ValidationError, VenueError

from .constants import CODE_OK


class LighterOrderStatus(str, Enum):
    IN_PROGRESS = "in-progress"
    PENDING = "pending"
    OPEN = "open"
    FILLED = "filled"
    CANCELED = "canceled"
    CANCELED_POST_ONLY = "canceled-post-only"
    CANCELED_REDUCE_ONLY = "canceled-reduce-only"
    CANCELED_POSITION_NOT_ALLOWED = "canceled-position-not-allowed"
    CANCELED_MARGIN_NOT_ALLOWED = "canceled-margin-not-allowed"
    CANCELED_TOO_MUCH_SLIPPAGE = "canceled-too-much-slippage"
    CANCELED_NOT_ENOUGH_LIQUIDITY = "canceled-not-enough-liquidity"
    CANCELED_SELF_TRADE = "canceled-self-trade"
    CANCELED_EXPIRED = "canceled-expired"
    CANCELED_OCO = "canceled-oco"
    CANCELED_CHILD = "canceled-child"
    CANCELED_LIQUIDATION = "canceled-liquidation"

    @property
    def is_canceled(self) -> bool:
        return self.value.startswith("canceled")


class _Model(BaseModel):
    # Lighter payloads contain many more fields than we use.
    model_config = ConfigDict(extra="ignore", frozen=True)

    @classmethod
    def from_api(cls, payload: Any):
        """Validate an API payload, mapping failures to `ValidationError`."""
        try:
            return cls.model_validate(payload)
        except pydantic.ValidationError as exc:
            raise ValidationError(f"Malformed {cls.__name__} payload: {exc}", venue="lighter") from exc


class _CodedResponse(_Model):
    code: int
    message: str | None = None

    def raise_for_code(self, action: str) -> None:
        if self.code != CODE_OK:
            raise VenueError(f"{action} failed: {self.message or self.code}", venue="lighter", status_code=self.code)


class LighterBookOrder(_Model):
    """Resting order on the book (one depth level, possibly one of many at a price)."""

    order_index: int
    order_id: str
    owner_account_index: int
    initial_base_amount: Decimal
    remaining_base_amount: Decimal
    price: Decimal
    order_expiry: int


class LighterOrderBookOrders(_CodedResponse):
    total_asks: int
    asks: list[LighterBookOrder]
    total_bids: int
    bids: list[LighterBookOrder]


class LighterAccountOrder(_Model):
    """An order owned by the configured account."""

    order_index: int
    client_order_index: int
    order_id: str
    market_index: int
    initial_base_amount: Decimal
    price: Decimal
    remaining_base_amount: Decimal
    filled_base_amount: Decimal
    filled_quote_amount: Decimal
    status: str
    is_ask: bool
    reduce_only: bool
    timestamp: int

    @property
    def lighter_status(self) -> LighterOrderStatus | None:
        """Parsed status, or None for a status this client does not know."""
        try:
            return LighterOrderStatus(self.status.lower())
        except ValueError:
            return None


class LighterAccountOrders(_CodedResponse):
    orders: list[LighterAccountOrder]


class LighterNextNonce(_CodedResponse):
    nonce: int


class LighterSendTxResponse(_CodedResponse):
    tx_hash: str | None = None
