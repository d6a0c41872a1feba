"""Normalized models for the opportunity -> order -> receipt pipeline.

These models are venue-agnostic. Venue adapters subclass `OrderRequest`,
`OrderHandle` and `MarketDataRequest` to carry their own correlation fields;
everything downstream of the adapter only relies on the base shapes here.

Monetary quantities are `Decimal` end to end (venues send decimal strings).
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field, model_validator

VenueName: TypeAlias = str
OrderId: TypeAlias = str
PositionId: TypeAlias = str
ReceiptId: TypeAlias = str

Side = Literal["buy", "sell"]
PositionStatus = Literal["opened", "closed"]
ReceiptStatus = Literal["success", "failed"]


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def new_id() -> str:
    """Return a random 128-bit identifier."""
    return str(uuid.uuid4())


class _Model(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class OrderState(str, Enum):
    PENDING = "pending"
    LIVE = "live"  # resting maker order
    PARTIALLY_FILLED = "partially_filled"
    FILLED = "filled"
    CANCELED = "canceled"

    def is_terminal(self) -> bool:
        return self in TERMINAL_ORDER_STATES

    def is_alive(self) -> bool:
        return self in ALIVE_ORDER_STATES


TERMINAL_ORDER_STATES = frozenset({OrderState.FILLED, OrderState.CANCELED})
ALIVE_ORDER_STATES = frozenset({OrderState.PENDING, OrderState.LIVE, OrderState.PARTIALLY_FILLED})


# --- orders -----------------------------------------------------------------


class OrderRequest(_Model):
    """Base order intent; venues add their own parameters by subclassing."""

    instrument: str


class OrderLeg(_Model):
    """One order of an opportunity, routed to a named venue."""

    venue: VenueName
    request: OrderRequest


class OrderHandle(_Model):
    """Venue-assigned identity of a created order, required to poll or cancel it."""

    id: OrderId
    venue: VenueName
    instrument: str


class OrderFill(_Model):
    order_id: OrderId
    instrument: str
    amount_out: Decimal | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class OrderOutcome(_Model):
    """Result of one poll. Only `filled` carries a fill payload."""

    id: OrderId
    state: OrderState
    fill: OrderFill | None = None
    details: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _fill_matches_state(self) -> "OrderOutcome":
        if self.state is OrderState.FILLED and self.fill is None:
            raise ValueError("a filled outcome requires a fill payload")
        if self.state is not OrderState.FILLED and self.fill is not None:
            raise ValueError(f"a {self.state.value} outcome cannot carry a fill payload")
        return self

    @property
    def is_filled(self) -> bool:
        return self.state is OrderState.FILLED

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal()


# --- opportunities ----------------------------------------------------------


class OpportunityKind(str, Enum):
    OPEN = "open"
    EDIT = "edit"
    CLOSE = "close"


class Opportunity(_Model):
    """A candidate trade action composed of ordered legs."""

    description: str
    kind: OpportunityKind
    legs: list[OrderLeg] = Field(min_length=1)
    # Required for edit/close: the position the opportunity acts on.
    position_id: PositionId | None = None
    edge_bps: Decimal | None = None

    @model_validator(mode="after")
    def _position_reference(self) -> "Opportunity":
        if not self.legs:
            raise ValueError("an opportunity needs at least one leg")
        if self.kind is OpportunityKind.OPEN and self.position_id is not None:
            raise ValueError("open opportunities cannot reference an existing position")
        if self.kind is not OpportunityKind.OPEN and self.position_id is None:
            raise ValueError(f"{self.kind.value} opportunities must reference a position_id")
        return self


# --- positions + receipts ---------------------------------------------------


class InternalPosition(_Model):
    """Venue-level exposure created by one filled order leg."""

    id: str
    venue: VenueName
    status: PositionStatus = "opened"
    instrument: str
    amount_out: Decimal | None = None


class Position(_Model):
    id: PositionId = Field(default_factory=new_id)
    status: PositionStatus = "opened"
    internal_positions: list[InternalPosition] = Field(default_factory=list)


class Receipt(_Model):
    """Durable record of one opportunity execution attempt."""

    id: ReceiptId = Field(default_factory=new_id)
    status: ReceiptStatus
    positions: list[Position] = Field(default_factory=list)
    description: str = ""
    kind: OpportunityKind | None = None
    error: str | None = None
    created_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def _failed_has_no_positions(self) -> "Receipt":
        if self.status == "failed" and self.positions:
            raise ValueError("a failed receipt cannot reference positions")
        return self


class LedgerSnapshot(_Model):
    positions: dict[PositionId, Position] = Field(default_factory=dict)
    receipts: dict[ReceiptId, Receipt] = Field(default_factory=dict)


# --- market data ------------------------------------------------------------


class PriceLevel(_Model):
    price: Decimal
    size: Decimal


class OrderBook(_Model):
    """Depth snapshot; levels are not assumed to be sorted."""

    asks: list[PriceLevel] = Field(default_factory=list)
    bids: list[PriceLevel] = Field(default_factory=list)


class SwapQuote(_Model):
    """One aggregator quote for an exact-in swap."""

    amount_in: Decimal
    amount_out: Decimal = Decimal("0")
    call_data: str = ""
    value: int = 0
    raw: dict[str, Any] | None = None


class QuotePair(_Model):
    buy: SwapQuote
    sell: SwapQuote


class MarketDataRequest(_Model):
    symbols: list[str] = Field(default_factory=list)


class MarketData(_Model):
    venue: VenueName
    is_available: bool


class OrderBookMarketData(MarketData):
    """Market data from a depth (order-book) venue."""

    order_books: dict[str, OrderBook] = Field(default_factory=dict)


class QuoteMarketData(MarketData):
    """Market data from a one-quote-per-request (aggregator) venue.

    `quotes[symbol][value]` holds the buy (USDC -> token) and sell
    (token -> USDC) quote for a USDC notional `value`.
    """

    quotes: dict[str, dict[Decimal, QuotePair]] = Field(default_factory=dict)


class LiquidityQuote(_Model):
    """Achievable fill for a target notional on one venue. Never persisted."""

    venue: VenueName
    instrument: str
    side: Side
    amount_in: Decimal
    amount_out: Decimal
    unfilled: Decimal = Decimal("0")
    payload: dict[str, Any] = Field(default_factory=dict)


# --- execution events -------------------------------------------------------


class OrderCreated(_Model):
    type: Literal["order_created"] = "order_created"
    correlation_id: str | None = None
    venue: VenueName
    order_id: OrderId
    instrument: str
    attempts: int
    ts: datetime = Field(default_factory=utc_now)


class OrderPolled(_Model):
    type: Literal["order_polled"] = "order_polled"
    correlation_id: str | None = None
    venue: VenueName
    order_id: OrderId
    state: OrderState
    phase: Literal["poll", "cancel_recheck"]
    attempts: int
    ts: datetime = Field(default_factory=utc_now)


class CancelIssued(_Model):
    type: Literal["cancel_issued"] = "cancel_issued"
    correlation_id: str | None = None
    venue: VenueName
    order_id: OrderId
    ts: datetime = Field(default_factory=utc_now)


class ExecutionFailure(_Model):
    type: Literal["execution_failure"] = "execution_failure"
    correlation_id: str | None = None
    venue: VenueName | None = None
    order_id: OrderId | None = None
    stage: str
    attempt: int | None = None
    message: str
    retryable: bool = False
    ts: datetime = Field(default_factory=utc_now)


class ReceiptRecorded(_Model):
    type: Literal["receipt_recorded"] = "receipt_recorded"
    correlation_id: str | None = None
    receipt_id: ReceiptId
    status: ReceiptStatus
    position_ids: list[PositionId] = Field(default_factory=list)
    ts: datetime = Field(default_factory=utc_now)


ExecutionEvent = OrderCreated | OrderPolled | CancelIssued | ExecutionFailure | ReceiptRecorded
