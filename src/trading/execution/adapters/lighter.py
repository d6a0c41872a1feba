"""Lighter venue adapter (perpetuals order book)."""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from decimal import Decimal

from lighter import constants
from lighter.client import LighterClient
from lighter.models import LighterAccountOrder, LighterBookOrder, LighterOrderStatus

from ...errors import NotSupported, TradingError
from ...models import (
    InternalPosition,
    MarketData,
    MarketDataRequest,
    OrderBook,
    OrderBookMarketData,
    OrderFill,
    OrderHandle,
    OrderOutcome,
    OrderRequest,
    OrderState,
    PriceLevel,
)
from .base import VenueAdapter

logger = logging.getLogger(__name__)


class LighterOrderRequest(OrderRequest):
    market_index: int
    client_order_index: int
    base_amount: Decimal
    price: Decimal
    is_ask: bool
    order_type: int = constants.ORDER_TYPE_LIMIT
    time_in_force: int = constants.ORDER_TIME_IN_FORCE_GOOD_TILL_TIME
    reduce_only: bool = False
    trigger_price: str = constants.NIL_TRIGGER_PRICE
    # Unix seconds; defaults to 28 days from submission.
    expired_at: int | None = None


class LighterOrderHandle(OrderHandle):
    tx_hash: str
    market_index: int
    client_order_index: int
    request: LighterOrderRequest


_client_order_indexes = itertools.count(time.time_ns() // 1_000_000)


def new_client_order_index() -> int:
    """Increasing client order index, seeded from the start-up time in milliseconds."""
    return next(_client_order_indexes)


def _state_for(order: LighterAccountOrder) -> OrderState:
    status = order.lighter_status
    if status is None:
        logger.warning("Unknown Lighter status %r for order %s, treating as pending", order.status, order.order_id)
        return OrderState.PENDING
    if status is LighterOrderStatus.FILLED:
        return OrderState.FILLED
    if status is LighterOrderStatus.OPEN:
        return OrderState.PARTIALLY_FILLED if order.filled_base_amount > 0 else OrderState.LIVE
    if status.is_canceled:
        return OrderState.CANCELED
    return OrderState.PENDING


def _levels(orders: list[LighterBookOrder]) -> list[PriceLevel]:
    return [PriceLevel(price=o.price, size=o.remaining_base_amount) for o in orders]


class LighterExecutionAdapter(VenueAdapter):
    """VenueAdapter implementation backed by `LighterClient`."""

    supports_cancel = True

    def __init__(self, client: LighterClient, *, name: str = "lighter"):
        self.name = name
        self._client = client

    async def create_order(self, request: OrderRequest) -> LighterOrderHandle:
        if not isinstance(request, LighterOrderRequest):
            raise TypeError(f"Lighter needs a LighterOrderRequest, got {type(request).__name__}")

        tx = {
            "market_index": request.market_index,
            "client_order_index": request.client_order_index,
            "base_amount": format(request.base_amount, "f"),
            "price": format(request.price, "f"),
            "is_ask": 1 if request.is_ask else 0,
            "order_type": request.order_type,
            "time_in_force": request.time_in_force,
            "reduce_only": 1 if request.reduce_only else 0,
            "trigger_price": request.trigger_price,
            "order_expiry": request.expired_at or int(time.time()) + constants.DEFAULT_28_DAY_ORDER_EXPIRY,
        }
        response = await self._client.create_order(tx)
        tx_hash = response.tx_hash or ""
        return LighterOrderHandle(
            id=tx_hash or f"{request.market_index}:{request.client_order_index}",
            venue=self.name,
            instrument=request.instrument,
            tx_hash=tx_hash,
            market_index=request.market_index,
            client_order_index=request.client_order_index,
            request=request,
        )

    async def cancel_order(self, handle: OrderHandle) -> None:
        h = self._handle(handle)
        await self._client.cancel_order(market_index=h.market_index, order_index=h.client_order_index)
        logger.info("lighter cancel submitted for order %s", h.id)

    async def get_order_result(self, handle: OrderHandle) -> OrderOutcome:
        h = self._handle(handle)
        order = await self._client.find_order(h.market_index, h.client_order_index)
        if order is None:
            return OrderOutcome(id=h.id, state=OrderState.PENDING, details={"found": False})

        state = _state_for(order)
        details = {
            "lighter_status": order.status,
            "filled_base_amount": str(order.filled_base_amount),
            "filled_quote_amount": str(order.filled_quote_amount),
            "remaining_base_amount": str(order.remaining_base_amount),
        }
        fill = None
        if state is OrderState.FILLED:
            # Asks sell base for quote; bids buy base with quote.
            amount_out = order.filled_quote_amount if h.request.is_ask else order.filled_base_amount
            fill = OrderFill(order_id=h.id, instrument=h.instrument, amount_out=amount_out, details=details)
        return OrderOutcome(id=h.id, state=state, fill=fill, details=details)

    async def get_market_data(self, request: MarketDataRequest) -> MarketData:
        try:
            market_ids = [constants.market_id_for(s) for s in request.symbols]
            books = await asyncio.gather(*(self._client.order_book_orders(m) for m in market_ids))
        except (TradingError, ValueError):
            logger.error("Failed to get Lighter market data", exc_info=True)
            return OrderBookMarketData(venue=self.name, is_available=False)

        return OrderBookMarketData(
            venue=self.name,
            is_available=True,
            order_books={
                symbol: OrderBook(asks=_levels(book.asks), bids=_levels(book.bids))
                for symbol, book in zip(request.symbols, books)
            },
        )

    async def get_position(self, position_id: str) -> InternalPosition:
        raise NotSupported("Lighter positions are not tracked by this adapter")

    def _handle(self, handle: OrderHandle) -> LighterOrderHandle:
        if not isinstance(handle, LighterOrderHandle):
            raise TypeError(f"Lighter needs a LighterOrderHandle, got {type(handle).__name__}")
        return handle
