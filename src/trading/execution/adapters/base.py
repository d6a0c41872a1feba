"""Venue adapter interface.

Strategies and the execution coordinator depend only on this shape, so venues
(order-book exchanges, DEX aggregators, in-process sample venues) can be
swapped without touching them.

Contract:
- `create_order` raises `VenueError` on transport/validation failure.
- `cancel_order` is idempotent; a no-op if the order is already terminal.
- `get_order_result` raises `VenueError` only on transport failure; a
  non-terminal order is a normal result, never an error.
- `get_market_data` reports `is_available=False` instead of raising.
- `get_position` may raise `NotSupported`.
"""

from __future__ import annotations

from typing import Protocol

from ...models import InternalPosition, MarketData, MarketDataRequest, OrderHandle, OrderOutcome, OrderRequest


class VenueAdapter(Protocol):
    name: str
    # False when cancellation is meaningless (e.g. an already-settled swap).
    supports_cancel: bool

    async def create_order(self, request: OrderRequest) -> OrderHandle:
        """Submit an order and return its venue handle."""

    async def cancel_order(self, handle: OrderHandle) -> None:
        """Cancel an order by handle."""

    async def get_order_result(self, handle: OrderHandle) -> OrderOutcome:
        """Return the current outcome of an order."""

    async def get_market_data(self, request: MarketDataRequest) -> MarketData:
        """Fetch the venue's market data for the requested symbols."""

    async def get_position(self, position_id: str) -> InternalPosition:
        """Return a venue-level position by id."""
