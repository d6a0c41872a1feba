"""In-process sample venue: every order fills immediately.

Used by the sample strategy and as a smoke test for the execution pipeline
without touching a real venue.
"""

from __future__ import annotations

from ...errors import NotSupported
from ...models import (
    InternalPosition,
    MarketData,
    MarketDataRequest,
    OrderFill,
    OrderHandle,
    OrderOutcome,
    OrderRequest,
    OrderState,
    new_id,
)
from .base import VenueAdapter


class SampleExecutionAdapter(VenueAdapter):
    """VenueAdapter that fills every order it is given."""

    supports_cancel = True

    def __init__(self, name: str = "sample") -> None:
        self.name = name
        self._canceled: set[str] = set()

    async def create_order(self, request: OrderRequest) -> OrderHandle:
        return OrderHandle(id=new_id(), venue=self.name, instrument=request.instrument)

    async def cancel_order(self, handle: OrderHandle) -> None:
        self._canceled.add(handle.id)

    async def get_order_result(self, handle: OrderHandle) -> OrderOutcome:
        if handle.id in self._canceled:
            return OrderOutcome(id=handle.id, state=OrderState.CANCELED)
        return OrderOutcome(
            id=handle.id,
            state=OrderState.FILLED,
            fill=OrderFill(order_id=handle.id, instrument=handle.instrument),
        )

    async def get_market_data(self, request: MarketDataRequest) -> MarketData:
        return MarketData(venue=self.name, is_available=True)

    async def get_position(self, position_id: str) -> InternalPosition:
        raise NotSupported(f"{self.name} does not expose positions")
