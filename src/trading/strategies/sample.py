"""Sample single-venue strategy: one open opportunity per available cycle."""

from __future__ import annotations

from ..models import MarketDataRequest, Opportunity, OpportunityKind, OrderLeg, OrderRequest
from .base import Strategy


class SampleStrategy(Strategy):
    name = "ss1"
    consume_all = False

    def __init__(self, *, venue: str = "sample", instrument: str = "BTCUSDT", **kwargs) -> None:
        super().__init__(**kwargs)
        self._venue = venue
        self._instrument = instrument

    async def find_opportunities(self) -> list[Opportunity]:
        market_data = await self.adapters[self._venue].get_market_data(MarketDataRequest(symbols=[self._instrument]))
        if not market_data.is_available:
            return []

        return [
            Opportunity(
                description="Sample opportunity",
                kind=OpportunityKind.OPEN,
                legs=[OrderLeg(venue=self._venue, request=OrderRequest(instrument=self._instrument))],
            )
        ]
