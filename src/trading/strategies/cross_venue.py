"""Cross-venue strategy: Shadow (DEX aggregator) against Lighter (order book).

Each cycle both venues are priced for every configured symbol and USDC
notional. For every (symbol, notional) both routes are evaluated:

- buy on Shadow, sell on Lighter
- buy on Lighter, sell on Shadow

A route becomes an `open` opportunity when its estimated edge reaches
`min_edge_bps`. Opportunities are returned best edge first and all of them
are executed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal

from lighter import constants as lighter_constants

from ..execution.adapters.lighter import LighterOrderRequest, new_client_order_index
from ..execution.adapters.shadow import QUOTE_SYMBOL, ShadowOrderRequest
from ..models import LiquidityQuote, MarketData, MarketDataRequest, Opportunity, OpportunityKind, OrderLeg, Side
from ..pricing import LiquidityPricer, pricer_for
from .base import Strategy

logger = logging.getLogger(__name__)

_BPS = Decimal("10000")

QuoteKey = tuple[str, str, Decimal, Side]


@dataclass(frozen=True)
class RouteEdge:
    """Estimated result of buying on one venue and selling on the other."""

    symbol: str
    value: Decimal
    buy: LiquidityQuote
    sell: LiquidityQuote
    edge_bps: Decimal


def estimate_edge_bps(buy: LiquidityQuote, sell: LiquidityQuote) -> Decimal | None:
    """Edge of selling at `sell`'s average price what `buy` acquired.

    None when either side cannot be fully filled.
    """
    if buy.unfilled > 0 or sell.unfilled > 0:
        return None
    if buy.amount_in <= 0 or buy.amount_out <= 0 or sell.amount_in <= 0 or sell.amount_out <= 0:
        return None
    buy_price = buy.amount_in / buy.amount_out
    sell_price = sell.amount_out / sell.amount_in
    return (sell_price - buy_price) / buy_price * _BPS


class CrossVenueStrategy(Strategy):
    name = "strat1"
    consume_all = True

    def __init__(
        self,
        *,
        symbols: Iterable[str],
        input_values: Iterable[Decimal],
        rough_prices: Mapping[str, Decimal],
        min_edge_bps: Decimal = Decimal("30"),
        primary_venue: str = "shadow",
        hedge_venue: str = "lighter",
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.symbols = [s.upper() for s in symbols]
        self.input_values = [Decimal(v) for v in input_values]
        self.rough_prices = {k.upper(): Decimal(v) for k, v in rough_prices.items()}
        self.min_edge_bps = Decimal(min_edge_bps)
        self.primary_venue = primary_venue
        self.hedge_venue = hedge_venue
        for venue in (primary_venue, hedge_venue):
            if venue not in self.adapters:
                raise ValueError(f"{self.name} needs a {venue!r} adapter")

    async def find_opportunities(self) -> list[Opportunity]:
        request = MarketDataRequest(symbols=self.symbols)
        primary_data, hedge_data = await asyncio.gather(
            self.adapters[self.primary_venue].get_market_data(request),
            self.adapters[self.hedge_venue].get_market_data(request),
        )
        if not primary_data.is_available:
            logger.info("%s: %s market data unavailable, skipping cycle", self.name, self.primary_venue)
            return []
        if not hedge_data.is_available:
            logger.info("%s: %s market data unavailable, skipping cycle", self.name, self.hedge_venue)
            return []

        pricers = {
            self.primary_venue: (pricer_for(primary_data, rough_prices=self.rough_prices), primary_data),
            self.hedge_venue: (pricer_for(hedge_data, rough_prices=self.rough_prices), hedge_data),
        }
        quotes = self.price_all(pricers)

        edges: list[RouteEdge] = []
        for symbol in self.symbols:
            for value in self.input_values:
                for buy_venue, sell_venue in (
                    (self.primary_venue, self.hedge_venue),
                    (self.hedge_venue, self.primary_venue),
                ):
                    buy = quotes[(buy_venue, symbol, value, "buy")]
                    sell = quotes[(sell_venue, symbol, value, "sell")]
                    edge = estimate_edge_bps(buy, sell)
                    if edge is None:
                        continue
                    logger.debug("%s: %s %s buy@%s sell@%s edge=%.2fbps", self.name, symbol, value, buy_venue, sell_venue, edge)
                    if edge >= self.min_edge_bps:
                        edges.append(RouteEdge(symbol=symbol, value=value, buy=buy, sell=sell, edge_bps=edge))

        edges.sort(key=lambda e: e.edge_bps, reverse=True)
        opportunities: list[Opportunity] = []
        for route in edges:
            opportunity = self.build_opportunity(route)
            if opportunity is not None:
                opportunities.append(opportunity)
        return opportunities

    def price_all(self, pricers: Mapping[str, tuple[LiquidityPricer, MarketData]]) -> dict[QuoteKey, LiquidityQuote]:
        """Price every (venue, symbol, value, side) before any route is compared."""
        quotes: dict[QuoteKey, LiquidityQuote] = {}
        for venue, (pricer, market_data) in pricers.items():
            for symbol in self.symbols:
                for value in self.input_values:
                    for side in ("buy", "sell"):
                        quotes[(venue, symbol, value, side)] = pricer.quote(
                            market_data, symbol=symbol, value=value, side=side
                        )
        return quotes

    def build_opportunity(self, route: RouteEdge) -> Opportunity | None:
        """Buy leg then sell leg, with both legs sized to the aggregator swap."""
        if route.buy.venue == self.primary_venue:
            # The aggregator buy fixes how many tokens the hedge must sell.
            shadow_leg = self._shadow_leg(route.symbol, route.buy, "buy")
            hedge_leg = self._lighter_leg(route.symbol, route.sell, is_ask=True, base_amount=route.buy.amount_out)
            legs = [shadow_leg, hedge_leg]
        else:
            shadow_leg = self._shadow_leg(route.symbol, route.sell, "sell")
            hedge_leg = self._lighter_leg(route.symbol, route.buy, is_ask=False, base_amount=route.sell.amount_in)
            legs = [hedge_leg, shadow_leg]

        if shadow_leg is None or hedge_leg is None:
            return None
        return Opportunity(
            description=(
                f"Buy {route.symbol} on {route.buy.venue}, sell on {route.sell.venue} "
                f"({route.value} USDC, {route.edge_bps:.1f} bps)"
            ),
            kind=OpportunityKind.OPEN,
            legs=legs,
            edge_bps=route.edge_bps,
        )

    def _shadow_leg(self, symbol: str, quote: LiquidityQuote, side: Side) -> OrderLeg | None:
        call_data = quote.payload.get("call_data") or ""
        if not call_data:
            logger.warning("%s: no router calldata for %s %s, skipping route", self.name, side, symbol)
            return None
        token_in, token_out = (QUOTE_SYMBOL, symbol) if side == "buy" else (symbol, QUOTE_SYMBOL)
        return OrderLeg(
            venue=self.primary_venue,
            request=ShadowOrderRequest(
                instrument=symbol,
                token_in=token_in,
                token_out=token_out,
                amount_in=quote.amount_in,
                call_data=call_data,
                value=int(quote.payload.get("value") or 0),
            ),
        )

    def _lighter_leg(self, symbol: str, quote: LiquidityQuote, *, is_ask: bool, base_amount: Decimal) -> OrderLeg | None:
        worst_price = quote.payload.get("worst_price")
        if worst_price is None or base_amount <= 0:
            return None
        return OrderLeg(
            venue=self.hedge_venue,
            request=LighterOrderRequest(
                instrument=symbol,
                market_index=lighter_constants.market_id_for(symbol),
                client_order_index=new_client_order_index(),
                base_amount=base_amount,
                price=worst_price,
                is_ask=is_ask,
                order_type=lighter_constants.ORDER_TYPE_LIMIT,
                time_in_force=lighter_constants.ORDER_TIME_IN_FORCE_IMMEDIATE_OR_CANCEL,
            ),
        )
