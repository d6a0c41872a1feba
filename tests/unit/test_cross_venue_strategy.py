from __future__ import annotations

from decimal import Decimal

import pytest

from trading.execution.adapters.lighter import LighterOrderRequest
from trading.execution.adapters.sample import SampleExecutionAdapter
from trading.execution.adapters.shadow import ShadowOrderRequest
from trading.execution.coordinator import OrderExecutionCoordinator
from trading.models import (
    LiquidityQuote,
    MarketData,
    MarketDataRequest,
    OrderBook,
    OrderBookMarketData,
    PriceLevel,
    QuoteMarketData,
    QuotePair,
    SwapQuote,
)
from trading.portfolio.ledger import Ledger
from trading.strategies.cross_venue import CrossVenueStrategy, estimate_edge_bps

D = Decimal


class _StaticVenue(SampleExecutionAdapter):
    """Fills every order and serves fixed market data."""

    def __init__(self, name: str, market_data: MarketData) -> None:
        super().__init__(name)
        self.market_data = market_data
        self.requests: list[MarketDataRequest] = []

    async def get_market_data(self, request: MarketDataRequest) -> MarketData:
        self.requests.append(request)
        return self.market_data


def _shadow_data(*, buy_out: str = "40", sell_out: str = "9.9", buy_calldata: str = "0xbuy") -> QuoteMarketData:
    return QuoteMarketData(
        venue="shadow",
        is_available=True,
        quotes={
            "SONIC": {
                D("10"): QuotePair(
                    buy=SwapQuote(amount_in=D("10"), amount_out=D(buy_out), call_data=buy_calldata),
                    sell=SwapQuote(amount_in=D("40"), amount_out=D(sell_out), call_data="0xsell"),
                )
            }
        },
    )


def _lighter_data(*, ask: str, bid: str) -> OrderBookMarketData:
    return OrderBookMarketData(
        venue="lighter",
        is_available=True,
        order_books={
            "SONIC": OrderBook(
                asks=[PriceLevel(price=D(ask), size=D("1000"))],
                bids=[PriceLevel(price=D(bid), size=D("1000"))],
            )
        },
    )


def _strategy(shadow: MarketData, lighter: MarketData, *, min_edge_bps: str = "30") -> CrossVenueStrategy:
    adapters = {"shadow": _StaticVenue("shadow", shadow), "lighter": _StaticVenue("lighter", lighter)}
    return CrossVenueStrategy(
        symbols=["sonic"],
        input_values=[D("10")],
        rough_prices={"SONIC": D("0.25")},
        min_edge_bps=D(min_edge_bps),
        adapters=adapters,
        ledger=Ledger(),
        coordinator=OrderExecutionCoordinator(adapters=adapters, poll_delay_s=0),
    )


def _quote(venue: str, side: str, amount_in: str, amount_out: str, unfilled: str = "0") -> LiquidityQuote:
    return LiquidityQuote(
        venue=venue,
        instrument="SONIC",
        side=side,  # type: ignore[arg-type]
        amount_in=D(amount_in),
        amount_out=D(amount_out),
        unfilled=D(unfilled),
    )


def test_edge_compares_average_prices():
    buy = _quote("shadow", "buy", "10", "40")
    sell = _quote("lighter", "sell", "40", "10.4")
    assert estimate_edge_bps(buy, sell) == D("400")


def test_edge_is_undefined_for_partial_or_empty_fills():
    assert estimate_edge_bps(_quote("a", "buy", "10", "40", unfilled="1"), _quote("b", "sell", "40", "10")) is None
    assert estimate_edge_bps(_quote("a", "buy", "10", "0"), _quote("b", "sell", "40", "10")) is None


@pytest.mark.asyncio
async def test_buy_on_aggregator_sell_on_book() -> None:
    strategy = _strategy(_shadow_data(), _lighter_data(ask="0.27", bid="0.26"))

    (opportunity,) = await strategy.find_opportunities()

    assert opportunity.edge_bps == D("400")
    assert opportunity.description == "Buy SONIC on shadow, sell on lighter (10 USDC, 400.0 bps)"
    shadow_leg, lighter_leg = opportunity.legs
    assert shadow_leg.venue == "shadow"
    assert isinstance(shadow_leg.request, ShadowOrderRequest)
    assert (shadow_leg.request.token_in, shadow_leg.request.token_out) == ("USDC", "SONIC")
    assert shadow_leg.request.call_data == "0xbuy"
    assert lighter_leg.venue == "lighter"
    assert isinstance(lighter_leg.request, LighterOrderRequest)
    assert lighter_leg.request.is_ask is True
    assert lighter_leg.request.base_amount == D("40")
    assert lighter_leg.request.price == D("0.26")
    assert lighter_leg.request.market_index == 32


@pytest.mark.asyncio
async def test_buy_on_book_sell_on_aggregator() -> None:
    strategy = _strategy(_shadow_data(buy_out="30"), _lighter_data(ask="0.20", bid="0.19"))

    (opportunity,) = await strategy.find_opportunities()

    lighter_leg, shadow_leg = opportunity.legs
    assert lighter_leg.venue == "lighter"
    assert lighter_leg.request.is_ask is False  # type: ignore[attr-defined]
    assert lighter_leg.request.base_amount == D("40")  # type: ignore[attr-defined]
    assert lighter_leg.request.price == D("0.20")  # type: ignore[attr-defined]
    assert (shadow_leg.request.token_in, shadow_leg.request.token_out) == ("SONIC", "USDC")  # type: ignore[attr-defined]
    assert shadow_leg.request.call_data == "0xsell"  # type: ignore[attr-defined]


@pytest.mark.asyncio
async def test_edges_below_threshold_are_ignored() -> None:
    strategy = _strategy(_shadow_data(), _lighter_data(ask="0.27", bid="0.26"), min_edge_bps="500")
    assert await strategy.find_opportunities() == []


@pytest.mark.asyncio
async def test_route_without_calldata_is_skipped() -> None:
    strategy = _strategy(_shadow_data(buy_calldata=""), _lighter_data(ask="0.27", bid="0.26"))
    assert await strategy.find_opportunities() == []


@pytest.mark.asyncio
async def test_unavailable_venue_skips_cycle() -> None:
    strategy = _strategy(QuoteMarketData(venue="shadow", is_available=False), _lighter_data(ask="0.27", bid="0.26"))
    assert await strategy.find_opportunities() == []
    assert await strategy.process() == []


@pytest.mark.asyncio
async def test_process_executes_both_legs_into_one_position() -> None:
    strategy = _strategy(_shadow_data(), _lighter_data(ask="0.27", bid="0.26"))

    (receipt,) = await strategy.process()

    assert receipt.status == "success"
    (position,) = receipt.positions
    assert [ip.venue for ip in position.internal_positions] == ["shadow", "lighter"]
    assert strategy.get_positions() == [position]
    assert strategy.adapters["shadow"].requests[0].symbols == ["SONIC"]  # type: ignore[attr-defined]


def test_both_venues_are_required() -> None:
    with pytest.raises(ValueError, match="lighter"):
        CrossVenueStrategy(
            symbols=["SONIC"],
            input_values=[D("10")],
            rough_prices={"SONIC": D("0.25")},
            adapters={"shadow": SampleExecutionAdapter("shadow")},
            ledger=Ledger(),
        )
