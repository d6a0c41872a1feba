"""Liquidity pricing: how much a target notional actually buys or sells.

Two kinds of venue are priced behind one interface:

- depth venues expose an order book, priced by walking levels (`walk_book`);
- aggregator venues return one quote per requested amount, priced by lookup.

Everything here is pure and uses `Decimal` arithmetic.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal
from typing import Protocol

from .models import (
    LiquidityQuote,
    MarketData,
    OrderBook,
    OrderBookMarketData,
    PriceLevel,
    QuoteMarketData,
    Side,
)

_ZERO = Decimal("0")


@dataclass(frozen=True)
class DepthFill:
    """Result of walking one side of a book.

    For a buy, `amount_in`/`consumed`/`unfilled` are in quote currency and
    `amount_out` in base units; for a sell it is the other way round.
    """

    side: Side
    amount_in: Decimal
    amount_out: Decimal
    consumed: Decimal
    unfilled: Decimal
    worst_price: Decimal | None
    levels_used: int


def walk_book(
    levels: Sequence[PriceLevel],
    amount_in: Decimal,
    side: Side,
    *,
    decimals: int | None = None,
) -> DepthFill:
    """Greedily consume `levels` in favorable-price order until `amount_in` runs out.

    Buys take the cheapest asks first, sells hit the highest bids first.
    Equal prices keep the order they were given in.
    """
    amount_in = Decimal(amount_in)
    if amount_in < 0:
        raise ValueError(f"amount_in must be >= 0. Got: {amount_in}")
    if side not in ("buy", "sell"):
        raise ValueError(f"side must be 'buy' or 'sell'. Got: {side!r}")

    ordered = sorted(levels, key=lambda lvl: lvl.price, reverse=(side == "sell"))

    remaining = amount_in
    amount_out = _ZERO
    worst_price: Decimal | None = None
    used = 0

    for level in ordered:
        if remaining <= 0:
            break
        if level.price <= 0 or level.size <= 0:
            continue

        if side == "buy":
            affordable = remaining / level.price
            if affordable <= level.size:
                amount_out += affordable
                remaining = _ZERO
            else:
                amount_out += level.size
                remaining -= level.size * level.price
        else:
            if remaining <= level.size:
                amount_out += remaining * level.price
                remaining = _ZERO
            else:
                amount_out += level.size * level.price
                remaining -= level.size

        worst_price = level.price
        used += 1

    if decimals is not None:
        amount_out = amount_out.quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_DOWN)

    return DepthFill(
        side=side,
        amount_in=amount_in,
        amount_out=amount_out,
        consumed=amount_in - remaining,
        unfilled=remaining,
        worst_price=worst_price,
        levels_used=used,
    )


class LiquidityPricer(Protocol):
    """Prices a USDC notional on one venue from that venue's market data."""

    def quote(self, market_data: MarketData, *, symbol: str, value: Decimal, side: Side) -> LiquidityQuote:
        """Return the achievable fill for `value` USDC on `side`."""


class DepthWalkPricer:
    """Prices order-book venues by walking asks (buy) or bids (sell).

    Sells are sized in base units, converted from the USDC notional with a
    rough reference price per symbol.
    """

    def __init__(self, rough_prices: Mapping[str, Decimal], *, decimals: int | None = None) -> None:
        self._rough_prices = {k: Decimal(v) for k, v in rough_prices.items()}
        self._decimals = decimals

    def quote(self, market_data: MarketData, *, symbol: str, value: Decimal, side: Side) -> LiquidityQuote:
        if not isinstance(market_data, OrderBookMarketData):
            raise TypeError(f"DepthWalkPricer needs OrderBookMarketData, got {type(market_data).__name__}")

        book = market_data.order_books.get(symbol) or OrderBook()
        if side == "buy":
            fill = walk_book(book.asks, value, "buy", decimals=self._decimals)
        else:
            fill = walk_book(book.bids, base_amount_for(value, symbol, self._rough_prices), "sell", decimals=self._decimals)

        return LiquidityQuote(
            venue=market_data.venue,
            instrument=symbol,
            side=side,
            amount_in=fill.amount_in,
            amount_out=fill.amount_out,
            unfilled=fill.unfilled,
            payload={"worst_price": fill.worst_price, "levels_used": fill.levels_used},
        )


class AggregatorQuotePricer:
    """Prices aggregator venues from the per-notional quotes fetched with market data."""

    def quote(self, market_data: MarketData, *, symbol: str, value: Decimal, side: Side) -> LiquidityQuote:
        if not isinstance(market_data, QuoteMarketData):
            raise TypeError(f"AggregatorQuotePricer needs QuoteMarketData, got {type(market_data).__name__}")

        pair = market_data.quotes.get(symbol, {}).get(Decimal(value))
        if pair is None:
            return LiquidityQuote(
                venue=market_data.venue,
                instrument=symbol,
                side=side,
                amount_in=Decimal(value),
                amount_out=_ZERO,
                unfilled=Decimal(value),
            )

        swap = pair.buy if side == "buy" else pair.sell
        # A quote either routes the whole amount or nothing.
        unfilled = _ZERO if swap.amount_out > 0 else swap.amount_in
        return LiquidityQuote(
            venue=market_data.venue,
            instrument=symbol,
            side=side,
            amount_in=swap.amount_in,
            amount_out=swap.amount_out,
            unfilled=unfilled,
            payload={"call_data": swap.call_data, "value": swap.value},
        )


def base_amount_for(value: Decimal, symbol: str, rough_prices: Mapping[str, Decimal]) -> Decimal:
    """Convert a USDC notional into base units of `symbol` using its rough price."""
    price = rough_prices.get(symbol)
    if price is None or price <= 0:
        raise ValueError(f"Rough price not found for token {symbol}")
    return Decimal(value) / Decimal(price)


def pricer_for(market_data: MarketData, *, rough_prices: Mapping[str, Decimal]) -> LiquidityPricer:
    """Pick the pricer matching the shape of `market_data`."""
    if isinstance(market_data, OrderBookMarketData):
        return DepthWalkPricer(rough_prices)
    if isinstance(market_data, QuoteMarketData):
        return AggregatorQuotePricer()
    raise TypeError(f"No liquidity pricer for {type(market_data).__name__}")
