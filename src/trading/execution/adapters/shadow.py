"""Shadow venue adapter (DEX aggregator on Sonic).

An order is one swap transaction built from a quote's router calldata. Once
sent it cannot be cancelled: it either mines (filled or reverted) or is still
pending.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from decimal import Decimal

from shadow.client import JsonRpcChainClient, ShadowQuoteClient
from shadow.tokens import from_wei

from ...errors import NotSupported, TradingError, ValidationError
from ...models import (
    InternalPosition,
    MarketData,
    MarketDataRequest,
    OrderFill,
    OrderHandle,
    OrderOutcome,
    OrderRequest,
    OrderState,
    QuoteMarketData,
    QuotePair,
    SwapQuote,
)
from ...pricing import base_amount_for
from .base import VenueAdapter

logger = logging.getLogger(__name__)

QUOTE_SYMBOL = "USDC"


class ShadowOrderRequest(OrderRequest):
    token_in: str
    token_out: str
    amount_in: Decimal
    call_data: str
    value: int = 0


class ShadowOrderHandle(OrderHandle):
    tx_hash: str
    request: ShadowOrderRequest


class ShadowExecutionAdapter(VenueAdapter):
    """VenueAdapter implementation backed by the Shadow quote API and a Sonic node."""

    supports_cancel = False

    def __init__(
        self,
        quotes: ShadowQuoteClient,
        chain: JsonRpcChainClient,
        *,
        router_address: str,
        input_values: Sequence[Decimal],
        rough_prices: Mapping[str, Decimal],
        name: str = "shadow",
    ):
        self.name = name
        self._quotes = quotes
        self._chain = chain
        self._router_address = router_address
        self._input_values = [Decimal(v) for v in input_values]
        self._rough_prices = dict(rough_prices)

    async def create_order(self, request: OrderRequest) -> ShadowOrderHandle:
        if not isinstance(request, ShadowOrderRequest):
            raise TypeError(f"Shadow needs a ShadowOrderRequest, got {type(request).__name__}")
        if not request.call_data:
            raise ValidationError("Shadow order has no router calldata", venue=self.name)

        tx_hash = await self._chain.send_transaction(
            to=self._router_address, data=request.call_data, value=request.value
        )
        return ShadowOrderHandle(
            id=tx_hash, venue=self.name, instrument=request.instrument, tx_hash=tx_hash, request=request
        )

    async def cancel_order(self, handle: OrderHandle) -> None:
        return None

    async def get_order_result(self, handle: OrderHandle) -> OrderOutcome:
        if not isinstance(handle, ShadowOrderHandle):
            raise TypeError(f"Shadow needs a ShadowOrderHandle, got {type(handle).__name__}")

        receipt = await self._chain.get_transaction_receipt(handle.tx_hash)
        if receipt is None:
            return OrderOutcome(id=handle.id, state=OrderState.PENDING)
        if not receipt.succeeded:
            return OrderOutcome(id=handle.id, state=OrderState.CANCELED, details={"reverted": True})

        token_out = self._quotes.tokens.token_for(handle.request.token_out)
        raw_amount = receipt.transfer_amount(token=token_out.address, recipient=receipt.sender)
        if raw_amount is None:
            raise ValidationError(f"No {token_out.symbol} transfer to sender in tx {handle.tx_hash}", venue=self.name)

        amount_out = from_wei(raw_amount, token_out.decimals)
        return OrderOutcome(
            id=handle.id,
            state=OrderState.FILLED,
            fill=OrderFill(
                order_id=handle.id,
                instrument=handle.instrument,
                amount_out=amount_out,
                details={"tx_hash": handle.tx_hash, "token_out": token_out.symbol},
            ),
        )

    async def get_market_data(self, request: MarketDataRequest) -> MarketData:
        """Quote every (symbol, input value) in both directions.

        Buys swap `value` USDC into the token; sells swap the token amount
        worth `value` at the rough price back into USDC.
        """
        try:
            sizes = [
                (symbol, value, base_amount_for(value, symbol, self._rough_prices))
                for symbol in request.symbols
                for value in self._input_values
            ]
            buys = [self._quote_or_none(QUOTE_SYMBOL, symbol, value) for symbol, value, _ in sizes]
            sells = [self._quote_or_none(symbol, QUOTE_SYMBOL, amount) for symbol, _, amount in sizes]
            results = await asyncio.gather(*buys, *sells)
        except (TradingError, ValueError):
            logger.error("Failed to get Shadow market data", exc_info=True)
            return QuoteMarketData(venue=self.name, is_available=False)

        if sizes and all(q is None for q in results):
            logger.error("Every Shadow quote failed; marking market data unavailable")
            return QuoteMarketData(venue=self.name, is_available=False)

        buy_quotes, sell_quotes = results[: len(sizes)], results[len(sizes) :]
        quotes: dict[str, dict[Decimal, QuotePair]] = {}
        for (symbol, value, amount), buy, sell in zip(sizes, buy_quotes, sell_quotes):
            quotes.setdefault(symbol, {})[value] = QuotePair(
                buy=buy if buy is not None else SwapQuote(amount_in=value),
                sell=sell if sell is not None else SwapQuote(amount_in=amount),
            )
        return QuoteMarketData(venue=self.name, is_available=True, quotes=quotes)

    async def _quote_or_none(self, token_in: str, token_out: str, amount_in: Decimal) -> SwapQuote | None:
        # Unknown tokens are a configuration error and fail the whole fetch.
        self._quotes.tokens.token_for(token_in)
        self._quotes.tokens.token_for(token_out)
        try:
            return await self._quotes.quote(token_in, token_out, amount_in)
        except TradingError as exc:
            logger.warning("Shadow quote %s->%s for %s failed: %s", token_in, token_out, amount_in, exc)
            return None

    async def get_position(self, position_id: str) -> InternalPosition:
        raise NotSupported("Shadow positions are not tracked by this adapter")
