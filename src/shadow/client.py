"""Async clients for the Shadow quote API and the Sonic JSON-RPC node.

`ShadowQuoteClient` asks the routing API for exact-in quotes that include
ready-to-send universal router calldata. `JsonRpcChainClient` submits that
calldata with `eth_sendTransaction` (the node holds the wallet) and reads
receipts back with `eth_getTransactionReceipt`.
"""

from __future__ import annotations

import itertools
import logging
from decimal import Decimal
from typing import Any

from config import ShadowConfig
from trading.errors import VenueError
from trading.models import SwapQuote
from transport.http import HttpTransport

from .models import ShadowQuoteResponse, TransactionReceipt
from .tokens import TokenRegistry, from_wei, to_wei

logger = logging.getLogger(__name__)


def _transport_for(config: ShadowConfig, *, venue: str, base_url: str) -> HttpTransport:
    return HttpTransport(
        venue=venue,
        base_url=base_url,
        rate_limit=config.rate_limit,
        max_attempt=config.max_attempt,
        base_delay=config.base_delay,
        backoff_multiplier=config.backoff_multiplier,
        max_delay=config.max_delay,
    )


class ShadowQuoteClient:
    """Exact-in swap quotes with universal router calldata."""

    def __init__(
        self,
        config: ShadowConfig,
        *,
        tokens: TokenRegistry | None = None,
        transport: HttpTransport | None = None,
    ) -> None:
        self.config = config
        self.tokens = tokens or TokenRegistry(config.token_addresses)
        self.transport = transport or _transport_for(config, venue="shadow", base_url=config.api_url)

    async def aclose(self) -> None:
        await self.transport.aclose()

    async def quote(self, token_in: str, token_out: str, amount_in: Decimal) -> SwapQuote:
        """Quote swapping `amount_in` of `token_in` (a trading symbol) into `token_out`."""
        tin = self.tokens.token_for(token_in)
        tout = self.tokens.token_for(token_out)
        response = await self.transport.get(
            "",
            {
                "tokenInAddress": tin.address,
                "tokenOutAddress": tout.address,
                "amount": to_wei(amount_in, tin.decimals),
                "type": "exactIn",
                "tokenInChainId": self.config.chain_id,
                "tokenOutChainId": self.config.chain_id,
                "protocols": "v2,v3,mixed",
                "enableUniversalRouter": True,
                "slippageTolerance": self.config.slippage_tolerance,
                "deadline": self.config.deadline_s,
            },
        )
        parsed = ShadowQuoteResponse.from_api(response)
        if parsed.error_code:
            raise VenueError(f"Quote error for {token_in}->{token_out}: {parsed.error_code}", venue="shadow")

        method = parsed.method_parameters
        return SwapQuote(
            amount_in=amount_in,
            amount_out=from_wei(parsed.quote, tout.decimals),
            call_data=method.calldata if method else "",
            value=method.value if method else 0,
            raw=response if isinstance(response, dict) else None,
        )


class JsonRpcChainClient:
    """Minimal Ethereum JSON-RPC client for the node that holds the wallet."""

    def __init__(self, config: ShadowConfig, *, transport: HttpTransport | None = None) -> None:
        self.config = config
        self.wallet_address = config.wallet_address
        self.transport = transport or _transport_for(config, venue="sonic-rpc", base_url=config.rpc_url)
        self._ids = itertools.count(1)

    async def aclose(self) -> None:
        await self.transport.aclose()

    async def call(self, method: str, params: list[Any]) -> Any:
        body = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        response = await self.transport.post("", body)
        if not isinstance(response, dict):
            raise VenueError(f"{method}: unexpected JSON-RPC response {response!r}", venue="sonic-rpc")
        if response.get("error") is not None:
            raise VenueError(f"{method}: {response['error']}", venue="sonic-rpc")
        return response.get("result")

    async def send_transaction(self, *, to: str, data: str, value: int = 0) -> str:
        """Submit a transaction from the wallet; returns the tx hash."""
        tx_hash = await self.call(
            "eth_sendTransaction",
            [{"from": self.wallet_address, "to": to, "data": data, "value": hex(value)}],
        )
        if not isinstance(tx_hash, str) or not tx_hash.startswith("0x"):
            raise VenueError(f"eth_sendTransaction returned {tx_hash!r}", venue="sonic-rpc")
        logger.debug("sonic tx submitted %s", tx_hash)
        return tx_hash

    async def get_transaction_receipt(self, tx_hash: str) -> TransactionReceipt | None:
        """Receipt for `tx_hash`, or None while the transaction is not mined."""
        result = await self.call("eth_getTransactionReceipt", [tx_hash])
        if result is None:
            return None
        return TransactionReceipt.from_api(result)
