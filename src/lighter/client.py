"""Async client for the Lighter REST API.

Requests go through a shared `HttpTransport` (queue worker, token bucket,
backoff). Write operations are signed by a `TransactionSigner` and submitted
through `sendTx`; every write consumes the account's next nonce.
"""

from __future__ import annotations

import logging
from typing import Any

from config import LighterConfig
from transport.http import HttpTransport

from . import constants
from .models import (
    LighterAccountOrder,
    LighterAccountOrders,
    LighterNextNonce,
    LighterOrderBookOrders,
    LighterSendTxResponse,
)
from .signer import PemTransactionSigner, TransactionSigner

logger = logging.getLogger(__name__)


class LighterClient:
    """Authenticated async client for one Lighter account / API key.

    Members:
    - Config: `config`
    - Signer: `signer` (builds signed `tx_info` payloads)
    - Transport: `transport` (rate-limited, retrying HTTP)
    """

    def __init__(
        self,
        config: LighterConfig,
        *,
        signer: TransactionSigner | None = None,
        transport: HttpTransport | None = None,
    ) -> None:
        self.config = config
        self.signer = signer or PemTransactionSigner(config.private_key)
        self.transport = transport or HttpTransport(
            venue="lighter",
            base_url=config.base_url,
            rate_limit=config.rate_limit,
            max_attempt=config.max_attempt,
            base_delay=config.base_delay,
            backoff_multiplier=config.backoff_multiplier,
            max_delay=config.max_delay,
        )

    async def aclose(self) -> None:
        await self.transport.aclose()

    async def next_nonce(self) -> int:
        """Next nonce for the configured account / API key."""
        response = await self.transport.get(
            constants.NEXT_NONCE,
            {"account_index": self.config.account_index, "api_key_index": self.config.api_key_index},
        )
        parsed = LighterNextNonce.from_api(response)
        parsed.raise_for_code("nextNonce")
        return parsed.nonce

    async def order_book_orders(self, market_id: int, *, limit: int | None = None) -> LighterOrderBookOrders:
        """Resting asks and bids for one market."""
        response = await self.transport.get(
            constants.ORDER_BOOK_ORDERS,
            {"market_id": market_id, "limit": limit or self.config.orderbook_limit},
        )
        parsed = LighterOrderBookOrders.from_api(response)
        parsed.raise_for_code("orderBookOrders")
        return parsed

    async def account_active_orders(self, market_id: int) -> list[LighterAccountOrder]:
        response = await self.transport.get(
            constants.ACCOUNT_ACTIVE_ORDERS,
            {"account_index": self.config.account_index, "market_id": market_id},
        )
        parsed = LighterAccountOrders.from_api(response)
        parsed.raise_for_code("accountActiveOrders")
        return parsed.orders

    async def account_inactive_orders(
        self, market_id: int, *, limit: int = constants.INACTIVE_ORDERS_LIMIT
    ) -> list[LighterAccountOrder]:
        response = await self.transport.get(
            constants.ACCOUNT_INACTIVE_ORDERS,
            {"account_index": self.config.account_index, "market_id": market_id, "limit": limit},
        )
        parsed = LighterAccountOrders.from_api(response)
        parsed.raise_for_code("accountInactiveOrders")
        return parsed.orders

    async def find_order(self, market_id: int, client_order_index: int) -> LighterAccountOrder | None:
        """Look an order up in the active list, then in recent inactive orders."""
        for order in await self.account_active_orders(market_id):
            if order.client_order_index == client_order_index:
                return order
        for order in await self.account_inactive_orders(market_id):
            if order.client_order_index == client_order_index:
                return order
        return None

    async def create_order(self, tx: dict[str, Any]) -> LighterSendTxResponse:
        """Sign and submit a create-order transaction.

        `tx` carries every create field except `nonce`, which is fetched here.
        """
        signed = self.signer.sign_create_order({**tx, "nonce": await self.next_nonce()})
        return await self._send_tx(
            constants.TX_TYPE_CREATE_ORDER,
            signed,
            action="Create order",
            price_protection=self.config.price_protection,
        )

    async def cancel_order(self, *, market_index: int, order_index: int) -> LighterSendTxResponse:
        """Sign and submit a cancel-order transaction."""
        nonce = await self.next_nonce()
        signed = self.signer.sign_cancel_order(
            {"market_index": market_index, "order_index": order_index, "nonce": nonce}
        )
        return await self._send_tx(constants.TX_TYPE_CANCEL_ORDER, signed, action="Cancel order")

    async def _send_tx(
        self, tx_type: int, tx_info: str, *, action: str, price_protection: bool | None = None
    ) -> LighterSendTxResponse:
        body: dict[str, Any] = {"tx_type": tx_type, "tx_info": tx_info}
        if price_protection is not None:
            body["price_protection"] = price_protection
        response = await self.transport.post(constants.SEND_TX, body)
        parsed = LighterSendTxResponse.from_api(response)
        parsed.raise_for_code(action)
        logger.debug("lighter %s accepted tx_hash=%s", action.lower(), parsed.tx_hash)
        return parsed
