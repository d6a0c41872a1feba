"""Lighter exchange constants (market ids, tx types, order codes, endpoints)."""

from typing import Final

MARKET_ID_MAP: Final[dict[str, int]] = {
    "ETH": 0,
    "BTC": 1,
    "SONIC": 32,
}

DEFAULT_28_DAY_ORDER_EXPIRY: Final[int] = 28 * 24 * 60 * 60
NIL_TRIGGER_PRICE: Final[str] = "0"

TX_TYPE_CREATE_ORDER: Final[int] = 0
TX_TYPE_CANCEL_ORDER: Final[int] = 1

ORDER_TYPE_LIMIT: Final[int] = 0
ORDER_TYPE_MARKET: Final[int] = 1

ORDER_TIME_IN_FORCE_GOOD_TILL_TIME: Final[int] = 0
ORDER_TIME_IN_FORCE_IMMEDIATE_OR_CANCEL: Final[int] = 1
ORDER_TIME_IN_FORCE_POST_ONLY: Final[int] = 2

CODE_OK: Final[int] = 200

SEND_TX: Final[str] = "/api/v1/sendTx"
NEXT_NONCE: Final[str] = "/api/v1/nextNonce"
ORDER_BOOK_ORDERS: Final[str] = "/api/v1/orderBookOrders"
ACCOUNT_ACTIVE_ORDERS: Final[str] = "/api/v1/accountActiveOrders"
ACCOUNT_INACTIVE_ORDERS: Final[str] = "/api/v1/accountInactiveOrders"

INACTIVE_ORDERS_LIMIT: Final[int] = 50


def market_id_for(symbol: str) -> int:
    try:
        return MARKET_ID_MAP[symbol.upper()]
    except KeyError:
        raise ValueError(f"Unknown Lighter symbol: {symbol}") from None
