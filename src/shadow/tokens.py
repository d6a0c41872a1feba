"""Token registry for the Shadow DEX on Sonic.

Trading symbols map onto wrapped ERC-20 tokens; amounts cross the wire as
integer base units ("wei") of the token's decimals.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal

WRAPPED_SYMBOLS: dict[str, str] = {
    "SONIC": "WSONIC",
    "BTC": "WBTC",
    "ETH": "WETH",
    "USDC": "USDC",
}

TOKEN_DECIMALS: dict[str, int] = {
    "WSONIC": 18,
    "WBTC": 8,
    "WETH": 18,
    "USDC": 6,
}


@dataclass(frozen=True)
class Token:
    symbol: str
    address: str
    decimals: int


class TokenRegistry:
    """Resolves trading symbols to configured token addresses."""

    def __init__(self, addresses: Mapping[str, str]) -> None:
        self._tokens: dict[str, Token] = {}
        for symbol, address in addresses.items():
            wrapped = WRAPPED_SYMBOLS.get(symbol.upper())
            if wrapped is None:
                raise ValueError(f"Token {symbol} not found in mapping")
            self._tokens[symbol.upper()] = Token(symbol=wrapped, address=address, decimals=TOKEN_DECIMALS[wrapped])

    def token_for(self, symbol: str) -> Token:
        try:
            return self._tokens[symbol.upper()]
        except KeyError:
            raise ValueError(f"No Shadow token address configured for {symbol}") from None

    def require(self, symbols: list[str]) -> None:
        """Fail fast when any symbol lacks a configured address."""
        for symbol in symbols:
            self.token_for(symbol)


def to_wei(amount: Decimal, decimals: int) -> int:
    """Convert a token amount to integer base units, rounding toward zero."""
    if amount < 0:
        raise ValueError(f"amount must be >= 0. Got: {amount}")
    return int((amount * (Decimal(10) ** decimals)).to_integral_value(rounding=ROUND_DOWN))


def from_wei(raw: int, decimals: int) -> Decimal:
    return Decimal(raw) / (Decimal(10) ** decimals)

