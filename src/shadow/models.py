"""Shadow quote API and Sonic JSON-RPC payload models."""

from __future__ import annotations

from typing import Any

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from trading.errors import ValidationError

# keccak256("Transfer(address,address,uint256)")
TRANSFER_TOPIC = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"


def _parse_quantity(value: Any) -> int:
    """Parse a JSON-RPC quantity: hex string, decimal string or int."""
    if value is None or value == "":
        return 0
    if isinstance(value, int):
        return value
    raw = str(value)
    return int(raw, 16) if raw.startswith(("0x", "0X")) else int(raw)


class _Model(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    @classmethod
    def from_api(cls, payload: Any):
        try:
            return cls.model_validate(payload)
        except pydantic.ValidationError as exc:
            raise ValidationError(f"Malformed {cls.__name__} payload: {exc}", venue="shadow") from exc


class MethodParameters(_Model):
    calldata: str = ""
    value: int = 0

    @field_validator("value", mode="before")
    @classmethod
    def _coerce_value(cls, v: Any) -> int:
        return _parse_quantity(v)


class ShadowQuoteResponse(_Model):
    """Exact-in quote; `quote` is the output amount in token base units."""

    quote: int = 0
    method_parameters: MethodParameters | None = Field(default=None, alias="methodParameters")
    error_code: str | None = Field(default=None, alias="errorCode")

    @field_validator("quote", mode="before")
    @classmethod
    def _coerce_quote(cls, v: Any) -> int:
        return _parse_quantity(v)


class ReceiptLog(_Model):
    address: str
    topics: list[str] = Field(default_factory=list)
    data: str = "0x"


class TransactionReceipt(_Model):
    transaction_hash: str = Field(alias="transactionHash")
    status: int
    sender: str = Field(alias="from")
    logs: list[ReceiptLog] = Field(default_factory=list)

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, v: Any) -> int:
        return _parse_quantity(v)

    @property
    def succeeded(self) -> bool:
        return self.status == 1

    def transfer_amount(self, *, token: str, recipient: str) -> int | None:
        """Value of the first ERC-20 Transfer of `token` to `recipient`, if any."""
        for log in self.logs:
            if log.address.lower() != token.lower() or len(log.topics) < 3:
                continue
            if log.topics[0].lower() != TRANSFER_TOPIC:
                continue
            # Indexed address topics are left-padded to 32 bytes.
            to_address = "0x" + log.topics[2][-40:]
            if to_address.lower() == recipient.lower():
                return _parse_quantity(log.data)
        return None
