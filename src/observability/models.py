"""Observability record model.

One `ObservabilityRecord` is written per execution event. `correlation_id`
carries the receipt id, so all rows of one opportunity execution line up;
`order_id` + `venue` tie rows to venue-side orders. Summaries never carry
signed payloads, calldata or credentials.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

RecordKind = Literal["event", "error"]

REDACTED = "[REDACTED]"
_SECRET_KEYS = frozenset({"private_key", "secret", "password", "sig", "tx_info", "call_data", "calldata"})
# Stored as columns, so left out of the summary.
_COLUMN_KEYS = ("type", "ts", "correlation_id", "order_id", "venue")


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def redact(data: Any) -> Any:
    """Replace secret-like keys at any depth."""
    if isinstance(data, dict):
        return {k: REDACTED if k in _SECRET_KEYS else redact(v) for k, v in data.items()}
    if isinstance(data, list):
        return [redact(v) for v in data]
    return data


def _as_dict(message: Any) -> dict[str, Any]:
    if isinstance(message, BaseModel):
        return message.model_dump(mode="json")
    if isinstance(message, dict):
        return dict(message)
    return {"repr": repr(message)}


def _text(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    return value if isinstance(value, str) and value else None


class ObservabilityRecord(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    kind: RecordKind
    event_type: str  # e.g. "order_created", "receipt_recorded"
    stage: str  # publisher, e.g. "execution_coordinator", "strategy.strat1"
    correlation_id: str | None = None
    order_id: str | None = None
    venue: str | None = None
    occurred_at: datetime
    logged_at: datetime = Field(default_factory=utc_now)
    summary: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_message(
        cls,
        message: Any,
        *,
        kind: RecordKind,
        stage: str,
        correlation_id: str | None = None,
    ) -> "ObservabilityRecord":
        """Build a record from an execution event model or a plain dict.

        The event type comes from `message.type` (else the class name) and the
        occurrence time from `message.ts` (else now).
        """
        data = _as_dict(message)
        ts = getattr(message, "ts", None) if not isinstance(message, dict) else data.get("ts")
        summary = {k: v for k, v in data.items() if k not in _COLUMN_KEYS}
        return cls(
            kind=kind,
            event_type=_text(data, "type") or type(message).__name__,
            stage=stage,
            correlation_id=correlation_id or _text(data, "correlation_id"),
            order_id=_text(data, "order_id"),
            venue=_text(data, "venue"),
            occurred_at=ts if isinstance(ts, datetime) else utc_now(),
            summary=redact(summary),
        )

    def summary_json(self) -> str:
        return json.dumps(self.summary, separators=(",", ":"), sort_keys=True, default=str)
