"""Order execution coordinator.

Drives one logical order through

    create -> poll -> (cancel -> recheck) -> outcome

with a bounded retry budget at each stage:

- `create_order`: up to `create_attempts` tries, no delay.
- `get_order_result`: up to `poll_attempts` tries, `poll_delay_s` between
  failed tries. Any successful poll is returned as-is, terminal or not.
- on poll exhaustion: cancel (when the venue supports it) and recheck, with
  the same bound and delay. Exhausting this phase raises `ExhaustedRetries`.

The coordinator only talks to venues and publishes events. Ledger writes are
the caller's job.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass

from ..bus import ExecutionEventBus
from ..errors import ExhaustedRetries
from ..models import (
    CancelIssued,
    ExecutionEvent,
    ExecutionFailure,
    OrderCreated,
    OrderHandle,
    OrderLeg,
    OrderOutcome,
    OrderPolled,
    OrderRequest,
)
from ..retry import retry_bounded
from .adapters.base import VenueAdapter

logger = logging.getLogger(__name__)

DEFAULT_CREATE_ATTEMPTS = 3
DEFAULT_POLL_ATTEMPTS = 3
DEFAULT_POLL_DELAY_S = 1.0


@dataclass(frozen=True)
class LegResult:
    leg: OrderLeg
    handle: OrderHandle
    outcome: OrderOutcome

    @property
    def succeeded(self) -> bool:
        """Only a filled order counts as a successful leg."""
        return self.outcome.is_filled


class OrderExecutionCoordinator:
    """Creates, polls and (if needed) cancels orders through venue adapters."""

    def __init__(
        self,
        *,
        adapters: Mapping[str, VenueAdapter],
        event_bus: ExecutionEventBus | None = None,
        create_attempts: int = DEFAULT_CREATE_ATTEMPTS,
        poll_attempts: int = DEFAULT_POLL_ATTEMPTS,
        poll_delay_s: float = DEFAULT_POLL_DELAY_S,
    ) -> None:
        self._adapters = dict(adapters)
        self._events = event_bus
        self._create_attempts = create_attempts
        self._poll_attempts = poll_attempts
        self._poll_delay_s = poll_delay_s

    @property
    def adapters(self) -> Mapping[str, VenueAdapter]:
        return dict(self._adapters)

    def adapter_for(self, venue: str) -> VenueAdapter:
        try:
            return self._adapters[venue]
        except KeyError:
            raise ValueError(f"No adapter registered for venue {venue!r}") from None

    async def execute_leg(self, leg: OrderLeg, *, correlation_id: str | None = None) -> LegResult:
        """Create one order and resolve its outcome."""
        adapter = self.adapter_for(leg.venue)
        handle = await self.create_order(adapter, leg.request, correlation_id=correlation_id)
        outcome = await self.resolve_outcome(adapter, handle, correlation_id=correlation_id)
        return LegResult(leg=leg, handle=handle, outcome=outcome)

    async def create_order(
        self,
        adapter: VenueAdapter,
        request: OrderRequest,
        *,
        correlation_id: str | None = None,
    ) -> OrderHandle:
        """Create an order, retrying venue failures up to the create budget."""
        result = await retry_bounded(
            lambda: adapter.create_order(request),
            max_attempts=self._create_attempts,
            stage="create_order",
            venue=adapter.name,
        )
        if result.exhausted:
            logger.error(
                "create_order abandoned after %d attempts (venue=%s, instrument=%s)",
                result.attempts,
                adapter.name,
                request.instrument,
            )
            await self._publish(
                ExecutionFailure(
                    correlation_id=correlation_id,
                    venue=adapter.name,
                    stage="create_order",
                    attempt=result.attempts,
                    message=str(result.last_error),
                )
            )
            raise ExhaustedRetries(
                stage="create_order",
                attempts=result.attempts,
                venue=adapter.name,
                last_error=result.last_error,
            ) from result.last_error

        handle = result.unwrap()
        await self._publish(
            OrderCreated(
                correlation_id=correlation_id,
                venue=adapter.name,
                order_id=handle.id,
                instrument=handle.instrument,
                attempts=result.attempts,
            )
        )
        return handle

    async def resolve_outcome(
        self,
        adapter: VenueAdapter,
        handle: OrderHandle,
        *,
        correlation_id: str | None = None,
    ) -> OrderOutcome:
        """Poll for the order outcome, falling back to cancel-and-recheck."""
        polled = await retry_bounded(
            lambda: adapter.get_order_result(handle),
            max_attempts=self._poll_attempts,
            delay_s=self._poll_delay_s,
            stage="get_order_result",
            venue=adapter.name,
        )
        if polled.succeeded:
            outcome = polled.unwrap()
            await self._publish_polled(adapter, handle, outcome, "poll", polled.attempts, correlation_id)
            return outcome

        logger.warning(
            "polling order %s exhausted on %s; %s",
            handle.id,
            adapter.name,
            "canceling and rechecking" if adapter.supports_cancel else "rechecking without cancel",
        )
        await asyncio.sleep(self._poll_delay_s)

        async def _cancel_then_poll() -> OrderOutcome:
            if adapter.supports_cancel:
                await adapter.cancel_order(handle)
                await self._publish(CancelIssued(correlation_id=correlation_id, venue=adapter.name, order_id=handle.id))
            return await adapter.get_order_result(handle)

        rechecked = await retry_bounded(
            _cancel_then_poll,
            max_attempts=self._poll_attempts,
            delay_s=self._poll_delay_s,
            stage="cancel_recheck",
            venue=adapter.name,
        )
        if rechecked.succeeded:
            outcome = rechecked.unwrap()
            await self._publish_polled(adapter, handle, outcome, "cancel_recheck", rechecked.attempts, correlation_id)
            return outcome

        attempts = polled.attempts + rechecked.attempts
        logger.error("order %s unresolved on %s after %d attempts", handle.id, adapter.name, attempts)
        await self._publish(
            ExecutionFailure(
                correlation_id=correlation_id,
                venue=adapter.name,
                order_id=handle.id,
                stage="cancel_recheck",
                attempt=attempts,
                message=str(rechecked.last_error),
            )
        )
        raise ExhaustedRetries(
            stage="cancel_recheck",
            attempts=attempts,
            venue=adapter.name,
            last_error=rechecked.last_error,
        ) from rechecked.last_error

    async def _publish_polled(
        self,
        adapter: VenueAdapter,
        handle: OrderHandle,
        outcome: OrderOutcome,
        phase: str,
        attempts: int,
        correlation_id: str | None,
    ) -> None:
        await self._publish(
            OrderPolled(
                correlation_id=correlation_id,
                venue=adapter.name,
                order_id=handle.id,
                state=outcome.state,
                phase=phase,  # type: ignore[arg-type]
                attempts=attempts,
            )
        )

    async def _publish(self, event: ExecutionEvent) -> None:
        if self._events is not None:
            await self._events.publish(event, stage="execution_coordinator")
