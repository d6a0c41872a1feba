"""Strategy base class.

A strategy finds opportunities (its own rule), executes them leg by leg
through the `OrderExecutionCoordinator`, and records exactly one receipt per
execution attempt in its `Ledger`.

Legs run sequentially in the order given: later legs may size themselves from
earlier fills. A failed leg does not unwind legs that already filled.
"""

from __future__ import annotations

import abc
import logging
from collections.abc import Mapping, Sequence

from ..bus import ExecutionEventBus
from ..errors import NotSupported, ValidationError
from ..execution.adapters.base import VenueAdapter
from ..execution.coordinator import LegResult, OrderExecutionCoordinator
from ..models import (
    InternalPosition,
    Opportunity,
    OpportunityKind,
    Position,
    PositionId,
    Receipt,
    ReceiptId,
    ReceiptRecorded,
    new_id,
)
from ..portfolio.ledger import Ledger

logger = logging.getLogger(__name__)


class Strategy(abc.ABC):
    """Shared opportunity -> receipt pipeline; subclasses supply the rule."""

    name: str = "strategy"
    # False: only the first opportunity of each cycle is executed.
    consume_all: bool = True

    def __init__(
        self,
        *,
        adapters: Mapping[str, VenueAdapter],
        ledger: Ledger,
        coordinator: OrderExecutionCoordinator | None = None,
        event_bus: ExecutionEventBus | None = None,
    ) -> None:
        self.adapters = dict(adapters)
        self.ledger = ledger
        self.coordinator = coordinator or OrderExecutionCoordinator(adapters=self.adapters, event_bus=event_bus)
        self._events = event_bus

    @abc.abstractmethod
    async def find_opportunities(self) -> list[Opportunity]:
        """Return candidate opportunities in priority order (possibly empty)."""

    def select(self, opportunities: Sequence[Opportunity]) -> list[Opportunity]:
        if self.consume_all:
            return list(opportunities)
        return list(opportunities[:1])

    async def process(self) -> list[Receipt]:
        """Run one cycle: find opportunities and execute the selected ones."""
        opportunities = await self.find_opportunities()
        selected = self.select(opportunities)
        if selected:
            logger.info("%s: executing %d of %d opportunities", self.name, len(selected), len(opportunities))

        receipts: list[Receipt] = []
        for opportunity in selected:
            receipts.append(await self.execute(opportunity))
        return receipts

    async def execute(self, opportunity: Opportunity) -> Receipt:
        """Execute one opportunity. Never raises; failures become failed receipts."""
        receipt_id = new_id()
        try:
            receipt = await self._execute_legs(receipt_id, opportunity)
        except Exception as exc:  # noqa: BLE001 - one opportunity must not abort the cycle
            logger.error("%s: execute failed for %r", self.name, opportunity.description, exc_info=True)
            receipt = self._fail(receipt_id, opportunity, f"{type(exc).__name__}: {exc}")

        await self._publish_receipt(receipt)
        return receipt

    async def _execute_legs(self, receipt_id: ReceiptId, opportunity: Opportunity) -> Receipt:
        if opportunity.position_id is not None and self.ledger.get_position(opportunity.position_id) is None:
            raise ValueError(f"{opportunity.kind.value} references unknown position {opportunity.position_id}")

        closing = opportunity.kind is OpportunityKind.CLOSE
        internal_positions: list[InternalPosition] = []
        for index, leg in enumerate(opportunity.legs, start=1):
            result = await self.coordinator.execute_leg(leg, correlation_id=receipt_id)
            if not result.succeeded:
                logger.error(
                    "%s: leg %d/%d on %s ended %s for %r",
                    self.name,
                    index,
                    len(opportunity.legs),
                    leg.venue,
                    result.outcome.state.value,
                    opportunity.description,
                )
                return self._fail(
                    receipt_id,
                    opportunity,
                    f"leg {index} on {leg.venue} ended {result.outcome.state.value}",
                )
            internal_positions.extend(self.build_internal_positions(result, closed=closing))

        position = Position(status="closed" if closing else "opened", internal_positions=internal_positions)
        receipt = Receipt(
            id=receipt_id,
            status="success",
            positions=[position],
            description=opportunity.description,
            kind=opportunity.kind,
        )
        self.ledger.commit_success(receipt, position, closes=opportunity.position_id if closing else None)
        return receipt

    def _fail(self, receipt_id: ReceiptId, opportunity: Opportunity, error: str) -> Receipt:
        receipt = Receipt(
            id=receipt_id,
            status="failed",
            description=opportunity.description,
            kind=opportunity.kind,
            error=error,
        )
        self.ledger.commit_failure(receipt)
        return receipt

    def build_internal_positions(self, result: LegResult, *, closed: bool = False) -> list[InternalPosition]:
        """One internal position per filled leg."""
        fill = result.outcome.fill
        if fill is None:
            raise ValidationError(f"filled order {result.handle.id} has no fill payload", venue=result.leg.venue)
        return [
            InternalPosition(
                id=fill.order_id,
                venue=result.leg.venue,
                status="closed" if closed else "opened",
                instrument=fill.instrument or result.handle.instrument,
                amount_out=fill.amount_out,
            )
        ]

    async def _publish_receipt(self, receipt: Receipt) -> None:
        if self._events is None:
            return
        await self._events.publish(
            ReceiptRecorded(
                correlation_id=receipt.id,
                receipt_id=receipt.id,
                status=receipt.status,
                position_ids=[p.id for p in receipt.positions],
            ),
            stage=f"strategy.{self.name}",
        )

    # --- read-only views ---

    def get_position(self, position_id: PositionId) -> Position | None:
        return self.ledger.get_position(position_id)

    def get_positions(self) -> list[Position]:
        return self.ledger.get_positions()

    def get_receipt(self, receipt_id: ReceiptId) -> Receipt | None:
        return self.ledger.get_receipt(receipt_id)

    def get_receipts(self) -> list[Receipt]:
        return self.ledger.get_receipts()

    async def get_realized_result(self) -> list[dict]:
        raise NotSupported(f"{self.name} does not report realized results")

    async def get_unrealized_result(self) -> list[dict]:
        raise NotSupported(f"{self.name} does not report unrealized results")
