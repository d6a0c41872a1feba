"""Strategy cycle driver.

Runs `strategy.process()` as an APScheduler interval job. The job allows a
single running instance, so a tick that fires while the previous cycle is
still running is skipped (and counted) instead of queued. The ledger snapshot
is flushed after every cycle that produced receipts and once more on
shutdown, after the in-flight cycle has finished.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from apscheduler.events import EVENT_JOB_MAX_INSTANCES, JobSubmissionEvent
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from .portfolio.ledger import Ledger
from .strategies.base import Strategy

logger = logging.getLogger(__name__)


class StrategyScheduler:
    """Owns the strategy's cadence and its snapshot flushes."""

    def __init__(self, strategy: Strategy, ledger: Ledger, *, interval_s: float) -> None:
        if interval_s <= 0:
            raise ValueError(f"interval_s must be > 0. Got: {interval_s}")
        self.strategy = strategy
        self.ledger = ledger
        self.interval_s = interval_s
        self._cycle: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()
        self.cycles_run = 0
        self.ticks_skipped = 0

        self._scheduler = AsyncIOScheduler()
        self.job = self._scheduler.add_job(
            self._job_cycle,
            "interval",
            seconds=interval_s,
            id=f"{strategy.name}-cycle",
            name=f"{strategy.name} cycle",
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(tz=timezone.utc),
        )
        self._scheduler.add_listener(self._on_tick_skipped, EVENT_JOB_MAX_INSTANCES)

    @property
    def is_running_cycle(self) -> bool:
        return self._cycle is not None and not self._cycle.done()

    def tick(self) -> asyncio.Task[None] | None:
        """Start one cycle unless one is already in flight or shutdown began."""
        if self._stopping.is_set():
            return None
        if self.is_running_cycle:
            self.ticks_skipped += 1
            logger.info("%s: previous cycle still running, skipping tick", self.strategy.name)
            return None
        self._cycle = asyncio.create_task(self._run_cycle(), name=f"{self.strategy.name}-cycle")
        return self._cycle

    async def _job_cycle(self) -> None:
        cycle = self.tick()
        if cycle is not None:
            # Scheduler shutdown cancels running jobs; the cycle itself must finish.
            await asyncio.shield(cycle)

    def _on_tick_skipped(self, event: JobSubmissionEvent) -> None:
        self.ticks_skipped += 1
        logger.info("%s: previous cycle still running, skipping tick", self.strategy.name)

    async def _run_cycle(self) -> None:
        try:
            receipts = await self.strategy.process()
        except Exception:  # noqa: BLE001 - a failed cycle must not stop the cadence
            logger.error("%s: cycle failed", self.strategy.name, exc_info=True)
            return
        finally:
            self.cycles_run += 1

        if receipts:
            succeeded = sum(1 for r in receipts if r.status == "success")
            logger.info(
                "%s: cycle recorded %d receipts (%d success, %d failed)",
                self.strategy.name,
                len(receipts),
                succeeded,
                len(receipts) - succeeded,
            )
            self.ledger.flush()

    async def run(self) -> None:
        """Start the interval job and block until `stop()` is called."""
        if self._stopping.is_set():
            return
        self._scheduler.start()
        logger.info("%s: scheduler started (every %.3gs)", self.strategy.name, self.interval_s)
        await self._stopping.wait()

    async def stop(self) -> None:
        """Stop ticking, wait for the in-flight cycle, then flush the snapshot."""
        self._stopping.set()
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        if self._cycle is not None and not self._cycle.done():
            logger.info("%s: waiting for the in-flight cycle before shutdown", self.strategy.name)
            await asyncio.gather(self._cycle, return_exceptions=True)
        self.ledger.flush()
        logger.info("%s: scheduler stopped after %d cycles", self.strategy.name, self.cycles_run)
