from __future__ import annotations

import asyncio

import pytest

from trading.models import LedgerSnapshot, Receipt
from trading.portfolio.ledger import Ledger
from trading.scheduler import StrategyScheduler


class _RecordingStore:
    def __init__(self) -> None:
        self.saves: list[LedgerSnapshot] = []

    def save(self, snapshot: LedgerSnapshot) -> None:
        self.saves.append(snapshot)

    def load(self, default: LedgerSnapshot) -> LedgerSnapshot:
        return default


class _GatedStrategy:
    """`process()` blocks until released; tracks concurrent entries."""

    name = "gated"

    def __init__(self, ledger: Ledger, *, receipts: int = 0, fail: bool = False) -> None:
        self.ledger = ledger
        self.release = asyncio.Event()
        self.active = 0
        self.max_active = 0
        self.calls = 0
        self._receipts = receipts
        self._fail = fail

    async def process(self) -> list[Receipt]:
        self.calls += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await self.release.wait()
            if self._fail:
                raise RuntimeError("strategy bug")
            out = []
            for _ in range(self._receipts):
                receipt = Receipt(status="failed", description="x")
                self.ledger.commit_failure(receipt)
                out.append(receipt)
            return out
        finally:
            self.active -= 1


@pytest.mark.asyncio
async def test_overlapping_ticks_are_skipped() -> None:
    ledger = Ledger()
    strategy = _GatedStrategy(ledger)
    scheduler = StrategyScheduler(strategy, ledger, interval_s=1)  # type: ignore[arg-type]

    first = scheduler.tick()
    await asyncio.sleep(0)
    second = scheduler.tick()
    third = scheduler.tick()

    assert first is not None
    assert second is None and third is None
    assert scheduler.ticks_skipped == 2
    assert scheduler.is_running_cycle

    strategy.release.set()
    await first
    assert strategy.calls == 1
    assert strategy.max_active == 1
    assert scheduler.cycles_run == 1

    assert scheduler.tick() is not None


@pytest.mark.asyncio
async def test_cycle_with_receipts_flushes_snapshot() -> None:
    store = _RecordingStore()
    ledger = Ledger(store=store)
    strategy = _GatedStrategy(ledger, receipts=2)
    strategy.release.set()
    scheduler = StrategyScheduler(strategy, ledger, interval_s=1)  # type: ignore[arg-type]

    await scheduler.tick()  # type: ignore[misc]

    assert len(store.saves) == 1
    assert len(store.saves[0].receipts) == 2


@pytest.mark.asyncio
async def test_failed_cycle_does_not_stop_the_scheduler() -> None:
    store = _RecordingStore()
    ledger = Ledger(store=store)
    strategy = _GatedStrategy(ledger, fail=True)
    strategy.release.set()
    scheduler = StrategyScheduler(strategy, ledger, interval_s=1)  # type: ignore[arg-type]

    await scheduler.tick()  # type: ignore[misc]

    assert scheduler.cycles_run == 1
    assert store.saves == []
    assert scheduler.tick() is not None


@pytest.mark.asyncio
async def test_stop_waits_for_in_flight_cycle_then_flushes() -> None:
    store = _RecordingStore()
    ledger = Ledger(store=store)
    strategy = _GatedStrategy(ledger, receipts=1)
    scheduler = StrategyScheduler(strategy, ledger, interval_s=0.01)  # type: ignore[arg-type]

    runner = asyncio.create_task(scheduler.run())
    while strategy.calls == 0:
        await asyncio.sleep(0)

    stopping = asyncio.create_task(scheduler.stop())
    await asyncio.sleep(0)
    assert not stopping.done()

    strategy.release.set()
    await stopping
    await asyncio.wait_for(runner, timeout=1)

    assert strategy.calls == 1
    assert scheduler.cycles_run == 1
    # One flush after the cycle, one on shutdown.
    assert len(store.saves) == 2
    assert len(store.saves[-1].receipts) == 1
    assert scheduler.tick() is None


def test_interval_must_be_positive() -> None:
    with pytest.raises(ValueError):
        StrategyScheduler(object(), Ledger(), interval_s=0)  # type: ignore[arg-type]


def test_cycle_job_allows_one_instance_and_coalesces_missed_ticks() -> None:
    ledger = Ledger()
    scheduler = StrategyScheduler(_GatedStrategy(ledger), ledger, interval_s=5)  # type: ignore[arg-type]

    assert scheduler.job.max_instances == 1
    assert scheduler.job.coalesce is True
    assert scheduler.job.trigger.interval.total_seconds() == 5


@pytest.mark.asyncio
async def test_ticks_during_a_running_cycle_are_counted_as_skipped() -> None:
    ledger = Ledger()
    strategy = _GatedStrategy(ledger)
    scheduler = StrategyScheduler(strategy, ledger, interval_s=0.01)  # type: ignore[arg-type]

    runner = asyncio.create_task(scheduler.run())

    async def _until_skipped() -> None:
        while scheduler.ticks_skipped == 0:
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_until_skipped(), timeout=2)
    assert strategy.calls == 1
    assert strategy.max_active == 1

    strategy.release.set()
    await scheduler.stop()
    await asyncio.wait_for(runner, timeout=1)
    assert scheduler.cycles_run == strategy.calls
