from __future__ import annotations

import pytest

from observability import (
    DuckDBObservabilitySink,
    InMemoryObservabilitySink,
    ObservabilityRecord,
    ObservabilityRecorder,
)
from trading.bus import ExecutionEventBus
from trading.models import ExecutionFailure, OrderCreated, OrderPolled, OrderState, ReceiptRecorded


@pytest.mark.asyncio
async def test_observability_records_events_and_failures() -> None:
    sink = InMemoryObservabilitySink()
    recorder = ObservabilityRecorder(sink=sink, max_queue_size=100)
    event_bus = ExecutionEventBus(recorder=recorder)

    receipt_id = "r1"
    await event_bus.publish(
        OrderCreated(correlation_id=receipt_id, venue="lighter", order_id="0xabc", instrument="ETH", attempts=1),
        stage="execution_coordinator",
    )
    await event_bus.publish(
        ExecutionFailure(
            correlation_id=receipt_id,
            venue="shadow",
            stage="create_order",
            attempt=3,
            message="boom",
        ),
        stage="execution_coordinator",
    )
    await event_bus.publish(
        ReceiptRecorded(correlation_id=receipt_id, receipt_id=receipt_id, status="failed"),
        stage="strategy.strat1",
    )

    await recorder.aclose()

    records = sink.snapshot()
    assert [r.event_type for r in records] == ["order_created", "execution_failure", "receipt_recorded"]
    assert [r.kind for r in records] == ["event", "error", "event"]
    assert records[0].order_id == "0xabc"
    assert records[0].venue == "lighter"
    assert records[0].summary == {"instrument": "ETH", "attempts": 1}
    assert records[2].stage == "strategy.strat1"
    assert all(r.correlation_id == receipt_id for r in records)
    assert all(r.logged_at >= r.occurred_at for r in records)
    assert len(sink.for_correlation(receipt_id)) == 3


@pytest.mark.asyncio
async def test_bus_delivers_to_subscribers_in_order() -> None:
    event_bus = ExecutionEventBus()
    q = event_bus.subscribe()

    first = OrderCreated(venue="sample", order_id="o1", instrument="BTC", attempts=1)
    second = OrderPolled(venue="sample", order_id="o1", state=OrderState.FILLED, phase="poll", attempts=1)
    await event_bus.publish_many([first, second])

    assert q.get_nowait() is first
    assert q.get_nowait() is second

    event_bus.unsubscribe(q)
    await event_bus.publish(first)
    assert q.empty()


@pytest.mark.asyncio
async def test_recorder_redacts_signed_payloads() -> None:
    sink = InMemoryObservabilitySink()
    recorder = ObservabilityRecorder(sink=sink)

    await recorder.record_message(
        {"type": "swap_sent", "request": {"call_data": "0xdeadbeef", "amount_in": "10"}, "sig": "xyz"},
        kind="event",
        stage="test",
        correlation_id="r2",
    )
    await recorder.aclose()

    (record,) = sink.snapshot()
    assert record.correlation_id == "r2"
    assert record.summary == {"request": {"call_data": "[REDACTED]", "amount_in": "10"}, "sig": "[REDACTED]"}


@pytest.mark.asyncio
async def test_recorder_survives_sink_failures() -> None:
    class _BrokenSink:
        def write_many(self, records) -> None:  # noqa: ANN001
            raise OSError("disk full")

        def close(self) -> None:
            pass

    recorder = ObservabilityRecorder(sink=_BrokenSink())
    await recorder.record_message(
        OrderCreated(venue="sample", order_id="o1", instrument="BTC", attempts=1), kind="event", stage="test"
    )
    await recorder.aclose()

    assert recorder.degraded_status()["write_failures"] == 1

    # Closed recorders drop silently.
    await recorder.record_message(
        OrderCreated(venue="sample", order_id="o2", instrument="BTC", attempts=1), kind="event", stage="test"
    )
    assert recorder.degraded_status()["write_failures"] == 1


@pytest.mark.asyncio
async def test_duckdb_sink_groups_events_by_receipt(tmp_path) -> None:  # noqa: ANN001
    sink = DuckDBObservabilitySink(path=tmp_path / "events.duckdb")
    recorder = ObservabilityRecorder(sink=sink)
    event_bus = ExecutionEventBus(recorder=recorder)

    await event_bus.publish(OrderCreated(correlation_id="r1", venue="sample", order_id="o1", instrument="BTC", attempts=1))
    await event_bus.publish(ReceiptRecorded(correlation_id="r1", receipt_id="r1", status="success"))
    await event_bus.publish(ReceiptRecorded(correlation_id="r2", receipt_id="r2", status="failed"))

    await recorder.aclose()

    reopened = DuckDBObservabilitySink(path=tmp_path / "events.duckdb")
    try:
        assert reopened.event_types_for("r1") == ["order_created", "receipt_recorded"]
        assert reopened.event_types_for("r2") == ["receipt_recorded"]
    finally:
        reopened.close()


@pytest.mark.asyncio
async def test_recorder_writes_queued_records_in_batches() -> None:
    sink = InMemoryObservabilitySink()
    recorder = ObservabilityRecorder(sink=sink, max_batch_size=2)

    for i in range(5):
        await recorder.record_message(
            OrderCreated(venue="sample", order_id=f"o{i}", instrument="BTC", attempts=1), kind="event", stage="test"
        )
    await recorder.aclose()

    assert [r.order_id for r in sink.snapshot()] == ["o0", "o1", "o2", "o3", "o4"]
    assert sink.batches == 3


@pytest.mark.asyncio
async def test_duckdb_sink_counts_failures_per_venue(tmp_path) -> None:  # noqa: ANN001
    sink = DuckDBObservabilitySink(path=tmp_path / "events.duckdb")
    recorder = ObservabilityRecorder(sink=sink)
    event_bus = ExecutionEventBus(recorder=recorder)

    for venue in ("lighter", "lighter", "shadow"):
        await event_bus.publish(ExecutionFailure(venue=venue, stage="create_order", message="down"))
    await event_bus.publish(ExecutionFailure(stage="strategy", message="bug"))
    await event_bus.publish(OrderCreated(venue="shadow", order_id="0x1", instrument="ETH", attempts=1))

    await recorder.aclose()

    reopened = DuckDBObservabilitySink(path=tmp_path / "events.duckdb")
    try:
        assert reopened.failures_by_venue() == {"lighter": 2, "shadow": 1}
    finally:
        reopened.close()


@pytest.mark.asyncio
async def test_bus_subscriber_can_filter_by_event_type() -> None:
    event_bus = ExecutionEventBus()
    failures = event_bus.subscribe(event_types={"execution_failure"})
    everything = event_bus.subscribe()

    await event_bus.publish(OrderCreated(venue="sample", order_id="o1", instrument="BTC", attempts=1))
    await event_bus.publish(ExecutionFailure(venue="sample", stage="create_order", message="down"))

    assert failures.qsize() == 1
    assert failures.get_nowait().type == "execution_failure"
    assert everything.qsize() == 2


def test_record_from_event_keeps_event_time_and_columns() -> None:
    event = OrderPolled(
        correlation_id="r9", venue="lighter", order_id="o9", state=OrderState.LIVE, phase="poll", attempts=2
    )

    record = ObservabilityRecord.from_message(event, kind="event", stage="execution_coordinator")

    assert record.event_type == "order_polled"
    assert record.occurred_at == event.ts
    assert (record.correlation_id, record.order_id, record.venue) == ("r9", "o9", "lighter")
    assert record.summary == {"state": "live", "phase": "poll", "attempts": 2}
    assert record.summary_json() == '{"attempts":2,"phase":"poll","state":"live"}'
