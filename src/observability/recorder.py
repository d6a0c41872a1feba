"""Background recorder: execution events in, sink batches out."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from .models import ObservabilityRecord, RecordKind, utc_now
from .sinks import ObservabilitySink

logger = logging.getLogger(__name__)


@dataclass
class _FailureStats:
    count: int = 0
    first_at: datetime | None = None
    last_at: datetime | None = None

    def note(self, n: int = 1) -> None:
        now = utc_now()
        self.count += n
        self.first_at = self.first_at or now
        self.last_at = now


class ObservabilityRecorder:
    """Queues records and hands them to a synchronous sink from a worker thread.

    Recording never blocks or fails the caller: when the queue is full or the
    sink raises, records are dropped and counted in `degraded_status()`.
    """

    def __init__(self, *, sink: ObservabilitySink, max_queue_size: int = 10000, max_batch_size: int = 256) -> None:
        self._sink = sink
        self._max_batch_size = max_batch_size
        self._queue: asyncio.Queue[ObservabilityRecord | None] = asyncio.Queue(maxsize=max_queue_size)
        self._worker: asyncio.Task[None] | None = None
        self._closed = False
        self._failures = _FailureStats()

    async def record_message(
        self,
        message: Any,
        *,
        kind: RecordKind,
        stage: str,
        correlation_id: str | None = None,
    ) -> None:
        if self._closed:
            return
        if self._worker is None:
            self._worker = asyncio.create_task(self._drain(), name="observability-writer")

        record = ObservabilityRecord.from_message(message, kind=kind, stage=stage, correlation_id=correlation_id)
        try:
            self._queue.put_nowait(record)
        except asyncio.QueueFull:
            if self._failures.count == 0:
                logger.warning("observability queue full, dropping records")
            self._failures.note()

    async def aclose(self) -> None:
        """Write everything queued so far, then close the sink. Idempotent."""
        if self._closed:
            return
        self._closed = True
        if self._worker is not None:
            await self._queue.put(None)
            await self._worker
        await asyncio.to_thread(self._sink.close)

    def _next_batch(self, first: ObservabilityRecord | None) -> tuple[list[ObservabilityRecord], bool]:
        batch: list[ObservabilityRecord] = []
        item = first
        while item is not None:
            batch.append(item)
            if len(batch) >= self._max_batch_size or self._queue.empty():
                return batch, False
            item = self._queue.get_nowait()
        # `None` is the close sentinel.
        return batch, True

    async def _drain(self) -> None:
        stop = False
        while not stop:
            batch, stop = self._next_batch(await self._queue.get())
            if not batch:
                continue
            try:
                await asyncio.to_thread(self._sink.write_many, batch)
            except Exception:  # noqa: BLE001 - observability must not crash trading
                logger.warning("observability write of %d records failed", len(batch), exc_info=True)
                self._failures.note(len(batch))

    def degraded_status(self) -> dict[str, Any]:
        return {
            "write_failures": self._failures.count,
            "first_failure_at": self._failures.first_at,
            "last_failure_at": self._failures.last_at,
        }
