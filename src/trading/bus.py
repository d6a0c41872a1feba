"""In-process execution event bus.

The coordinator and strategies publish order/receipt lifecycle events here.
Each event is recorded (when a recorder is attached) and then copied to every
subscriber queue whose filter accepts it, in publish order.
"""

from __future__ import annotations

import asyncio
from collections.abc import Collection, Iterable

from observability.recorder import ObservabilityRecorder

from .models import ExecutionEvent, ExecutionFailure


class ExecutionEventBus:
    def __init__(self, *, recorder: ObservabilityRecorder | None = None) -> None:
        self._subscribers: list[tuple[asyncio.Queue[ExecutionEvent], frozenset[str] | None]] = []
        self._recorder = recorder

    def subscribe(self, *, event_types: Collection[str] | None = None) -> asyncio.Queue[ExecutionEvent]:
        """Return a queue receiving published events, optionally only the given `type`s."""
        q: asyncio.Queue[ExecutionEvent] = asyncio.Queue()
        self._subscribers.append((q, frozenset(event_types) if event_types is not None else None))
        return q

    def unsubscribe(self, q: asyncio.Queue[ExecutionEvent]) -> None:
        self._subscribers = [(sub, types) for sub, types in self._subscribers if sub is not q]

    async def publish(self, event: ExecutionEvent, *, stage: str = "execution") -> None:
        if self._recorder is not None:
            kind = "error" if isinstance(event, ExecutionFailure) else "event"
            await self._recorder.record_message(event, kind=kind, stage=stage)
        for q, types in self._subscribers:
            if types is None or event.type in types:
                q.put_nowait(event)

    async def publish_many(self, events: Iterable[ExecutionEvent], *, stage: str = "execution") -> None:
        for event in events:
            await self.publish(event, stage=stage)
