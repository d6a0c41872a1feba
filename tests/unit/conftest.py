from __future__ import annotations

import asyncio

import pytest


@pytest.fixture(autouse=True)
def _inline_to_thread(monkeypatch: pytest.MonkeyPatch):
    """Run `asyncio.to_thread` work inline.

    The HTTP transport and the observability recorder push blocking calls
    (requests, DuckDB) to worker threads; unit tests keep them on the loop so
    no threadpool outlives the test.
    """

    async def _to_thread(func, /, *args, **kwargs):  # noqa: ANN001
        return func(*args, **kwargs)

    monkeypatch.setattr(asyncio, "to_thread", _to_thread)
    yield


@pytest.fixture
def slept(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    """Record retry/backoff delays instead of sleeping; backoff jitter is zeroed."""
    delays: list[float] = []

    async def _sleep(seconds: float) -> None:
        delays.append(seconds)

    monkeypatch.setattr(asyncio, "sleep", _sleep)
    monkeypatch.setattr("transport.http.random.uniform", lambda _a, _b: 0.0)
    return delays
