"""Observability sinks (storage backends)."""

from __future__ import annotations

import threading
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

import duckdb

from .models import ObservabilityRecord

_COLUMNS = (
    "logged_at",
    "occurred_at",
    "kind",
    "event_type",
    "stage",
    "correlation_id",
    "order_id",
    "venue",
    "summary_json",
)


class ObservabilitySink(Protocol):
    """A synchronous sink for observability records.

    The recorder calls sinks from a worker thread, so implementations may
    block but must be thread-safe.
    """

    def write_many(self, records: Sequence[ObservabilityRecord]) -> None:
        """Persist a batch of records, oldest first."""

    def close(self) -> None:
        """Close any underlying resources."""


class InMemoryObservabilitySink:
    """In-memory sink for tests and local debugging."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: list[ObservabilityRecord] = []
        self.batches = 0

    def write_many(self, records: Sequence[ObservabilityRecord]) -> None:
        with self._lock:
            self._records.extend(records)
            self.batches += 1

    def close(self) -> None:  # noqa: D401 - keep interface consistent
        """No-op."""

    def snapshot(self) -> Sequence[ObservabilityRecord]:
        """Return a point-in-time copy of all recorded entries."""
        with self._lock:
            return list(self._records)

    def for_correlation(self, correlation_id: str) -> Sequence[ObservabilityRecord]:
        """Records of one execution attempt, in write order."""
        with self._lock:
            return [r for r in self._records if r.correlation_id == correlation_id]


def _row(record: ObservabilityRecord) -> list[object]:
    return [
        record.logged_at,
        record.occurred_at,
        record.kind,
        record.event_type,
        record.stage,
        record.correlation_id,
        record.order_id,
        record.venue,
        record.summary_json(),
    ]


class DuckDBObservabilitySink:
    """Append-only DuckDB table of execution events.

    One row per event; `correlation_id` is the receipt id, so every row of one
    opportunity execution can be pulled back with `event_types_for`.
    """

    def __init__(self, *, path: str | Path, table: str = "execution_events") -> None:
        if not table.isidentifier():
            raise ValueError(f"table must be a plain identifier. Got: {table!r}")
        self.path = Path(path)
        self.table = table
        self._lock = threading.Lock()
        self._conn = duckdb.connect(str(self.path))
        with self._lock:
            self._conn.execute(f"create sequence if not exists {table}_seq")
            self._conn.execute(
                f"""
                create table if not exists {table} (
                  seq bigint default nextval('{table}_seq'),
                  logged_at timestamptz not null,
                  occurred_at timestamptz not null,
                  kind varchar not null,
                  event_type varchar not null,
                  stage varchar not null,
                  correlation_id varchar,
                  order_id varchar,
                  venue varchar,
                  summary_json varchar not null
                )
                """
            )

    def write_many(self, records: Sequence[ObservabilityRecord]) -> None:
        if not records:
            return
        placeholders = ", ".join("?" for _ in _COLUMNS)
        insert_sql = f"insert into {self.table} ({', '.join(_COLUMNS)}) values ({placeholders})"
        with self._lock:
            self._conn.executemany(insert_sql, [_row(r) for r in records])

    def event_types_for(self, correlation_id: str) -> list[str]:
        """Event types recorded for one execution attempt, oldest first."""
        with self._lock:
            rows = self._conn.execute(
                f"select event_type from {self.table} where correlation_id = ? order by seq",
                [correlation_id],
            ).fetchall()
        return [row[0] for row in rows]

    def failures_by_venue(self) -> dict[str, int]:
        """Count of `error` records per venue (records without a venue are skipped)."""
        with self._lock:
            rows = self._conn.execute(
                f"select venue, count(*) from {self.table} where kind = 'error' and venue is not null group by venue"
            ).fetchall()
        return {venue: count for venue, count in rows}

    def close(self) -> None:
        with self._lock:
            self._conn.close()
