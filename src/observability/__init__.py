"""Durable execution-event records.

Coordinator and strategy events published on the execution bus become
`ObservabilityRecord` rows (event time + write time, receipt id as the
correlation id). A background recorder batches them into a sink, DuckDB in
production and in-memory in tests, so trading never waits on storage.
"""

from .models import ObservabilityRecord
from .recorder import ObservabilityRecorder
from .sinks import DuckDBObservabilitySink, InMemoryObservabilitySink, ObservabilitySink

__all__ = [
    "DuckDBObservabilitySink",
    "InMemoryObservabilitySink",
    "ObservabilityRecord",
    "ObservabilityRecorder",
    "ObservabilitySink",
]
