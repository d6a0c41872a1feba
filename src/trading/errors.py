"""Error taxonomy shared by venue adapters, the execution path and persistence.

The retry policy differs per kind, so these are kept as distinct types:

- `VenueError`: transport/protocol failure from a venue (retryable).
- `ValidationError`: a venue returned a malformed payload (never retried).
- `ExhaustedRetries`: every bounded attempt failed (fatal to one opportunity).
- `PersistenceError`: snapshot load/save failed (logged, never fatal).
- `NotSupported`: an optional adapter capability is not implemented.
"""

from __future__ import annotations


class TradingError(Exception):
    """Base class for all errors raised by the trading package."""


class VenueError(TradingError):
    """Transport or protocol failure reported by a venue adapter."""

    def __init__(self, message: str, *, venue: str | None = None, status_code: int | None = None) -> None:
        self.venue = venue
        self.status_code = status_code
        prefix = f"[{venue}] " if venue else ""
        super().__init__(f"{prefix}{message}")


class ValidationError(TradingError):
    """A venue response did not have the expected shape."""

    def __init__(self, message: str, *, venue: str | None = None) -> None:
        self.venue = venue
        prefix = f"[{venue}] " if venue else ""
        super().__init__(f"{prefix}{message}")


class ExhaustedRetries(TradingError):
    """All attempts of a bounded retry stage failed."""

    def __init__(
        self,
        *,
        stage: str,
        attempts: int,
        venue: str | None = None,
        last_error: BaseException | None = None,
    ) -> None:
        self.stage = stage
        self.attempts = attempts
        self.venue = venue
        self.last_error = last_error
        super().__init__(f"{stage} exhausted after {attempts} attempt(s) on {venue or 'unknown venue'}: {last_error}")


class PersistenceError(TradingError):
    """Snapshot storage could not be read or written."""


class NotSupported(TradingError, NotImplementedError):
    """The adapter does not implement the requested capability."""
