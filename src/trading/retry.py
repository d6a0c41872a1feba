"""Bounded retry procedure used by the execution path.

Outcomes are kept in three separate channels:

- a returned value (including non-terminal order states) ends the loop,
- an exception listed in `retry_on` is a transport failure and is retried,
- any other exception is fatal and propagates immediately.

`retry_bounded` never raises on exhaustion; it hands back a `RetryResult`
so each caller decides how to escalate.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from .errors import VenueError

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


@dataclass
class RetryResult(Generic[_T]):
    """Either a value or the record of every failed attempt."""

    value: _T | None = None
    succeeded: bool = False
    attempts: int = 0
    errors: list[BaseException] = field(default_factory=list)

    @property
    def exhausted(self) -> bool:
        return not self.succeeded

    @property
    def last_error(self) -> BaseException | None:
        return self.errors[-1] if self.errors else None

    def unwrap(self) -> _T:
        """The successful value; raises `RuntimeError` if no attempt succeeded."""
        if not self.succeeded or self.value is None:
            raise RuntimeError(f"no successful result after {self.attempts} attempts") from self.last_error
        return self.value


async def retry_bounded(
    operation: Callable[[], Awaitable[_T]],
    *,
    max_attempts: int,
    delay_s: float = 0.0,
    retry_on: tuple[type[BaseException], ...] = (VenueError,),
    stage: str = "operation",
    venue: str | None = None,
) -> RetryResult[_T]:
    """Run `operation` up to `max_attempts` times.

    `delay_s` is slept between failed attempts (not after the last one). The
    calling task is suspended for the whole delay.
    """
    if max_attempts <= 0:
        raise ValueError(f"max_attempts must be > 0. Got: {max_attempts}")

    result: RetryResult[_T] = RetryResult()
    for attempt in range(1, max_attempts + 1):
        result.attempts = attempt
        try:
            result.value = await operation()
        except retry_on as exc:
            result.errors.append(exc)
            logger.warning(
                "%s failed (attempt %d/%d, venue=%s): %s",
                stage,
                attempt,
                max_attempts,
                venue,
                exc,
            )
            if attempt < max_attempts and delay_s > 0:
                await asyncio.sleep(delay_s)
            continue
        result.succeeded = True
        return result
    return result
