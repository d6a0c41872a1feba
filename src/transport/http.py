"""Async JSON-over-HTTP transport shared by the venue clients.

- Public methods create an `asyncio.Future`, enqueue `(method, path, body,
  future)`, and await the future's result.
- A single background worker consumes the queue serially.
- A token-bucket limiter gates outbound requests.
- 429/5xx responses and transport errors are retried with exponential
  backoff and jitter; anything still failing surfaces as `VenueError`.

The HTTP call uses `requests` executed in a thread.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlencode

import requests  # type: ignore

from trading.errors import ValidationError, VenueError

from .rate_limit import TokenBucketRateLimiter

logger = logging.getLogger(__name__)


class HttpStatusError(VenueError):
    """Non-2xx HTTP response from a venue."""

    def __init__(self, *, venue: str, status_code: int, payload: Any):
        self.payload = payload
        super().__init__(f"HTTP {status_code}: {payload}", venue=venue, status_code=status_code)


def build_query_string(params: Mapping[str, Any] | None) -> str:
    """Build a query string from a mapping, omitting None values.

    Lists/tuples are encoded as comma-separated values and booleans as
    "true"/"false".
    """
    if not params:
        return ""
    filtered: dict[str, str] = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            filtered[key] = "true" if value else "false"
        elif isinstance(value, (list, tuple)):
            filtered[key] = ",".join(str(v) for v in value)
        else:
            filtered[key] = str(value)

    if not filtered:
        return ""
    return "?" + urlencode(filtered)


def is_retryable_error(exc: BaseException) -> bool:
    """True for throttling, server errors and transport failures."""
    if isinstance(exc, HttpStatusError):
        return exc.status_code == 429 or (exc.status_code or 0) >= 500
    return isinstance(exc, VenueError)


class HttpTransport:
    """Serial, rate-limited, retrying JSON client for one venue base URL."""

    def __init__(
        self,
        *,
        venue: str,
        base_url: str,
        rate_limit: float = 10,
        max_attempt: int = 5,
        base_delay: float = 0.5,
        backoff_multiplier: float = 2.0,
        max_delay: float = 30.0,
        timeout_s: float = 30.0,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        self.venue = venue
        self.base_url = base_url.rstrip("/")
        self.max_attempt = max_attempt
        self.base_delay = base_delay
        self.backoff_multiplier = backoff_multiplier
        self.max_delay = max_delay
        self.timeout_s = timeout_s
        self.headers = dict(headers or {})

        self.request_queue: asyncio.Queue[tuple[str, str, Any | None, asyncio.Future[Any]]] = asyncio.Queue()
        self.rate_limiter = TokenBucketRateLimiter(rate=rate_limit)
        self._request_worker_task: asyncio.Task[None] | None = None

    async def get(self, path: str, params: Mapping[str, Any] | None = None) -> Any:
        return await self._enqueue_request("GET", path + build_query_string(params), None)

    async def post(self, path: str, body: Any | None = None) -> Any:
        return await self._enqueue_request("POST", path, body)

    async def aclose(self) -> None:
        """Stop the background worker (pending requests are abandoned)."""
        task = self._request_worker_task
        self._request_worker_task = None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    def _ensure_worker_started(self) -> None:
        """Start the single background worker task (lazily)."""
        if self._request_worker_task is not None and not self._request_worker_task.done():
            return
        loop = asyncio.get_running_loop()
        self._request_worker_task = loop.create_task(self._request_worker(), name=f"{self.venue}-request-worker")

    async def _enqueue_request(self, method: str, path: str, body: Any | None) -> Any:
        """Enqueue a request and await its result."""
        self._ensure_worker_started()
        fut: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        await self.request_queue.put((method, path, body, fut))
        return await fut

    async def _request_worker(self) -> None:
        """Consume the queue serially, resolve futures with results/errors."""
        while True:
            method, path, body, fut = await self.request_queue.get()
            try:
                result = await self._send_with_retries(method, path, body)
            except Exception as exc:  # noqa: BLE001 - propagate into awaiting task
                if not fut.cancelled():
                    fut.set_exception(exc)
            else:
                if not fut.cancelled():
                    fut.set_result(result)
            finally:
                self.request_queue.task_done()

    async def _send_request(self, method: str, path: str, body: Any | None) -> Any:
        """Send one request and decode the JSON response.

        Raises:
        - `HttpStatusError` for non-2xx responses
        - `VenueError` for transport errors
        - `ValidationError` when a 2xx body is not JSON
        """
        url = self.base_url + path
        headers = {"Content-Type": "application/json", **self.headers}

        def _do_request() -> Any:
            """Execute the HTTP request synchronously (runs in a worker thread)."""
            try:
                resp = requests.request(method, url, headers=headers, json=body, timeout=self.timeout_s)
            except requests.RequestException as exc:
                raise VenueError(f"{method} {path} failed: {exc}", venue=self.venue) from exc

            if 200 <= resp.status_code < 300:
                if not resp.content:
                    return None
                try:
                    return resp.json()
                except ValueError as exc:
                    raise ValidationError(f"{method} {path} returned a non-JSON body", venue=self.venue) from exc

            try:
                error_payload = resp.json()
            except ValueError:
                error_payload = None
            raise HttpStatusError(venue=self.venue, status_code=resp.status_code, payload=error_payload)

        return await asyncio.to_thread(_do_request)

    async def _send_with_retries(self, method: str, path: str, body: Any | None) -> Any:
        """Send a request, retrying transient failures with backoff."""
        attempt = 0
        start = time.monotonic()

        while True:
            try:
                await self.rate_limiter.acquire()
                return await self._send_request(method, path, body)
            except Exception as exc:  # noqa: BLE001 - classify and retry/raise
                attempt += 1
                if not is_retryable_error(exc):
                    raise
                if attempt >= self.max_attempt:
                    raise

                delay = self.base_delay * (self.backoff_multiplier ** (attempt - 1))
                delay += random.uniform(0.0, delay * 0.1)  # small jitter

                if (time.monotonic() - start) + delay > self.max_delay:
                    raise
                logger.debug("%s %s %s retry %d in %.2fs: %s", self.venue, method, path, attempt, delay, exc)
                await asyncio.sleep(delay)
