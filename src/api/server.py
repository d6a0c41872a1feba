"""Read-only HTTP surface over a strategy's ledger.

Routes:
- `GET /health`
- `GET /{strategy}/get-positions`
- `GET /{strategy}/get-receipts`

Handlers only read the ledger; nothing here can place orders or mutate state.
"""

from __future__ import annotations

import logging
from typing import Any

from aiohttp import web

from trading.strategies.base import Strategy

logger = logging.getLogger(__name__)

STRATEGY_KEY = web.AppKey("strategy", Strategy)
SCHEDULER_STATUS_KEY = web.AppKey("scheduler_status", object)


def _dump(models: list[Any]) -> list[dict[str, Any]]:
    return [m.model_dump(mode="json") for m in models]


async def _positions(request: web.Request) -> web.Response:
    strategy = request.app[STRATEGY_KEY]
    return web.json_response(_dump(strategy.get_positions()))


async def _receipts(request: web.Request) -> web.Response:
    strategy = request.app[STRATEGY_KEY]
    return web.json_response(_dump(strategy.get_receipts()))


async def _health(request: web.Request) -> web.Response:
    strategy = request.app[STRATEGY_KEY]
    body: dict[str, Any] = {
        "status": "ok",
        "strategy": strategy.name,
        "positions": len(strategy.get_positions()),
        "receipts": len(strategy.get_receipts()),
    }
    status = request.app.get(SCHEDULER_STATUS_KEY)
    if callable(status):
        body["scheduler"] = status()
    return web.json_response(body)


def create_app(strategy: Strategy, *, scheduler_status=None) -> web.Application:
    """Build the application for one strategy.

    `scheduler_status`, when given, is a zero-argument callable whose result
    is included in `/health`.
    """
    app = web.Application()
    app[STRATEGY_KEY] = strategy
    if scheduler_status is not None:
        app[SCHEDULER_STATUS_KEY] = scheduler_status
    app.router.add_get("/health", _health)
    app.router.add_get(f"/{strategy.name}/get-positions", _positions)
    app.router.add_get(f"/{strategy.name}/get-receipts", _receipts)
    return app


async def start_server(app: web.Application, *, port: int, host: str = "0.0.0.0") -> web.AppRunner:
    """Start serving `app`; the caller owns `runner.cleanup()`."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    logger.info("http server listening on %s:%d", host, port)
    return runner
