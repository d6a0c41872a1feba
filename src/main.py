"""Process entrypoint: wire one strategy, its venues, ledger and HTTP surface.

- Loads configuration from the environment (`.env` supported).
- Restores the strategy's ledger snapshot.
- Runs the strategy on its cadence and serves read-only positions/receipts.
- On SIGINT/SIGTERM waits for the in-flight cycle, flushes the snapshot and
  closes venue clients and the observability recorder.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from collections.abc import Awaitable, Callable
from pathlib import Path

from api.server import create_app, start_server
from config import Config, load_config, load_lighter_config, load_shadow_config
from lighter.client import LighterClient
from observability import DuckDBObservabilitySink, ObservabilityRecorder
from shadow.client import JsonRpcChainClient, ShadowQuoteClient
from trading.bus import ExecutionEventBus
from trading.execution.adapters.base import VenueAdapter
from trading.execution.adapters.lighter import LighterExecutionAdapter
from trading.execution.adapters.sample import SampleExecutionAdapter
from trading.execution.adapters.shadow import ShadowExecutionAdapter
from trading.execution.coordinator import OrderExecutionCoordinator
from trading.portfolio.ledger import Ledger
from trading.portfolio.store import JsonSnapshotStore
from trading.scheduler import StrategyScheduler
from trading.strategies.base import Strategy
from trading.strategies.cross_venue import CrossVenueStrategy
from trading.strategies.sample import SampleStrategy

logger = logging.getLogger(__name__)

Closer = Callable[[], Awaitable[None]]


def build_adapters(cfg: Config) -> tuple[dict[str, VenueAdapter], list[Closer]]:
    """Create the venue adapters the configured strategy trades on."""
    if cfg.strategy.name == "ss1":
        return {"sample": SampleExecutionAdapter()}, []

    lighter_client = LighterClient(load_lighter_config())
    shadow_cfg = load_shadow_config()
    quotes = ShadowQuoteClient(shadow_cfg)
    quotes.tokens.require([*cfg.strategy.symbols, "USDC"])
    chain = JsonRpcChainClient(shadow_cfg)
    adapters: dict[str, VenueAdapter] = {
        "shadow": ShadowExecutionAdapter(
            quotes,
            chain,
            router_address=shadow_cfg.router_address,
            input_values=cfg.strategy.input_values,
            rough_prices=cfg.strategy.rough_prices,
        ),
        "lighter": LighterExecutionAdapter(lighter_client),
    }
    return adapters, [lighter_client.aclose, quotes.aclose, chain.aclose]


def build_strategy(
    cfg: Config,
    *,
    adapters: dict[str, VenueAdapter],
    ledger: Ledger,
    event_bus: ExecutionEventBus | None = None,
) -> Strategy:
    coordinator = OrderExecutionCoordinator(
        adapters=adapters,
        event_bus=event_bus,
        create_attempts=cfg.execution.create_attempts,
        poll_attempts=cfg.execution.poll_attempts,
        poll_delay_s=cfg.execution.poll_delay_s,
    )
    common = {"adapters": adapters, "ledger": ledger, "coordinator": coordinator, "event_bus": event_bus}
    if cfg.strategy.name == "ss1":
        return SampleStrategy(**common)
    return CrossVenueStrategy(
        symbols=cfg.strategy.symbols,
        input_values=cfg.strategy.input_values,
        rough_prices=cfg.strategy.rough_prices,
        min_edge_bps=cfg.strategy.min_edge_bps,
        **common,
    )


async def run() -> None:
    cfg = load_config()
    logging.basicConfig(
        level=cfg.server.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    recorder: ObservabilityRecorder | None = None
    if cfg.server.observability_db_path:
        Path(cfg.server.observability_db_path).parent.mkdir(parents=True, exist_ok=True)
        recorder = ObservabilityRecorder(sink=DuckDBObservabilitySink(path=cfg.server.observability_db_path))
    event_bus = ExecutionEventBus(recorder=recorder)

    ledger = Ledger(store=JsonSnapshotStore(cfg.strategy.snapshot_path))
    ledger.hydrate()

    adapters, closers = build_adapters(cfg)
    strategy = build_strategy(cfg, adapters=adapters, ledger=ledger, event_bus=event_bus)
    scheduler = StrategyScheduler(strategy, ledger, interval_s=cfg.strategy.interval_s)

    app = create_app(
        strategy,
        scheduler_status=lambda: {
            "cycles_run": scheduler.cycles_run,
            "ticks_skipped": scheduler.ticks_skipped,
            "cycle_in_flight": scheduler.is_running_cycle,
        },
    )
    runner = await start_server(app, port=cfg.server.port)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:  # pragma: no cover - not available on Windows
            pass

    logger.info("running strategy %s (pid %d)", strategy.name, os.getpid())
    scheduler_task = asyncio.create_task(scheduler.run(), name="strategy-scheduler")
    try:
        await stop.wait()
        logger.info("shutdown requested")
    finally:
        await scheduler.stop()
        await scheduler_task
        await runner.cleanup()
        for close in closers:
            await close()
        if recorder is not None:
            await recorder.aclose()


def main() -> None:
    """CLI entrypoint (`python src/main.py` or the `strategy-engine` script)."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
