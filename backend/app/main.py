"""
coinrate entry point.

Startup order: initial coin list fetch (fatal on failure), snapshot store
initialisation, then the two recurring tasks. The HTTP listener comes up
once the FastAPI lifespan startup completes.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

import uvicorn
from fastapi import FastAPI

from app.api.routes import router
from app.config.settings import Settings, load_settings
from app.errors import StartupFailure, UpstreamUnavailable
from app.log_config import LOG_LEVELS, setup_logging
from app.pricing.engine import PriceEngine
from app.providers.cryptocompare import CryptoCompareClient
from app.registry import SymbolRegistry
from app.scheduler import RecurringTask
from app.snapshots.refresher import SnapshotRefresher
from app.snapshots.store import SnapshotStore, create_snapshot_store

logger = logging.getLogger("app.main")


@dataclass
class Services:
    registry: SymbolRegistry
    store: SnapshotStore
    refresher: SnapshotRefresher
    engine: PriceEngine
    tasks: list[RecurringTask] = field(default_factory=list)


def build_services(settings: Settings) -> Services:
    client = CryptoCompareClient.from_settings(settings)
    registry = SymbolRegistry(settings.managed_coins, client.fetch_coin_list)
    store = create_snapshot_store(settings)
    refresher = SnapshotRefresher(
        store, settings.managed_coins, client.fetch_price_single, pivot=settings.pivot_currency
    )
    engine = PriceEngine(registry, store, client.fetch_price_multi)
    tasks = [
        RecurringTask(
            "coin-list-refresh",
            settings.coin_list_fetch_interval_seconds,
            registry.refresh_safely,
        ),
        RecurringTask(
            "snapshot-capture",
            settings.coin_data_fetch_interval_seconds,
            refresher.tick,
        ),
    ]
    return Services(registry=registry, store=store, refresher=refresher, engine=engine, tasks=tasks)


async def startup(services: Services) -> None:
    # the lifespan never reaches shutdown() when startup raises
    try:
        try:
            await asyncio.to_thread(services.registry.refresh)
        except UpstreamUnavailable as exc:
            raise StartupFailure(f"initial coin list fetch failed: {exc}") from exc
        await services.store.init()
    except StartupFailure:
        await services.store.close()
        raise
    for task in services.tasks:
        task.start()
    logger.info(
        "price service ready: %d managed symbols, %d eligible",
        len(services.registry.managed),
        len(services.registry.managed & services.registry.supported),
    )


async def shutdown(services: Services) -> None:
    for task in services.tasks:
        await task.stop()
    await services.store.close()


def create_app(services: Services) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await startup(services)
        try:
            yield
        finally:
            await shutdown(services)

    app = FastAPI(title="coinrate", lifespan=lifespan)
    app.state.services = services
    app.state.engine = services.engine
    app.include_router(router)
    return app


# --------------------------------------------------------------------------- #
# CLI                                                                         #
# --------------------------------------------------------------------------- #
def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Crypto exchange rate service")
    p.add_argument(
        "-c",
        "--config",
        default=None,
        help="Path to JSON configuration file (default conf.json)",
    )
    p.add_argument(
        "--log-level",
        default="INFO",
        choices=LOG_LEVELS,
        help="Console log level (default INFO)",
    )
    return p.parse_args(argv)


def main(argv=None) -> None:
    args = parse_args(argv)
    setup_logging(args.log_level)
    settings = load_settings(args.config)
    app = create_app(build_services(settings))

    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.local_port,
        lifespan="on",
        log_config=None,
        log_level=args.log_level.lower(),
    )
    server = uvicorn.Server(config)
    try:
        server.run()
    except KeyboardInterrupt:
        pass
    # uvicorn returns without raising when lifespan startup or the port bind fails
    if not server.started:
        logger.error("price service failed to start")
        sys.exit(1)


if __name__ == "__main__":
    main()
