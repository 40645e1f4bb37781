"""Entry point for the rate digest service.

Wires all components together, optionally serves the HTTP API, and runs the
background loops. When the API is enabled (default) the loops and the API
share a single asyncio event loop via uvicorn's programmatic API and
FastAPI's lifespan context manager; uvicorn then owns SIGINT/SIGTERM.
Without the API, SIGINT/SIGTERM set the shared stop event directly.

Component wiring order (in build_components):
1. RateDatabase (schema + tracked coin provisioning)
2. Price history and subscription stores
3. RateAnalytics and SubscriptionService
4. PriceSource + IngestionService + ingestion scheduler
5. TelegramClient (notifier) + DispatchEngine + dispatch scheduler
6. CommandHandler + TelegramPoller
"""

import asyncio
import signal
from collections.abc import Coroutine
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

import uvicorn
from fastapi import FastAPI

from ratebot.analytics.rates import RateAnalytics
from ratebot.api.app import create_api_app
from ratebot.bot.commands import CommandHandler
from ratebot.bot.poller import TelegramPoller
from ratebot.clock import Clock, SystemClock
from ratebot.config import AppSettings
from ratebot.data.database import RateDatabase
from ratebot.data.price_store import SqlitePriceHistoryStore
from ratebot.data.subscription_store import SqliteSubscriptionStore
from ratebot.dispatch.engine import DispatchEngine
from ratebot.logging import get_logger, setup_logging
from ratebot.market_data.ingestion import IngestionService
from ratebot.market_data.price_source import CcxtPriceSource, PriceSource
from ratebot.notifiers.telegram import TelegramClient
from ratebot.scheduler import TickScheduler
from ratebot.subscriptions.service import SubscriptionService

logger = get_logger("ratebot.main")

_SHUTDOWN_TIMEOUT = 30.0


@dataclass
class Components:
    """Everything the process runs, built once from settings."""

    database: RateDatabase
    analytics: RateAnalytics
    subscriptions: SubscriptionService
    price_source: PriceSource
    schedulers: list[TickScheduler] = field(default_factory=list)
    telegram: TelegramClient | None = None
    poller: TelegramPoller | None = None


async def build_components(
    settings: AppSettings,
    clock: Clock | None = None,
    price_source: PriceSource | None = None,
    telegram: TelegramClient | None = None,
) -> Components:
    """Build and connect all components from settings.

    ``price_source`` and ``telegram`` can be injected (tests); otherwise
    they are created from settings. Telegram is only created when
    ``TELEGRAM_ENABLED`` is true and a token is configured; without it the
    dispatch scheduler and the poller are not started.
    """
    clock = clock or SystemClock()
    symbols = settings.canonical_symbols

    database = RateDatabase(settings.storage.db_path, symbols)
    await database.connect()

    price_store = SqlitePriceHistoryStore(database)
    subscription_store = SqliteSubscriptionStore(database)
    analytics = RateAnalytics(price_store, clock)
    subscriptions = SubscriptionService(subscription_store)

    if price_source is None:
        price_source = CcxtPriceSource(settings.source, symbols, clock)
    ingestion = IngestionService(price_source, price_store)

    components = Components(
        database=database,
        analytics=analytics,
        subscriptions=subscriptions,
        price_source=price_source,
    )

    sched = settings.scheduler
    if sched.ingest_enabled:
        components.schedulers.append(
            TickScheduler(
                "ingestion",
                ingestion.fetch_and_save,
                period=sched.ingest_interval_seconds,
                work_timeout=sched.work_timeout_seconds,
            )
        )

    if telegram is None and settings.telegram.enabled:
        if settings.telegram.bot_token.get_secret_value():
            telegram = TelegramClient(settings.telegram)
        else:
            logger.warning("telegram_enabled_without_token")
    components.telegram = telegram

    if telegram is None:
        logger.warning(
            "telegram_disabled",
            note="Digest dispatch and chat commands are not running.",
        )
        return components

    engine = DispatchEngine(
        subscription_store,
        analytics,
        telegram,
        snapshot_timeout=settings.dispatch.snapshot_timeout_seconds,
        max_concurrent_sends=settings.dispatch.max_concurrent_sends,
    )
    if sched.dispatch_enabled:
        components.schedulers.append(
            TickScheduler(
                "dispatch",
                lambda: engine.dispatch_due(clock.now()),
                period=sched.dispatch_interval_seconds,
                work_timeout=sched.work_timeout_seconds,
            )
        )

    handler = CommandHandler(
        analytics,
        subscriptions,
        symbols,
        default_interval=settings.telegram.default_auto_interval,
        timeout=settings.telegram.command_timeout_seconds,
    )
    components.poller = TelegramPoller(
        telegram, handler, poll_timeout=settings.telegram.poll_timeout_seconds
    )
    return components


def start_background_tasks(
    components: Components, stop_event: asyncio.Event
) -> list[asyncio.Task]:  # type: ignore[type-arg]
    """Start every scheduler and the poller as independent tasks."""
    coros: list[Coroutine[Any, Any, None]] = [
        s.run(stop_event) for s in components.schedulers
    ]
    if components.poller is not None:
        coros.append(components.poller.run(stop_event))
    return [asyncio.create_task(c) for c in coros]


async def stop_background_tasks(
    tasks: list[asyncio.Task], stop_event: asyncio.Event  # type: ignore[type-arg]
) -> None:
    """Signal stop, give in-flight work time to finish, then cancel stragglers."""
    stop_event.set()
    if not tasks:
        return
    done, pending = await asyncio.wait(tasks, timeout=_SHUTDOWN_TIMEOUT)
    for task in pending:
        logger.warning("background_task_cancelled", task=task.get_name())
        task.cancel()
    await asyncio.gather(*pending, return_exceptions=True)
    for task in done:
        if not task.cancelled() and task.exception() is not None:
            logger.error("background_task_crashed", error=repr(task.exception()))


async def close_components(components: Components) -> None:
    await components.price_source.close()
    if components.telegram is not None:
        await components.telegram.close()
    await components.database.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run the background loops for as long as the API is up."""
    components: Components = app.state.components
    stop_event = asyncio.Event()
    tasks = start_background_tasks(components, stop_event)
    logger.info("lifespan_started", loops=len(tasks))

    yield

    await stop_background_tasks(tasks, stop_event)
    await close_components(components)
    logger.info("ratebot_stopped")


async def run() -> None:
    """Run the service until SIGINT/SIGTERM."""
    settings = AppSettings()
    setup_logging(settings.log_level, settings.log_format)

    components = await build_components(settings)

    if settings.http.enabled:
        app = create_api_app(components.analytics, components.subscriptions, lifespan=lifespan)
        app.state.components = components

        logger.info(
            "starting_with_http_api",
            host=settings.http.host,
            port=settings.http.port,
            tracked=settings.canonical_symbols,
        )
        config = uvicorn.Config(
            app,
            host=settings.http.host,
            port=settings.http.port,
            log_level="warning",
        )
        await uvicorn.Server(config).serve()
        return

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    logger.info("starting_without_http_api", tracked=settings.canonical_symbols)
    tasks = start_background_tasks(components, stop_event)
    try:
        await stop_event.wait()
        logger.info("graceful_shutdown_signal")
    finally:
        await stop_background_tasks(tasks, stop_event)
        await close_components(components)
        logger.info("ratebot_stopped")


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
