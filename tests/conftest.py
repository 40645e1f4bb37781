"""Shared test fixtures for the rate digest service."""

from collections.abc import AsyncIterator
from datetime import datetime, timezone

import pytest
import pytest_asyncio

from ratebot.clock import FixedClock
from ratebot.config import AppSettings, StorageSettings, TelegramSettings
from ratebot.data.database import RateDatabase
from ratebot.data.price_store import SqlitePriceHistoryStore
from ratebot.data.subscription_store import SqliteSubscriptionStore

NOW = datetime(2025, 9, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    """Fixed "now" shared by clock-driven tests: 2025-09-01 12:00 UTC."""
    return NOW


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def mock_settings() -> AppSettings:
    """AppSettings with an in-memory database and Telegram disabled."""
    return AppSettings(
        log_level="DEBUG",
        tracked_symbols=["BTC", "ETH"],
        storage=StorageSettings(db_path=":memory:"),
        telegram=TelegramSettings(enabled=False),
    )


@pytest_asyncio.fixture
async def database() -> AsyncIterator[RateDatabase]:
    """Connected in-memory database tracking BTC and ETH."""
    db = RateDatabase(":memory:", ["BTC", "ETH"])
    await db.connect()
    yield db
    await db.close()


@pytest.fixture
def price_store(database: RateDatabase) -> SqlitePriceHistoryStore:
    return SqlitePriceHistoryStore(database)


@pytest.fixture
def subscription_store(database: RateDatabase) -> SqliteSubscriptionStore:
    return SqliteSubscriptionStore(database)
