"""aiosqlite connection owner for the rate history and subscription tables.

One connection is shared by both stores. WAL journaling lets the HTTP API
and the chat commands read while an ingestion tick is writing. Every write
goes through ``transaction()`` so a failed statement never leaves rows in
an open transaction for another task's commit to pick up.
"""

import asyncio
import os
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Self

import aiosqlite

from ratebot.logging import get_logger

logger = get_logger(__name__)

SCHEMA_VERSION = 2

_PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
    "PRAGMA foreign_keys=ON",
)

# Prices are TEXT so Decimal values survive unchanged; times are epoch ms.
_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS coins (
    symbol TEXT PRIMARY KEY,
    added_at INTEGER NOT NULL,
    active INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS prices (
    symbol TEXT NOT NULL REFERENCES coins(symbol),
    timestamp_ms INTEGER NOT NULL,
    value TEXT NOT NULL,
    PRIMARY KEY (symbol, timestamp_ms)
);

CREATE TABLE IF NOT EXISTS subscriptions (
    chat_id INTEGER PRIMARY KEY,
    enabled INTEGER NOT NULL DEFAULT 1,
    interval_minutes INTEGER NOT NULL CHECK (interval_minutes > 0),
    last_sent_at_ms INTEGER
);

CREATE INDEX IF NOT EXISTS idx_subscriptions_enabled
    ON subscriptions(enabled);
"""

# version -> statements that bring a file from ``version - 1`` to ``version``
_MIGRATIONS: dict[int, tuple[str, ...]] = {
    2: ("ALTER TABLE coins ADD COLUMN active INTEGER NOT NULL DEFAULT 1",),
}


class RateDatabase:
    """Opens the SQLite file, applies the schema and syncs the tracked coins.

    Coins are reference data. On connect the configured ``tracked_symbols``
    are marked active and every other known coin inactive; inactive coins
    keep their price rows but are invisible to the stores' coin lookups.
    Connecting with no tracked symbols leaves the coin table untouched.

    Usage:
        async with RateDatabase("data/ratebot.db", ["BTC", "ETH"]) as database:
            store = SqlitePriceHistoryStore(database)
    """

    def __init__(
        self,
        db_path: str = "data/ratebot.db",
        tracked_symbols: list[str] | None = None,
    ) -> None:
        self._db_path = db_path
        self._tracked_symbols = [s.upper() for s in tracked_symbols or []]
        self._connection: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

    @property
    def db(self) -> aiosqlite.Connection:
        """The open connection. Raises RuntimeError before ``connect()``."""
        if self._connection is None:
            raise RuntimeError("RateDatabase is not connected")
        return self._connection

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Serialized write block: commit on success, roll back on any error.

        Usage:
            async with database.transaction() as conn:
                await conn.execute("UPDATE ...")
        """
        async with self._write_lock:
            conn = self.db
            try:
                yield conn
            except BaseException:
                await conn.rollback()
                raise
            await conn.commit()

    async def connect(self) -> None:
        if self._db_path != ":memory:":
            parent = os.path.dirname(self._db_path)
            if parent:
                os.makedirs(parent, exist_ok=True)

        self._connection = await aiosqlite.connect(self._db_path)
        for pragma in _PRAGMAS:
            await self._connection.execute(pragma)

        await self._migrate()
        await self._sync_coins()
        logger.info("rate_db_connected", db_path=self._db_path, tracked=self._tracked_symbols)

    async def close(self) -> None:
        if self._connection is None:
            return
        await self._connection.close()
        self._connection = None
        logger.info("rate_db_closed", db_path=self._db_path)

    async def _migrate(self) -> None:
        """Create missing tables and upgrade older files to SCHEMA_VERSION.

        Raises:
            RuntimeError: The file was written by a newer schema.
        """
        conn = self.db
        cursor = await conn.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table' AND name = 'schema_version'"
        )
        fresh = await cursor.fetchone() is None
        await conn.executescript(_SCHEMA_SQL)

        cursor = await conn.execute("SELECT MAX(version) FROM schema_version")
        row = await cursor.fetchone()
        stored = row[0] if row is not None else None

        if fresh or stored is None:
            stored = SCHEMA_VERSION
            await conn.execute("DELETE FROM schema_version")
            await conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,)
            )
            logger.info("schema_version_set", version=SCHEMA_VERSION)
        elif stored > SCHEMA_VERSION:
            raise RuntimeError(
                f"{self._db_path} has schema v{stored}, this build supports v{SCHEMA_VERSION}"
            )

        for version in range(stored + 1, SCHEMA_VERSION + 1):
            for statement in _MIGRATIONS[version]:
                await conn.execute(statement)
            await conn.execute("UPDATE schema_version SET version = ?", (version,))
            logger.info("schema_migrated", version=version)
        await conn.commit()

    async def _sync_coins(self) -> None:
        if not self._tracked_symbols:
            return
        added_at = int(time.time() * 1000)
        async with self.transaction() as conn:
            await conn.execute("UPDATE coins SET active = 0")
            await conn.executemany(
                "INSERT INTO coins (symbol, added_at, active) VALUES (?, ?, 1) "
                "ON CONFLICT(symbol) DO UPDATE SET active = 1",
                [(symbol, added_at) for symbol in self._tracked_symbols],
            )

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        await self.close()
