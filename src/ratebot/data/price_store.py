"""Price history store: interface and SQLite implementation.

All SQL is isolated behind PriceHistoryStore. Values are stored as TEXT and
restored as Decimal; timestamps are stored as epoch milliseconds.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal

from ratebot.clock import from_ms, to_ms
from ratebot.data.database import RateDatabase
from ratebot.logging import get_logger
from ratebot.models import Coin, PricePoint

logger = get_logger(__name__)


class PriceHistoryStore(ABC):
    """Append-only, time-ordered store of price points per tracked coin."""

    @abstractmethod
    async def get_coin(self, symbol: str) -> Coin | None:
        """Resolve a tracked coin by symbol (case-insensitive), or None."""
        ...

    @abstractmethod
    async def list_coins(self) -> list[Coin]:
        """All tracked coins ordered by symbol."""
        ...

    @abstractmethod
    async def save_batch(self, points: list[PricePoint]) -> int:
        """Upsert points keyed by (symbol, timestamp). Returns rows written.

        The batch is all-or-nothing.
        """
        ...

    @abstractmethod
    async def latest_for(self, symbol: str) -> PricePoint | None:
        """Most recent point for a symbol, or None."""
        ...

    @abstractmethod
    async def latest_all(self) -> list[PricePoint]:
        """Most recent point for every tracked coin that has one, ordered by symbol."""
        ...

    @abstractmethod
    async def range_for(
        self, symbol: str, since: datetime, until: datetime
    ) -> list[PricePoint]:
        """Points with since <= timestamp <= until, ascending by timestamp."""
        ...


class SqlitePriceHistoryStore(PriceHistoryStore):
    """aiosqlite-backed price history.

    Only coins marked active by RateDatabase count as tracked; history of
    inactive coins stays on disk but is not served.

    Usage:
        async with RateDatabase("data/ratebot.db", ["BTC"]) as database:
            store = SqlitePriceHistoryStore(database)
            await store.save_batch(points)
    """

    def __init__(self, database: RateDatabase) -> None:
        self._database = database

    # ──────────────────────────────────────────────
    # Coins
    # ──────────────────────────────────────────────

    async def get_coin(self, symbol: str) -> Coin | None:
        cursor = await self._database.db.execute(
            "SELECT symbol FROM coins WHERE symbol = ? AND active = 1",
            (symbol.strip().upper(),),
        )
        row = await cursor.fetchone()
        return Coin(symbol=row[0]) if row is not None else None

    async def list_coins(self) -> list[Coin]:
        cursor = await self._database.db.execute(
            "SELECT symbol FROM coins WHERE active = 1 ORDER BY symbol ASC"
        )
        rows = await cursor.fetchall()
        return [Coin(symbol=row[0]) for row in rows]

    # ──────────────────────────────────────────────
    # Write methods
    # ──────────────────────────────────────────────

    async def save_batch(self, points: list[PricePoint]) -> int:
        """Upsert price points; a repeated (symbol, timestamp) replaces the value.

        Duplicate ingestion ticks therefore never add extra rows to a window.
        A failing row rolls back the whole batch.
        """
        if not points:
            return 0

        data = [(p.symbol.upper(), to_ms(p.timestamp), str(p.value)) for p in points]

        async with self._database.transaction() as conn:
            cursor = await conn.executemany(
                "INSERT INTO prices (symbol, timestamp_ms, value) VALUES (?, ?, ?) "
                "ON CONFLICT(symbol, timestamp_ms) DO UPDATE SET value = excluded.value",
                data,
            )

        written = cursor.rowcount
        logger.debug("saved_price_points", total=len(points), written=written)
        return written

    # ──────────────────────────────────────────────
    # Read methods
    # ──────────────────────────────────────────────

    async def latest_for(self, symbol: str) -> PricePoint | None:
        cursor = await self._database.db.execute(
            "SELECT symbol, timestamp_ms, value FROM prices "
            "WHERE symbol = ? ORDER BY timestamp_ms DESC LIMIT 1",
            (symbol.upper(),),
        )
        row = await cursor.fetchone()
        return _row_to_point(row) if row is not None else None

    async def latest_all(self) -> list[PricePoint]:
        cursor = await self._database.db.execute(
            "SELECT p.symbol, p.timestamp_ms, p.value FROM prices p "
            "JOIN (SELECT symbol, MAX(timestamp_ms) AS ts FROM prices GROUP BY symbol) m "
            "ON p.symbol = m.symbol AND p.timestamp_ms = m.ts "
            "JOIN coins c ON c.symbol = p.symbol AND c.active = 1 "
            "ORDER BY p.symbol ASC"
        )
        rows = await cursor.fetchall()
        return [_row_to_point(row) for row in rows]

    async def range_for(
        self, symbol: str, since: datetime, until: datetime
    ) -> list[PricePoint]:
        cursor = await self._database.db.execute(
            "SELECT symbol, timestamp_ms, value FROM prices "
            "WHERE symbol = ? AND timestamp_ms >= ? AND timestamp_ms <= ? "
            "ORDER BY timestamp_ms ASC",
            (symbol.upper(), to_ms(since), to_ms(until)),
        )
        rows = await cursor.fetchall()
        return [_row_to_point(row) for row in rows]


def _row_to_point(row: tuple) -> PricePoint:
    return PricePoint(symbol=row[0], timestamp=from_ms(row[1]), value=Decimal(row[2]))
