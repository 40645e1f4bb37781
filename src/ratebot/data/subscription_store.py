"""Subscription store: interface and SQLite implementation."""

from abc import ABC, abstractmethod
from datetime import datetime

from ratebot.clock import from_ms, to_ms
from ratebot.data.database import RateDatabase
from ratebot.logging import get_logger
from ratebot.models import Subscription

logger = get_logger(__name__)

_MS_PER_MINUTE = 60_000


class SubscriptionStore(ABC):
    """Per-chat digest subscription state."""

    @abstractmethod
    async def enable(self, chat_id: int, interval_minutes: int) -> None:
        """Create or update a subscription; always resets last_sent_at to None."""
        ...

    @abstractmethod
    async def disable(self, chat_id: int) -> None:
        """Disable a subscription. Missing or already disabled is a no-op."""
        ...

    @abstractmethod
    async def find_due(self, now: datetime) -> list[int]:
        """Chat IDs whose interval has elapsed at ``now`` (inclusive boundary)."""
        ...

    @abstractmethod
    async def mark_sent(self, chat_id: int, at: datetime) -> None:
        """Record a confirmed delivery."""
        ...

    @abstractmethod
    async def get(self, chat_id: int) -> Subscription | None:
        """Current state for a chat, or None if it never subscribed."""
        ...


class SqliteSubscriptionStore(SubscriptionStore):
    """aiosqlite-backed subscriptions table."""

    def __init__(self, database: RateDatabase) -> None:
        self._database = database

    async def enable(self, chat_id: int, interval_minutes: int) -> None:
        async with self._database.transaction() as conn:
            await conn.execute(
                "INSERT INTO subscriptions (chat_id, enabled, interval_minutes, last_sent_at_ms) "
                "VALUES (?, 1, ?, NULL) "
                "ON CONFLICT(chat_id) DO UPDATE SET "
                "enabled = 1, interval_minutes = excluded.interval_minutes, last_sent_at_ms = NULL",
                (chat_id, interval_minutes),
            )

    async def disable(self, chat_id: int) -> None:
        async with self._database.transaction() as conn:
            await conn.execute(
                "UPDATE subscriptions SET enabled = 0 WHERE chat_id = ?",
                (chat_id,),
            )

    async def find_due(self, now: datetime) -> list[int]:
        """Due iff enabled and never sent, or elapsed minutes >= interval.

        The comparison is done in milliseconds (elapsed_ms >= interval * 60000),
        which is the same inclusive boundary without float rounding.
        """
        cursor = await self._database.db.execute(
            "SELECT chat_id FROM subscriptions "
            "WHERE enabled = 1 AND ("
            "  last_sent_at_ms IS NULL "
            "  OR (? - last_sent_at_ms) >= interval_minutes * ?"
            ") ORDER BY chat_id ASC",
            (to_ms(now), _MS_PER_MINUTE),
        )
        rows = await cursor.fetchall()
        return [row[0] for row in rows]

    async def mark_sent(self, chat_id: int, at: datetime) -> None:
        async with self._database.transaction() as conn:
            await conn.execute(
                "UPDATE subscriptions SET last_sent_at_ms = ? WHERE chat_id = ?",
                (to_ms(at), chat_id),
            )

    async def get(self, chat_id: int) -> Subscription | None:
        cursor = await self._database.db.execute(
            "SELECT chat_id, enabled, interval_minutes, last_sent_at_ms "
            "FROM subscriptions WHERE chat_id = ?",
            (chat_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return Subscription(
            chat_id=row[0],
            enabled=bool(row[1]),
            interval_minutes=row[2],
            last_sent_at=from_ms(row[3]) if row[3] is not None else None,
        )
