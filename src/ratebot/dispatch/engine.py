"""Digest dispatch: one notification cycle per dispatch tick.

Each cycle:
  1. FIND DUE: ask the subscription store which chats are due at ``now``
  2. SNAPSHOT: read the latest rates once, under its own short timeout
  3. RENDER: build one digest shared by every recipient
  4. DELIVER: send to each chat, then mark it sent at ``now``

Cycle-level failures (due query, snapshot) propagate to the scheduler.
Per-recipient failures are logged and absorbed, so delivery is
at-least-once per due interval: a crash between a send and its mark-sent
produces a duplicate digest on the next tick.
"""

from __future__ import annotations

import asyncio
from datetime import datetime

from ratebot.analytics.rates import RateAnalytics
from ratebot.data.subscription_store import SubscriptionStore
from ratebot.exceptions import NoPricesAvailable
from ratebot.formatting import format_digest
from ratebot.logging import get_logger
from ratebot.notifiers.base import Notifier

logger = get_logger(__name__)


class DispatchEngine:
    """Sends the rate digest to every due subscription.

    Deliveries fan out concurrently up to ``max_concurrent_sends``. A chat's
    mark-sent runs in the same task right after its own successful send, so
    "sent" and "marked sent" always refer to the same attempt.

    Args:
        subscriptions: Due query and delivery bookkeeping.
        analytics: Source of the rate snapshot.
        notifier: Outbound channel.
        snapshot_timeout: Seconds allowed for reading the snapshot.
        max_concurrent_sends: Upper bound on in-flight deliveries.
    """

    def __init__(
        self,
        subscriptions: SubscriptionStore,
        analytics: RateAnalytics,
        notifier: Notifier,
        snapshot_timeout: float = 4.0,
        max_concurrent_sends: int = 5,
    ) -> None:
        self._subscriptions = subscriptions
        self._analytics = analytics
        self._notifier = notifier
        self._snapshot_timeout = snapshot_timeout
        self._send_slots = asyncio.Semaphore(max(1, max_concurrent_sends))

    async def dispatch_due(self, now: datetime) -> int:
        """Run one dispatch cycle at ``now``.

        Returns:
            Number of chats that both received the digest and were marked sent.

        Raises:
            Exception: Whatever the due query or snapshot read raised
                (including TimeoutError), after logging.
        """
        logger.debug("loading_due_subscriptions", now=now.isoformat())
        try:
            chat_ids = await self._subscriptions.find_due(now)
        except Exception as e:
            logger.error("find_due_failed", error=str(e))
            raise
        if not chat_ids:
            logger.debug("no_due_subscriptions")
            return 0

        loop = asyncio.get_running_loop()
        started = loop.time()
        try:
            snapshot = await asyncio.wait_for(
                self._analytics.get_all_latest(), timeout=self._snapshot_timeout
            )
        except NoPricesAvailable:
            logger.warning("empty_rate_snapshot", due=len(chat_ids))
            return 0
        except Exception as e:
            logger.error("snapshot_fetch_failed", error=repr(e))
            raise
        logger.debug(
            "rate_snapshot_loaded",
            count=len(snapshot),
            duration=round(loop.time() - started, 3),
        )

        digest = format_digest(snapshot)

        results = await asyncio.gather(
            *(self._deliver(chat_id, digest, now) for chat_id in chat_ids)
        )
        sent = sum(1 for ok in results if ok)

        logger.info("dispatch_done", due=len(chat_ids), sent=sent)
        return sent

    async def _deliver(self, chat_id: int, digest: str, now: datetime) -> bool:
        """Send then mark sent. True only when both steps succeed."""
        async with self._send_slots:
            try:
                await self._notifier.send(chat_id, digest)
            except Exception as e:
                logger.error("digest_send_failed", chat_id=chat_id, error=str(e))
                return False

            try:
                await self._subscriptions.mark_sent(chat_id, now)
            except Exception as e:
                # Message already delivered; the chat stays due and may get a duplicate.
                logger.error("mark_sent_failed", chat_id=chat_id, error=str(e))
                return False

        return True
