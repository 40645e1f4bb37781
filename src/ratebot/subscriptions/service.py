"""Subscription commands exposed to the chat and HTTP layers."""

from ratebot.data.subscription_store import SubscriptionStore
from ratebot.exceptions import InternalError, InvalidInterval
from ratebot.logging import get_logger

logger = get_logger(__name__)


class SubscriptionService:
    """Validates and records digest subscriptions.

    Both operations are idempotent: enabling again updates the interval and
    restarts the schedule from now; disabling twice is harmless.
    """

    def __init__(self, store: SubscriptionStore) -> None:
        self._store = store

    async def enable(self, chat_id: int, interval_minutes: int) -> None:
        """Turn on digests for a chat every ``interval_minutes``.

        Raises:
            InvalidInterval: interval_minutes <= 0.
            InternalError: The store write failed.
        """
        if interval_minutes <= 0:
            raise InvalidInterval(interval_minutes)
        try:
            await self._store.enable(chat_id, interval_minutes)
        except Exception as e:
            logger.error(
                "subscription_enable_failed",
                chat_id=chat_id,
                interval_min=interval_minutes,
                error=str(e),
            )
            raise InternalError("subscription store enable failed") from e
        logger.info("subscription_enabled", chat_id=chat_id, interval_min=interval_minutes)

    async def disable(self, chat_id: int) -> None:
        """Turn off digests for a chat. Safe to call when already off."""
        try:
            await self._store.disable(chat_id)
        except Exception as e:
            logger.error("subscription_disable_failed", chat_id=chat_id, error=str(e))
            raise InternalError("subscription store disable failed") from e
        logger.info("subscription_disabled", chat_id=chat_id)
