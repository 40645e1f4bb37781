"""Telegram long-poll loop feeding chat messages to the CommandHandler."""

from __future__ import annotations

import asyncio
from typing import Any

from ratebot.bot.commands import CommandHandler
from ratebot.exceptions import NotificationError
from ratebot.logging import get_logger
from ratebot.notifiers.telegram import TelegramClient

logger = get_logger(__name__)


class TelegramPoller:
    """Reads updates with ``getUpdates`` and answers each text message.

    Runs until the shared stop event is set. A long poll that is in flight
    when the event fires is allowed to return first.
    """

    def __init__(
        self,
        client: TelegramClient,
        handler: CommandHandler,
        poll_timeout: int = 10,
        error_backoff: float = 5.0,
    ) -> None:
        self._client = client
        self._handler = handler
        self._poll_timeout = poll_timeout
        self._error_backoff = error_backoff
        self._offset: int | None = None

    async def run(self, stop_event: asyncio.Event) -> None:
        logger.info("telegram_poller_started", token=self._client.masked_token)
        while not stop_event.is_set():
            try:
                updates = await self._client.get_updates(self._offset, self._poll_timeout)
            except NotificationError as e:
                logger.warning("telegram_poll_failed", error=str(e))
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=self._error_backoff)
                except TimeoutError:
                    pass
                continue

            for update in updates:
                await self.process_update(update)
        logger.info("telegram_poller_stopped")

    async def process_update(self, update: dict[str, Any]) -> None:
        """Handle one update and advance the offset past it."""
        update_id = update.get("update_id")
        if isinstance(update_id, int):
            self._offset = update_id + 1

        message = update.get("message") or {}
        text = message.get("text")
        chat_id = (message.get("chat") or {}).get("id")
        if not text or chat_id is None or not text.startswith("/"):
            return

        reply = await self._handler.handle(chat_id, text)
        try:
            await self._client.send(chat_id, reply)
        except NotificationError as e:
            logger.error("command_reply_failed", chat_id=chat_id, error=str(e))

    @property
    def offset(self) -> int | None:
        return self._offset
