"""Telegram Bot API client used both as the digest Notifier and by the poller.

Talks to ``https://api.telegram.org/bot<token>/<method>`` over httpx. The
token is masked in every error message and log field.
"""

from __future__ import annotations

from typing import Any

import httpx

from ratebot.config import TelegramSettings
from ratebot.exceptions import NotificationError
from ratebot.logging import get_logger
from ratebot.notifiers.base import Notifier

logger = get_logger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"
TELEGRAM_MAX_MESSAGE_CHARS = 4096


def truncate_message(text: str, limit: int = TELEGRAM_MAX_MESSAGE_CHARS) -> str:
    """Cut text to Telegram's message size limit, marking the cut."""
    if len(text) <= limit:
        return text
    marker = "\n..."
    return text[: limit - len(marker)] + marker


def mask_secret(secret: str) -> str:
    text = secret.strip()
    if not text:
        return "none"
    if len(text) <= 8:
        return "*" * len(text)
    return f"{text[:4]}...{text[-4:]}"


class TelegramClient(Notifier):
    """Minimal async Telegram Bot API client.

    Args:
        settings: Token and timeouts.
        client: Optional pre-built httpx.AsyncClient (tests inject one with
            a MockTransport).
    """

    def __init__(
        self,
        settings: TelegramSettings,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._token = settings.bot_token.get_secret_value().strip()
        self._masked_token = mask_secret(self._token)
        self._client = client or httpx.AsyncClient(
            base_url=TELEGRAM_API_BASE,
            timeout=settings.request_timeout_seconds,
        )

    @property
    def masked_token(self) -> str:
        return self._masked_token

    async def send(self, chat_id: int, text: str) -> None:
        await self._call(
            "sendMessage",
            {
                "chat_id": chat_id,
                "text": truncate_message(text),
                "disable_web_page_preview": True,
            },
        )

    async def get_updates(self, offset: int | None, timeout: int) -> list[dict[str, Any]]:
        """Long-poll for new updates starting at ``offset``.

        The HTTP read timeout is extended past the long-poll timeout so a
        quiet chat does not look like a network failure.
        """
        payload: dict[str, Any] = {"timeout": timeout, "allowed_updates": ["message"]}
        if offset is not None:
            payload["offset"] = offset
        result = await self._call(
            "getUpdates", payload, request_timeout=float(timeout) + 10.0
        )
        return result if isinstance(result, list) else []

    async def close(self) -> None:
        await self._client.aclose()

    async def _call(
        self,
        method: str,
        payload: dict[str, Any],
        request_timeout: float | None = None,
    ) -> Any:
        url = f"/bot{self._token}/{method}"
        kwargs: dict[str, Any] = {"json": payload}
        if request_timeout is not None:
            kwargs["timeout"] = request_timeout
        try:
            response = await self._client.post(url, **kwargs)
        except httpx.HTTPError as e:
            raise NotificationError(
                f"telegram {method} failed: {type(e).__name__}: {self._sanitize(str(e))}"
            ) from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if not (200 <= response.status_code < 300) or not body.get("ok"):
            description = body.get("description") or f"http_{response.status_code}"
            raise NotificationError(
                f"telegram {method} rejected: {self._sanitize(str(description))}"
            )
        return body.get("result")

    def _sanitize(self, text: str) -> str:
        if not self._token:
            return text
        return text.replace(self._token, self._masked_token)
