"""Chat command handling: turns one incoming message into one reply.

Supported commands:
  /start              help text
  /rates              latest price of every tracked coin
  /rates SYMBOL       details for one coin (price, 24h min/max, 1h change)
  /startauto [MIN]    digest every MIN minutes (default from settings)
  /stopauto           stop the digest
"""

from __future__ import annotations

import asyncio

from ratebot.analytics.rates import RateAnalytics
from ratebot.exceptions import (
    CoinNotFound,
    InsufficientHistoryForChange,
    InvalidInterval,
    NoPricesAvailable,
)
from ratebot.formatting import format_digest, format_rate_details
from ratebot.logging import get_logger
from ratebot.subscriptions.service import SubscriptionService

logger = get_logger(__name__)

HELP_TEXT = (
    "Available commands:\n"
    "/rates - latest prices for all coins\n"
    "/rates {symbol} - details for one coin\n"
    "/startauto {minutes} - enable periodic updates\n"
    "/stopauto - disable periodic updates"
)
MSG_NO_PRICES = "No price data available yet"
MSG_INTERNAL = "Internal service error, please try again later"


def parse_minutes(raw: str) -> int:
    """Parse a positive number of minutes.

    Raises:
        InvalidInterval: Not an integer, or not > 0.
    """
    try:
        minutes = int(raw.strip())
    except ValueError:
        raise InvalidInterval(0) from None
    if minutes <= 0:
        raise InvalidInterval(minutes)
    return minutes


class CommandHandler:
    """Routes chat commands to analytics and subscription operations.

    Args:
        analytics: Rate queries.
        subscriptions: Enable/disable digests.
        tracked_symbols: Symbols accepted by ``/rates SYMBOL``.
        default_interval: Minutes used by a bare ``/startauto``.
        timeout: Seconds allowed per command.
    """

    def __init__(
        self,
        analytics: RateAnalytics,
        subscriptions: SubscriptionService,
        tracked_symbols: list[str],
        default_interval: int = 10,
        timeout: float = 3.0,
    ) -> None:
        self._analytics = analytics
        self._subscriptions = subscriptions
        self._tracked = [s.upper() for s in tracked_symbols]
        self._default_interval = default_interval
        self._timeout = timeout

    async def handle(self, chat_id: int, text: str) -> str:
        parts = text.strip().split()
        if not parts:
            return HELP_TEXT
        # "/rates@MyBot" in group chats
        command = parts[0].split("@", 1)[0].lower()
        args = parts[1:]

        logger.debug("command_received", chat_id=chat_id, command=command, args_len=len(args))
        try:
            async with asyncio.timeout(self._timeout):
                if command == "/start" or command == "/help":
                    return HELP_TEXT
                if command == "/rates":
                    if args:
                        return await self._rates_for(args[0])
                    return await self._all_rates()
                if command == "/startauto":
                    return await self._start_auto(chat_id, args)
                if command == "/stopauto":
                    await self._subscriptions.disable(chat_id)
                    return "Periodic updates disabled"
        except TimeoutError:
            logger.warning("command_timed_out", chat_id=chat_id, command=command)
            return MSG_INTERNAL
        except Exception as e:
            logger.error("command_failed", chat_id=chat_id, command=command, error=str(e))
            return MSG_INTERNAL

        return "Unknown command. Send /start for the list of commands"

    async def _all_rates(self) -> str:
        try:
            snapshot = await self._analytics.get_all_latest()
        except NoPricesAvailable:
            return MSG_NO_PRICES
        return format_digest(snapshot)

    async def _rates_for(self, raw_symbol: str) -> str:
        symbol = raw_symbol.strip().upper()
        if symbol not in self._tracked:
            return f"Coin is not supported. Available: {', '.join(self._tracked)}"
        try:
            stats = await self._analytics.get_stats_by_symbol(symbol)
        except CoinNotFound:
            return "Coin not found"
        except NoPricesAvailable:
            return MSG_NO_PRICES
        except InsufficientHistoryForChange:
            return f"Not enough history yet to compute the 1h change for {symbol}, try again later"
        return format_rate_details(stats)

    async def _start_auto(self, chat_id: int, args: list[str]) -> str:
        if len(args) > 1:
            return "Give the interval in minutes: /startauto 10"
        try:
            minutes = parse_minutes(args[0]) if args else self._default_interval
            await self._subscriptions.enable(chat_id, minutes)
        except InvalidInterval:
            logger.warning("startauto_invalid_interval", chat_id=chat_id, args=args)
            return "Invalid interval. Example: /startauto 10"
        return f"Periodic updates enabled (every {minutes} min)"
