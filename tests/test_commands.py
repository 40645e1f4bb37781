"""Tests for CommandHandler replies."""

import asyncio
from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from ratebot.analytics.rates import RateAnalytics
from ratebot.bot.commands import (
    HELP_TEXT,
    MSG_INTERNAL,
    MSG_NO_PRICES,
    CommandHandler,
    parse_minutes,
)
from ratebot.exceptions import (
    InsufficientHistoryForChange,
    InternalError,
    InvalidInterval,
    NoPricesAvailable,
)
from ratebot.models import RateStats
from ratebot.subscriptions.service import SubscriptionService


@pytest.fixture
def analytics() -> AsyncMock:
    return AsyncMock(spec=RateAnalytics)


@pytest.fixture
def subscriptions() -> AsyncMock:
    return AsyncMock(spec=SubscriptionService)


@pytest.fixture
def handler(analytics: AsyncMock, subscriptions: AsyncMock) -> CommandHandler:
    return CommandHandler(analytics, subscriptions, ["BTC", "ETH"], default_interval=10)


class TestParseMinutes:
    def test_valid(self) -> None:
        assert parse_minutes(" 15 ") == 15

    @pytest.mark.parametrize("raw", ["0", "-3", "abc", "1.5", ""])
    def test_invalid(self, raw: str) -> None:
        with pytest.raises(InvalidInterval):
            parse_minutes(raw)


class TestHelpAndUnknown:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["/start", "/help", "/start@RateDigestBot", "   "])
    async def test_help(self, handler: CommandHandler, text: str) -> None:
        assert await handler.handle(1, text) == HELP_TEXT

    @pytest.mark.asyncio
    async def test_unknown_command(self, handler: CommandHandler) -> None:
        reply = await handler.handle(1, "/price BTC")
        assert reply.startswith("Unknown command")


class TestRates:
    @pytest.mark.asyncio
    async def test_all_rates(
        self, handler: CommandHandler, analytics: AsyncMock, now: datetime
    ) -> None:
        analytics.get_all_latest.return_value = [
            RateStats(symbol="BTC", price=Decimal("65000"), updated_at=now),
        ]

        assert await handler.handle(1, "/rates") == "BTC | Price: 65000.00 | Updated: 12:00:00"

    @pytest.mark.asyncio
    async def test_all_rates_empty(self, handler: CommandHandler, analytics: AsyncMock) -> None:
        analytics.get_all_latest.side_effect = NoPricesAvailable("nothing yet")
        assert await handler.handle(1, "/rates") == MSG_NO_PRICES

    @pytest.mark.asyncio
    async def test_single_symbol(
        self, handler: CommandHandler, analytics: AsyncMock, now: datetime
    ) -> None:
        analytics.get_stats_by_symbol.return_value = RateStats(
            symbol="BTC",
            price=Decimal("65000"),
            updated_at=now,
            min_24h=Decimal("64000"),
            max_24h=Decimal("66000"),
            change_1h_pct=Decimal("1.5"),
        )

        reply = await handler.handle(1, "/rates btc")

        analytics.get_stats_by_symbol.assert_awaited_once_with("BTC")
        assert reply.splitlines()[0] == "[BTC]"
        assert "1h change: +1.50%" in reply

    @pytest.mark.asyncio
    async def test_unsupported_symbol(self, handler: CommandHandler, analytics: AsyncMock) -> None:
        reply = await handler.handle(1, "/rates DOGE")

        assert reply == "Coin is not supported. Available: BTC, ETH"
        analytics.get_stats_by_symbol.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_not_enough_history(
        self, handler: CommandHandler, analytics: AsyncMock, now: datetime
    ) -> None:
        analytics.get_stats_by_symbol.side_effect = InsufficientHistoryForChange(
            "ETH", now - timedelta(hours=1)
        )

        reply = await handler.handle(1, "/rates ETH")

        assert reply.startswith("Not enough history yet")
        assert "ETH" in reply

    @pytest.mark.asyncio
    async def test_internal_error(self, handler: CommandHandler, analytics: AsyncMock) -> None:
        analytics.get_all_latest.side_effect = InternalError("price store read failed")
        assert await handler.handle(1, "/rates") == MSG_INTERNAL

    @pytest.mark.asyncio
    async def test_timeout(self, analytics: AsyncMock, subscriptions: AsyncMock) -> None:
        async def slow() -> list[RateStats]:
            await asyncio.sleep(5)
            return []

        analytics.get_all_latest.side_effect = slow
        handler = CommandHandler(analytics, subscriptions, ["BTC"], timeout=0.01)

        assert await handler.handle(1, "/rates") == MSG_INTERNAL


class TestAutoUpdates:
    @pytest.mark.asyncio
    async def test_startauto_default_interval(
        self, handler: CommandHandler, subscriptions: AsyncMock
    ) -> None:
        reply = await handler.handle(42, "/startauto")

        subscriptions.enable.assert_awaited_once_with(42, 10)
        assert reply == "Periodic updates enabled (every 10 min)"

    @pytest.mark.asyncio
    async def test_startauto_with_interval(
        self, handler: CommandHandler, subscriptions: AsyncMock
    ) -> None:
        reply = await handler.handle(42, "/startauto 5")

        subscriptions.enable.assert_awaited_once_with(42, 5)
        assert reply == "Periodic updates enabled (every 5 min)"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("arg", ["0", "abc", "-1"])
    async def test_startauto_invalid(
        self, handler: CommandHandler, subscriptions: AsyncMock, arg: str
    ) -> None:
        reply = await handler.handle(42, f"/startauto {arg}")

        assert reply == "Invalid interval. Example: /startauto 10"
        subscriptions.enable.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_startauto_too_many_args(
        self, handler: CommandHandler, subscriptions: AsyncMock
    ) -> None:
        reply = await handler.handle(42, "/startauto 5 10")

        assert reply == "Give the interval in minutes: /startauto 10"
        subscriptions.enable.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stopauto(self, handler: CommandHandler, subscriptions: AsyncMock) -> None:
        reply = await handler.handle(42, "/stopauto")

        subscriptions.disable.assert_awaited_once_with(42)
        assert reply == "Periodic updates disabled"

    @pytest.mark.asyncio
    async def test_stopauto_store_failure(
        self, handler: CommandHandler, subscriptions: AsyncMock
    ) -> None:
        subscriptions.disable.side_effect = InternalError("subscription store disable failed")
        assert await handler.handle(42, "/stopauto") == MSG_INTERNAL
