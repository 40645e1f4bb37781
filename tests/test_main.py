"""Tests for component wiring and background task lifecycle in main."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from ratebot.config import AppSettings
from ratebot.exceptions import NoPricesAvailable
from ratebot.main import (
    build_components,
    close_components,
    start_background_tasks,
    stop_background_tasks,
)
from ratebot.market_data.price_source import PriceSource
from ratebot.notifiers.telegram import TelegramClient
from ratebot.scheduler import SchedulerState


@pytest.fixture
def price_source() -> AsyncMock:
    source = AsyncMock(spec=PriceSource)
    source.fetch_current.return_value = []
    return source


class TestBuildComponents:
    @pytest.mark.asyncio
    async def test_without_telegram_only_ingestion_runs(
        self, mock_settings: AppSettings, price_source: AsyncMock
    ) -> None:
        components = await build_components(mock_settings, price_source=price_source)
        try:
            assert [s.name for s in components.schedulers] == ["ingestion"]
            assert components.telegram is None
            assert components.poller is None
        finally:
            await close_components(components)

    @pytest.mark.asyncio
    async def test_with_telegram_dispatch_and_poller_run(
        self, mock_settings: AppSettings, price_source: AsyncMock
    ) -> None:
        telegram = AsyncMock(spec=TelegramClient)

        components = await build_components(
            mock_settings, price_source=price_source, telegram=telegram
        )
        try:
            assert [s.name for s in components.schedulers] == ["ingestion", "dispatch"]
            assert components.poller is not None
        finally:
            await close_components(components)

        telegram.close.assert_awaited_once()
        price_source.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_tracked_coins_provisioned(
        self, mock_settings: AppSettings, price_source: AsyncMock
    ) -> None:
        mock_settings.tracked_symbols = ["sol", "BTC"]
        components = await build_components(mock_settings, price_source=price_source)
        try:
            # A provisioned coin without prices is "no data", not "unknown coin"
            with pytest.raises(NoPricesAvailable):
                await components.analytics.get_stats_by_symbol("SOL")
        finally:
            await close_components(components)


class TestBackgroundTasks:
    @pytest.mark.asyncio
    async def test_start_and_stop(
        self, mock_settings: AppSettings, price_source: AsyncMock
    ) -> None:
        components = await build_components(mock_settings, price_source=price_source)
        stop = asyncio.Event()

        tasks = start_background_tasks(components, stop)
        await asyncio.sleep(0.02)
        await stop_background_tasks(tasks, stop)
        await close_components(components)

        assert all(t.done() for t in tasks)
        assert all(s.state is SchedulerState.STOPPED for s in components.schedulers)
        price_source.fetch_current.assert_awaited()
