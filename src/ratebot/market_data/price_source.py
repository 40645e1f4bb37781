"""Price source interface and a public-ticker implementation via ccxt async.

Ingestion depends only on PriceSource; exchange-specific details stay in
CcxtPriceSource. Only public endpoints are used, so no API keys are needed.
"""

from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation

import ccxt.async_support as ccxt_async

from ratebot.clock import Clock, SystemClock, from_ms
from ratebot.config import PriceSourceSettings
from ratebot.exceptions import PriceSourceError
from ratebot.logging import get_logger
from ratebot.models import PricePoint

logger = get_logger(__name__)


class PriceSource(ABC):
    """Opaque provider of current quotes for the tracked symbols."""

    @abstractmethod
    async def fetch_current(self) -> list[PricePoint]:
        """Return the current quote for each symbol the source knows.

        Raises:
            PriceSourceError: On network or parse failure.
        """
        ...

    async def close(self) -> None:
        """Release network resources. No-op by default."""


class CcxtPriceSource(PriceSource):
    """Reads last-trade prices from a ccxt exchange's public ticker endpoint.

    Tracked base symbols ("BTC") are quoted against ``quote_currency``
    ("BTC/USDT"); returned points carry the bare base symbol.
    """

    def __init__(
        self,
        settings: PriceSourceSettings,
        symbols: list[str],
        clock: Clock | None = None,
        exchange: ccxt_async.Exchange | None = None,
    ) -> None:
        self._settings = settings
        self._clock = clock or SystemClock()
        self._pairs = {
            f"{s.upper()}/{settings.quote_currency.upper()}": s.upper() for s in symbols
        }
        if exchange is None:
            exchange_cls = getattr(ccxt_async, settings.exchange_id, None)
            if exchange_cls is None:
                raise ValueError(f"Unknown ccxt exchange id: {settings.exchange_id}")
            exchange = exchange_cls(
                {
                    "enableRateLimit": True,
                    "timeout": int(settings.timeout_seconds * 1000),
                }
            )
        self._exchange = exchange

    async def fetch_current(self) -> list[PricePoint]:
        try:
            tickers = await self._exchange.fetch_tickers(list(self._pairs))
        except ccxt_async.BaseError as e:
            logger.warning(
                "price_source_fetch_failed",
                exchange=self._settings.exchange_id,
                error=str(e),
            )
            raise PriceSourceError(f"{self._settings.exchange_id}: {e}") from e

        fetched_at = self._clock.now()
        points: list[PricePoint] = []

        for pair, ticker in tickers.items():
            base = self._pairs.get(pair)
            if base is None:
                continue

            raw_last = ticker.get("last")
            if raw_last is None:
                logger.warning("ticker_without_last_price", pair=pair)
                continue
            try:
                value = Decimal(str(raw_last))
            except InvalidOperation:
                logger.warning("invalid_ticker_price", pair=pair, raw=raw_last)
                continue

            raw_ts = ticker.get("timestamp")
            timestamp = from_ms(int(raw_ts)) if raw_ts else fetched_at

            points.append(PricePoint(symbol=base, value=value, timestamp=timestamp))

        logger.debug("price_source_fetched", requested=len(self._pairs), received=len(points))
        return points

    async def close(self) -> None:
        """Clean up ccxt async resources. Must be called to avoid session leaks."""
        await self._exchange.close()
        logger.info("price_source_closed", exchange=self._settings.exchange_id)
