"""Fetch-and-persist cycle driven by the ingestion scheduler."""

from ratebot.data.price_store import PriceHistoryStore
from ratebot.exceptions import InternalError
from ratebot.logging import get_logger
from ratebot.market_data.price_source import PriceSource
from ratebot.models import PricePoint

logger = get_logger(__name__)


class IngestionService:
    """Pulls current quotes for the tracked coins and appends them to history.

    Each symbol is saved on its own so one failing write does not discard
    the other symbols' fresh data.
    """

    def __init__(self, price_source: PriceSource, store: PriceHistoryStore) -> None:
        self._price_source = price_source
        self._store = store

    async def fetch_and_save(self) -> int:
        """Run one ingestion cycle.

        Returns:
            Number of price points persisted.

        Raises:
            InternalError: If the tracked coin list cannot be read.
            PriceSourceError: If the source fails as a whole.
        """
        try:
            coins = await self._store.list_coins()
        except Exception as e:
            logger.error("ingestion_list_coins_failed", error=str(e))
            raise InternalError("store.list_coins failed") from e

        quotes = await self._price_source.fetch_current()
        by_symbol: dict[str, PricePoint] = {q.symbol.upper(): q for q in quotes}

        saved = 0
        for coin in coins:
            quote = by_symbol.get(coin.symbol)
            if quote is None:
                logger.warning("missing_rate_for_coin", symbol=coin.symbol)
                continue

            point = PricePoint(symbol=coin.symbol, value=quote.value, timestamp=quote.timestamp)
            try:
                await self._store.save_batch([point])
            except Exception as e:
                logger.error(
                    "price_save_failed",
                    symbol=coin.symbol,
                    error=str(e),
                    exc_info=True,
                )
                continue
            saved += 1

        logger.info("rates_saved", count=saved, tracked=len(coins))
        return saved
