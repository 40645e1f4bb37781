"""Windowed rate statistics over the stored price history.

RateAnalytics only reads from the PriceHistoryStore; every number it returns
is computed from the points the store hands back:

- snapshot: latest price for every tracked coin;
- per-symbol stats: latest price, min/max over a window (default trailing
  24h) and the percent change against the last point at or before
  ``window_end - 1h``.

Percent-change policy: when there is no reference point at or before the
threshold, or the reference value is zero, InsufficientHistoryForChange is
raised. A zero change is never substituted.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal

from ratebot.clock import Clock, SystemClock, to_utc
from ratebot.data.price_store import PriceHistoryStore
from ratebot.exceptions import (
    CoinNotFound,
    InsufficientHistoryForChange,
    InternalError,
    NoPricesAvailable,
)
from ratebot.logging import get_logger
from ratebot.models import PricePoint, RateStats

logger = get_logger(__name__)

DEFAULT_WINDOW = timedelta(hours=24)
CHANGE_LOOKBACK = timedelta(hours=1)


def window_min_max(points: list[PricePoint]) -> tuple[Decimal, Decimal]:
    """Min and max value in a single pass. ``points`` must be non-empty."""
    lo = hi = points[0].value
    for point in points[1:]:
        if point.value < lo:
            lo = point.value
        if point.value > hi:
            hi = point.value
    return lo, hi


def reference_point(points: list[PricePoint], threshold: datetime) -> PricePoint | None:
    """Last point (in iteration order) whose timestamp is <= threshold.

    ``points`` is expected ascending by timestamp. On equal timestamps the
    later-iterated record wins; the store's (symbol, timestamp) key means
    this does not happen with real data.
    """
    found: PricePoint | None = None
    for point in points:
        if point.timestamp <= threshold:
            if found is None or point.timestamp >= found.timestamp:
                found = point
    return found


def percent_change(current: Decimal, reference: Decimal) -> Decimal:
    """Signed percent change from reference to current. ``reference`` must be non-zero."""
    return (current - reference) / reference * Decimal(100)


class RateAnalytics:
    """Computes rate snapshots and per-symbol windowed statistics.

    Args:
        store: Price history to read from.
        clock: Source of "now" for default windows.
    """

    def __init__(self, store: PriceHistoryStore, clock: Clock | None = None) -> None:
        self._store = store
        self._clock = clock or SystemClock()

    async def get_all_latest(self) -> list[RateStats]:
        """Latest price for every tracked coin, ordered by symbol.

        Coins with no recorded point are skipped.

        Raises:
            NoPricesAvailable: No tracked coin has any recorded price.
            InternalError: The store failed.
        """
        try:
            latest = await self._store.latest_all()
        except Exception as e:
            logger.error("get_all_latest_store_failed", error=str(e))
            raise InternalError("price store read failed") from e

        if not latest:
            logger.warning("no_latest_prices_available")
            raise NoPricesAvailable("no prices recorded for any tracked coin")

        latest = sorted(latest, key=lambda p: p.symbol)
        logger.debug("loaded_latest_prices", count=len(latest))
        return [
            RateStats(symbol=p.symbol, price=p.value, updated_at=p.timestamp)
            for p in latest
        ]

    async def get_stats_by_symbol(
        self,
        symbol: str,
        window_start: datetime | None = None,
        window_end: datetime | None = None,
    ) -> RateStats:
        """Current price, window min/max and 1h percent change for one symbol.

        Args:
            symbol: Ticker, any case.
            window_start: Inclusive lower bound; defaults to window_end - 24h.
            window_end: Inclusive upper bound; defaults to now (UTC).

        Raises:
            CoinNotFound: Symbol is not a tracked coin.
            NoPricesAvailable: No latest price, or no points in the window.
            InsufficientHistoryForChange: No usable reference for the 1h change.
            InternalError: The store failed.
        """
        symbol = symbol.strip().upper()
        window_end = to_utc(window_end) if window_end is not None else self._clock.now()
        window_start = (
            to_utc(window_start) if window_start is not None else window_end - DEFAULT_WINDOW
        )

        try:
            coin = await self._store.get_coin(symbol)
        except Exception as e:
            logger.error("get_coin_failed", symbol=symbol, error=str(e))
            raise InternalError(f"store.get_coin({symbol}) failed") from e
        if coin is None:
            logger.warning("coin_not_found", symbol=symbol)
            raise CoinNotFound(symbol)

        try:
            current = await self._store.latest_for(coin.symbol)
            logger.debug(
                "loading_history_window",
                symbol=coin.symbol,
                since=window_start.isoformat(),
                until=window_end.isoformat(),
            )
            window = await self._store.range_for(coin.symbol, window_start, window_end)
        except Exception as e:
            logger.error("history_read_failed", symbol=coin.symbol, error=str(e))
            raise InternalError(f"store history read for {coin.symbol} failed") from e

        if current is None:
            raise NoPricesAvailable(f"no price recorded for {coin.symbol}")
        if not window:
            raise NoPricesAvailable(
                f"no prices for {coin.symbol} in [{window_start.isoformat()}, "
                f"{window_end.isoformat()}]"
            )

        min_24h, max_24h = window_min_max(window)

        threshold = window_end - CHANGE_LOOKBACK
        ref = reference_point(window, threshold)
        if ref is None or ref.value == 0:
            logger.warning(
                "insufficient_data_for_change",
                symbol=coin.symbol,
                threshold=threshold.isoformat(),
                reference_found=ref is not None,
            )
            raise InsufficientHistoryForChange(coin.symbol, threshold)

        change = percent_change(current.value, ref.value)

        logger.info(
            "computed_stats",
            symbol=coin.symbol,
            min=str(min_24h),
            max=str(max_24h),
            change_1h_pct=str(change),
        )
        return RateStats(
            symbol=coin.symbol,
            price=current.value,
            updated_at=current.timestamp,
            min_24h=min_24h,
            max_24h=max_24h,
            change_1h_pct=change,
        )
