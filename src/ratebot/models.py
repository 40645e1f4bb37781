"""Shared data models for the rate digest service.

CRITICAL: All monetary values use Decimal. Never use float for prices or
percentages. All timestamps are timezone-aware UTC datetimes.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal


@dataclass(frozen=True)
class Coin:
    """A tracked asset, identified by its canonical uppercase ticker."""

    symbol: str


@dataclass(frozen=True)
class PricePoint:
    """One observed quote. Unique per (symbol, timestamp)."""

    symbol: str
    value: Decimal
    timestamp: datetime


@dataclass
class RateStats:
    """Derived statistics for one symbol, computed on demand.

    Snapshot entries (all tracked symbols at once) only carry the latest
    price; the windowed fields stay None.
    """

    symbol: str
    price: Decimal
    updated_at: datetime
    min_24h: Decimal | None = None
    max_24h: Decimal | None = None
    change_1h_pct: Decimal | None = None


@dataclass
class Subscription:
    """Per-chat digest subscription state."""

    chat_id: int
    enabled: bool
    interval_minutes: int
    last_sent_at: datetime | None = None
