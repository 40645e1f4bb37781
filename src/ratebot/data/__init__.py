"""Persistence layer.

Provides the SQLite database manager and the typed price history and
subscription stores behind their abstract interfaces.
"""

from ratebot.data.database import RateDatabase
from ratebot.data.price_store import PriceHistoryStore, SqlitePriceHistoryStore
from ratebot.data.subscription_store import SqliteSubscriptionStore, SubscriptionStore

__all__ = [
    "PriceHistoryStore",
    "RateDatabase",
    "SqlitePriceHistoryStore",
    "SqliteSubscriptionStore",
    "SubscriptionStore",
]
