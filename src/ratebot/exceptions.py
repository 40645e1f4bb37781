"""Custom exceptions for the rate digest service.

Analytics and subscription errors are raised verbatim up to the HTTP and
chat boundaries, which translate them to transport-specific responses.
"""

from datetime import datetime


class RateBotError(Exception):
    """Base exception for all service errors."""


class CoinNotFound(RateBotError):
    """Raised when a symbol is not one of the tracked assets."""

    def __init__(self, symbol: str) -> None:
        super().__init__(f"coin not found: {symbol}")
        self.symbol = symbol


class NoPricesAvailable(RateBotError):
    """Raised when a recognized asset (or asset set) has no data in the requested window."""


class InsufficientHistoryForChange(RateBotError):
    """Raised when there is no usable reference point for the 1h percent change.

    Either nothing was recorded at or before the threshold, or the reference
    value is zero.
    """

    def __init__(self, symbol: str, threshold: datetime) -> None:
        super().__init__(
            f"not enough history for 1h change of {symbol} at {threshold.isoformat()}"
        )
        self.symbol = symbol
        self.threshold = threshold


class InvalidInterval(RateBotError):
    """Raised when a subscription interval is not a positive number of minutes."""

    def __init__(self, interval_minutes: int) -> None:
        super().__init__(f"interval must be > 0, got {interval_minutes}")
        self.interval_minutes = interval_minutes


class InternalError(RateBotError):
    """Raised when an underlying store or source fails.

    Never shown verbatim to end users; the cause is chained via ``from``.
    """


class PriceSourceError(RateBotError):
    """Raised when the price source cannot be reached or returns garbage."""


class NotificationError(RateBotError):
    """Raised when a message could not be delivered to a chat."""
