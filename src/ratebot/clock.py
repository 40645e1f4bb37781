"""Injectable time source so "now" is deterministic in tests."""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class Clock(ABC):
    """Returns the current instant."""

    @abstractmethod
    def now(self) -> datetime:
        """Current time as a timezone-aware UTC datetime."""
        ...


class SystemClock(Clock):
    """Wall-clock UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    """Always returns the same instant until moved with ``set``/``advance``."""

    def __init__(self, instant: datetime) -> None:
        self._instant = to_utc(instant)

    def now(self) -> datetime:
        return self._instant

    def set(self, instant: datetime) -> None:
        self._instant = to_utc(instant)

    def advance(self, delta: timedelta) -> None:
        self._instant = self._instant + delta


def to_utc(value: datetime) -> datetime:
    """Normalize to an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_ms(value: datetime) -> int:
    """Convert a datetime to integer epoch milliseconds (exact, no float math)."""
    return (to_utc(value) - _EPOCH) // timedelta(milliseconds=1)


def from_ms(value: int) -> datetime:
    """Convert integer epoch milliseconds to an aware UTC datetime."""
    return _EPOCH + timedelta(milliseconds=value)
