"""Rate analytics -- snapshots and windowed statistics over price history."""

from ratebot.analytics.rates import RateAnalytics

__all__ = ["RateAnalytics"]
