"""Digest subscription management."""

from ratebot.subscriptions.service import SubscriptionService

__all__ = ["SubscriptionService"]
