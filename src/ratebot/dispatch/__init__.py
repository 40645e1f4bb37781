"""Subscription digest dispatch."""

from ratebot.dispatch.engine import DispatchEngine

__all__ = ["DispatchEngine"]
