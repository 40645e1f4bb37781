"""Outbound message channels."""

from ratebot.notifiers.base import Notifier
from ratebot.notifiers.telegram import TelegramClient

__all__ = ["Notifier", "TelegramClient"]
