"""Chat bot layer -- command handling and Telegram long polling."""

from ratebot.bot.commands import CommandHandler
from ratebot.bot.poller import TelegramPoller

__all__ = ["CommandHandler", "TelegramPoller"]
