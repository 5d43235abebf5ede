"""Chat bot command layer and Telegram transport."""

from expense_tracker.bot.commands import (
    BotCommandHandler,
    BotDocument,
    BotReply,
    format_confirmation,
)
from expense_tracker.bot.telegram import (
    TelegramClient,
    TelegramError,
    TelegramNetworkError,
)
from expense_tracker.bot.webhook import TelegramUpdateDispatcher

__all__ = [
    "BotCommandHandler",
    "BotDocument",
    "BotReply",
    "format_confirmation",
    "TelegramClient",
    "TelegramError",
    "TelegramNetworkError",
    "TelegramUpdateDispatcher",
]
