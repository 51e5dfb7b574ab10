"""Wire models for inbound Telegram updates."""

from policybot.models.telegram import (
    DocumentAttachment,
    MessageEntity,
    PhotoSize,
    TelegramMessage,
    TelegramUpdate,
    TelegramUser,
)

__all__ = [
    "DocumentAttachment",
    "MessageEntity",
    "PhotoSize",
    "TelegramMessage",
    "TelegramUpdate",
    "TelegramUser",
]
