"""
Inbound content classification.

Each message is reduced to exactly one content type before routing.
"""

from enum import Enum

from policybot.models.telegram import TelegramMessage


class ContentType(str, Enum):
    """What a user sent."""

    TEXT = "text"
    COMMAND = "command"
    DOCUMENT = "document"
    PHOTO = "photo"
    UNSUPPORTED = "unsupported"


def classify_content(message: TelegramMessage) -> ContentType:
    """
    Classify a message.

    Precedence: photo, document, command (first entity is a bot command),
    text. Anything else (stickers, voice, locations) is unsupported.
    """
    if message.photo:
        return ContentType.PHOTO
    if message.document:
        return ContentType.DOCUMENT
    if message.entities and message.entities[0].type == "bot_command":
        return ContentType.COMMAND
    if message.text:
        return ContentType.TEXT
    return ContentType.UNSUPPORTED
