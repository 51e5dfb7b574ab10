"""
Telegram Bot API update models.

Only the parts of an update the bot reads are modelled; everything else
Telegram sends (stickers, locations, ...) is ignored and classified as
unsupported content by the router.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TelegramUser(BaseModel):
    """Sender of a message."""

    model_config = ConfigDict(extra="ignore")

    id: int


class MessageEntity(BaseModel):
    """Special entity in message text (commands, links, ...)."""

    model_config = ConfigDict(extra="ignore")

    type: str
    offset: int = 0
    length: int = 0


class DocumentAttachment(BaseModel):
    """General file attached to a message."""

    model_config = ConfigDict(extra="ignore")

    file_id: str
    file_size: int = 0
    mime_type: Optional[str] = None
    file_name: Optional[str] = None


class PhotoSize(BaseModel):
    """One resolution of a photo. Telegram sends several, smallest first."""

    model_config = ConfigDict(extra="ignore")

    file_id: str
    file_size: int = 0
    width: int = 0
    height: int = 0


class TelegramMessage(BaseModel):
    """Incoming message."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    from_user: TelegramUser = Field(alias="from")
    text: Optional[str] = None
    entities: Optional[list[MessageEntity]] = None
    document: Optional[DocumentAttachment] = None
    photo: Optional[list[PhotoSize]] = None

    @property
    def user_id(self) -> int:
        """Telegram id of the sender (private chats: also the chat id)."""
        return self.from_user.id


class TelegramUpdate(BaseModel):
    """Webhook payload."""

    model_config = ConfigDict(extra="ignore")

    update_id: int
    message: TelegramMessage
