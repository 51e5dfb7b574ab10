"""
Upload resolution.

Turns the file reference of an uploaded photo or document into a URL the
extraction service can download, rejecting formats it cannot read and
files above the size ceiling.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from policybot.config import settings
from policybot.core.flow.content import ContentType
from policybot.infra.mindee import SUPPORTED_MIME_TYPES
from policybot.infra.telegram import TelegramClient
from policybot.models.telegram import TelegramMessage

logger = logging.getLogger(__name__)


UNSUPPORTED_FORMAT_MESSAGE = (
    "Sorry, unsupported file format. "
    "Please send a PDF, JPEG, PNG, WEBP, TIFF, or HEIC file."
)


@dataclass
class UploadResult:
    """Resolved download URL, or the message to send instead."""

    file_url: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.file_url is not None


def _size_limit_message() -> str:
    limit_mb = settings.max_file_size // (1024 * 1024)
    return f"Sorry, your file exceeds the *{limit_mb} MB* limit. Please upload a smaller one."


async def resolve_upload(
    transport: TelegramClient,
    message: TelegramMessage,
    content_type: ContentType,
) -> UploadResult:
    """
    Resolve a download URL for the file in a message.

    Photos arrive in several resolutions; the largest (last) one is used.
    Documents must have a MIME type the extraction service supports.

    Args:
        transport: Telegram client used for getFile
        message: Message carrying the photo or document
        content_type: PHOTO or DOCUMENT

    Returns:
        UploadResult with either file_url or error_message set
    """
    if content_type == ContentType.PHOTO:
        label = "photo"
        largest = message.photo[-1]
        file_id = largest.file_id
        file_size = largest.file_size
    else:
        label = "document"
        document = message.document
        file_id = document.file_id
        file_size = document.file_size

        if document.mime_type not in SUPPORTED_MIME_TYPES:
            logger.info(f"Rejected upload with mime_type={document.mime_type}")
            return UploadResult(error_message=UNSUPPORTED_FORMAT_MESSAGE)

    if file_size > settings.max_file_size:
        logger.info(f"Rejected upload of {file_size} bytes")
        return UploadResult(error_message=_size_limit_message())

    try:
        file_url = await transport.get_file_url(file_id)
    except Exception as e:
        logger.error(f"Failed to resolve file URL: {e}")
        return UploadResult(
            error_message=f"Something went wrong. Please send your {label} again."
        )

    return UploadResult(file_url=file_url)
