"""Shared fixtures: Telegram messages and mocked collaborators."""

from typing import Optional
from unittest.mock import AsyncMock

import pytest

from policybot.core.agent.assistant import InsuranceAgent
from policybot.infra.mindee import MindeeClient
from policybot.infra.telegram import TelegramClient
from policybot.models.telegram import TelegramMessage

from tests.helpers import FILE_URL


@pytest.fixture
def make_message():
    """Factory for inbound Telegram messages."""

    def _make(
        user_id: int = 42,
        text: Optional[str] = None,
        command: bool = False,
        photo: bool = False,
        document: Optional[dict] = None,
    ) -> TelegramMessage:
        payload: dict = {"message_id": 1, "from": {"id": user_id, "is_bot": False}}
        if text is not None:
            payload["text"] = text
        if command:
            payload["entities"] = [{"type": "bot_command", "offset": 0, "length": len(text or "")}]
        if photo:
            payload["photo"] = [
                {"file_id": "small", "file_size": 1200, "width": 90, "height": 60},
                {"file_id": "large", "file_size": 84000, "width": 1280, "height": 853},
            ]
        if document is not None:
            payload["document"] = document
        return TelegramMessage.model_validate(payload)

    return _make


@pytest.fixture
def transport():
    """Mock Telegram client."""
    mock = AsyncMock(spec=TelegramClient)
    mock.send_message.return_value = {"ok": True, "message_id": 1}
    mock.send_document.return_value = True
    mock.get_file_url.return_value = FILE_URL
    return mock


@pytest.fixture
def agent():
    """Mock insurance agent."""
    return AsyncMock(spec=InsuranceAgent)


@pytest.fixture
def extractor():
    """Mock Mindee client."""
    return AsyncMock(spec=MindeeClient)
