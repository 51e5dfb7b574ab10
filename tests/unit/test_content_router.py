"""Tests for content classification and routing."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from policybot.core.agent.prompts import UNEXPECTED_MESSAGE_INSTRUCTION
from policybot.core.agent.signals import AgentReply
from policybot.core.flow.content import ContentType, classify_content
from policybot.core.flow.router import ContentRouter
from policybot.core.flow.steps import CLOSING_MESSAGE, WELCOME_MESSAGE
from policybot.core.session.state import Step
from policybot.core.session.store import SessionStore
from policybot.infra.telegram import TelegramApiError
from policybot.models.telegram import MessageEntity

from tests.helpers import PASSPORT_FIELDS, sent_texts


class TestClassifyContent:
    """Test classify_content() precedence."""

    def test_photo_wins(self, make_message):
        message = make_message(
            text="caption",
            photo=True,
            document={"file_id": "doc", "mime_type": "image/png"},
        )
        assert classify_content(message) == ContentType.PHOTO

    def test_document_before_text(self, make_message):
        message = make_message(text="caption", document={"file_id": "doc", "mime_type": "application/pdf"})
        assert classify_content(message) == ContentType.DOCUMENT

    def test_command(self, make_message):
        assert classify_content(make_message(text="/start", command=True)) == ContentType.COMMAND

    def test_text(self, make_message):
        assert classify_content(make_message(text="hello")) == ContentType.TEXT

    def test_text_with_non_command_entity(self, make_message):
        message = make_message(text="see https://example.com")
        message.entities = [MessageEntity(type="url", offset=4, length=19)]
        assert classify_content(message) == ContentType.TEXT

    def test_unsupported(self, make_message):
        assert classify_content(make_message()) == ContentType.UNSUPPORTED


class TestContentRouter:
    """Test ContentRouter.handle_inbound_message()."""

    @pytest.fixture
    def store(self):
        return SessionStore()

    @pytest.fixture
    def router(self, store, transport, agent, extractor):
        return ContentRouter(store=store, transport=transport, agent=agent, extractor=extractor)

    @pytest.mark.asyncio
    async def test_start_command(self, router, store, transport, make_message):
        await router.handle_inbound_message(42, make_message(text="/start", command=True))

        assert sent_texts(transport) == [WELCOME_MESSAGE]
        assert store.get(42).step == Step.AWAITING_FIRST_DOCUMENT

    @pytest.mark.asyncio
    async def test_unsupported_content(self, router, store, transport, agent, make_message):
        await router.handle_inbound_message(42, make_message())

        assert sent_texts(transport) == ["Sorry, I can't process that.\n\nPlease, use a /start command first"]
        assert store.get(42).step == Step.START
        agent.prompt.assert_not_called()

    @pytest.mark.asyncio
    async def test_photo_at_price_step_gets_fallback(self, router, store, transport, agent, make_message):
        """Test an upload at a text-only step changes nothing."""
        session = store.get(42)
        session.step = Step.CONFIRMING_PRICE

        await router.handle_inbound_message(42, make_message(photo=True))

        assert sent_texts(transport) == ["Sorry, I can't process that.\n\nPlease, confirm or reject our offer"]
        assert session.step == Step.CONFIRMING_PRICE
        assert session.transcript == []
        agent.prompt.assert_not_called()
        transport.get_file_url.assert_not_called()

    @pytest.mark.asyncio
    async def test_unexpected_text_goes_to_agent(self, router, store, transport, agent, make_message):
        session = store.get(42)
        session.step = Step.AWAITING_FIRST_DOCUMENT
        agent.prompt.return_value = AgentReply(text="We need a photo of your passport's main page.")

        await router.handle_inbound_message(42, make_message(text="What do you need?"))

        args, kwargs = agent.prompt.call_args
        assert args[0] == 42
        assert args[2] == "What do you need?"
        assert kwargs["instruction"] == UNEXPECTED_MESSAGE_INSTRUCTION

        assert sent_texts(transport) == ["We need a photo of your passport's main page."]
        assert session.transcript == [
            {"role": "user", "content": "What do you need?"},
            {"role": "assistant", "content": "We need a photo of your passport's main page."},
        ]
        assert session.step == Step.AWAITING_FIRST_DOCUMENT

    @pytest.mark.asyncio
    async def test_unexpected_text_agent_down(self, router, store, transport, agent, make_message):
        """Test the fallback is sent and kept out of the transcript."""
        session = store.get(42)
        session.step = Step.AWAITING_FIRST_DOCUMENT
        agent.prompt.side_effect = RuntimeError("Claude down")

        await router.handle_inbound_message(42, make_message(text="hello?"))

        assert sent_texts(transport) == ["Sorry, I can't process that.\n\nPlease, send your passport photo"]
        assert session.transcript == [{"role": "user", "content": "hello?"}]
        assert session.step == Step.AWAITING_FIRST_DOCUMENT

    @pytest.mark.asyncio
    async def test_command_outside_start_goes_to_agent(self, router, store, transport, agent, make_message):
        store.get(42).step = Step.CONFIRMING_PRICE
        agent.prompt.return_value = AgentReply(text="You're already registered.")

        await router.handle_inbound_message(42, make_message(text="/start", command=True))

        assert sent_texts(transport) == ["You're already registered."]
        assert store.get(42).step == Step.CONFIRMING_PRICE

    @pytest.mark.asyncio
    async def test_handler_failure_sends_retry_prompt(self, router, store, transport, make_message):
        store.get(42).step = Step.AWAITING_FIRST_DOCUMENT
        router.pipeline.ingest = AsyncMock(side_effect=RuntimeError("unexpected"))

        await router.handle_inbound_message(42, make_message(photo=True))

        assert sent_texts(transport) == ["Please, send: document or photo"]
        assert store.get(42).step == Step.AWAITING_FIRST_DOCUMENT

    @pytest.mark.asyncio
    async def test_manual_input_text_reaches_pipeline(self, router, store, transport, agent, make_message):
        """Test text passes the gate at a document step while awaiting manual input."""
        session = store.get(42)
        session.step = Step.AWAITING_FIRST_DOCUMENT
        session.awaiting_manual_input = True

        await router.handle_inbound_message(42, make_message(text="John Doe, AB123456, 1990-01-01"))

        assert session.first_document == "John Doe, AB123456, 1990-01-01"
        assert session.awaiting_manual_input is False
        assert session.step == Step.CONFIRMING_FIRST_DOCUMENT
        agent.prompt.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_manual_echo_can_be_retyped(self, router, store, transport, agent, make_message):
        """Test typed data is asked for again when its echo could not be sent."""
        session = store.get(42)
        session.step = Step.AWAITING_FIRST_DOCUMENT
        session.awaiting_manual_input = True
        transport.send_message.side_effect = [
            TelegramApiError(api_method="sendMessage", http_method="POST", code=400, details="Bad Request"),
            {"ok": True, "message_id": 2},
            {"ok": True, "message_id": 3},
        ]

        await router.handle_inbound_message(42, make_message(text="John Doe * AB123456"))

        assert session.step == Step.AWAITING_FIRST_DOCUMENT
        assert session.awaiting_manual_input is True
        assert session.first_document is None
        assert sent_texts(transport)[-1] == "Please, send: document or photo"

        await router.handle_inbound_message(42, make_message(text="John Doe AB123456"))

        assert session.first_document == "John Doe AB123456"
        assert session.step == Step.CONFIRMING_FIRST_DOCUMENT
        agent.prompt.assert_not_called()

    @pytest.mark.asyncio
    async def test_confirmation_step_uses_resolver(self, router, store, transport, agent, make_message):
        session = store.get(42)
        session.step = Step.CONFIRMING_FIRST_DOCUMENT
        session.first_document = PASSPORT_FIELDS
        agent.prompt.side_effect = RuntimeError("Claude down")

        await router.handle_inbound_message(42, make_message(text="yes"))

        assert session.step == Step.AWAITING_SECOND_DOCUMENT
        assert sent_texts(transport) == ["Great! Now please upload your driver's license."]

    @pytest.mark.asyncio
    async def test_generating_deliverable_retries_dispatch(self, router, store, transport, make_message):
        session = store.get(42)
        session.step = Step.GENERATING_DELIVERABLE

        await router.handle_inbound_message(42, make_message(text="where is my policy?"))

        transport.send_document.assert_awaited_once()
        assert session.step == Step.COMPLETED

    @pytest.mark.asyncio
    async def test_completed_sends_closing_message(self, router, store, transport, make_message):
        store.get(42).step = Step.COMPLETED

        await router.handle_inbound_message(42, make_message(text="thanks!"))

        assert sent_texts(transport) == [CLOSING_MESSAGE]
        assert store.get(42).step == Step.COMPLETED

    @pytest.mark.asyncio
    async def test_top_level_failure_is_swallowed(self, router, store, transport, make_message):
        """Test a failure outside any handler is dropped silently."""
        transport.send_message.side_effect = RuntimeError("Telegram down")

        await router.handle_inbound_message(42, make_message())

        assert store.get(42).step == Step.START
        assert not store.lock(42).locked()

    @pytest.mark.asyncio
    async def test_dropped_message_logs_session_state(self, router, store, transport, make_message, caplog):
        store.get(42).step = Step.COMPLETED
        transport.send_message.side_effect = RuntimeError("Telegram down")

        with caplog.at_level("ERROR", logger="policybot.core.flow.router"):
            await router.handle_inbound_message(42, make_message(text="hi"))

        assert "Dropped message from user=42" in caplog.text
        assert "'step': 'completed'" in caplog.text

    @pytest.mark.asyncio
    async def test_same_user_is_serialized(self, router, agent, make_message):
        """Test two messages from one user never run concurrently."""
        active = 0
        max_active = 0

        async def slow_prompt(*args, **kwargs):
            nonlocal active, max_active
            active += 1
            max_active = max(max_active, active)
            await asyncio.sleep(0.01)
            active -= 1
            return AgentReply(text="ok")

        agent.prompt.side_effect = slow_prompt

        await asyncio.gather(
            router.handle_inbound_message(42, make_message(text="first")),
            router.handle_inbound_message(42, make_message(text="second")),
        )

        assert agent.prompt.await_count == 2
        assert max_active == 1

    @pytest.mark.asyncio
    async def test_different_users_run_concurrently(self, router, agent, make_message):
        active = 0
        max_active = 0

        async def slow_prompt(*args, **kwargs):
            nonlocal active, max_active
            active += 1
            max_active = max(max_active, active)
            await asyncio.sleep(0.01)
            active -= 1
            return AgentReply(text="ok")

        agent.prompt.side_effect = slow_prompt

        await asyncio.gather(
            router.handle_inbound_message(1, make_message(user_id=1, text="hi")),
            router.handle_inbound_message(2, make_message(user_id=2, text="hi")),
        )

        assert max_active == 2
