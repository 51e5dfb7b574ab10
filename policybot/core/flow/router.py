"""
Content router.

Entry point for every inbound message. Routing depends on two things:
1. What the user sent (photo, document, text, command)
2. Which step the user is at

Expected content runs the step's handler. Unexpected text or commands go
to the agent for a conversational answer. Unexpected uploads and
unsupported content get a reminder of what the step expects.

Messages from the same user are handled one at a time.
"""

import logging
from typing import Optional

from policybot.core.agent.assistant import InsuranceAgent, get_agent
from policybot.core.agent.prompts import UNEXPECTED_MESSAGE_INSTRUCTION
from policybot.core.flow.confirmation import ConfirmationResolver
from policybot.core.flow.content import ContentType, classify_content
from policybot.core.flow.deliverable import DeliverableDispatcher
from policybot.core.flow.documents import DocumentIngestionPipeline
from policybot.core.flow.steps import (
    CompletedStep,
    ConfirmationStep,
    DeliverableStep,
    DocumentStep,
    StartStep,
    StepConfig,
    build_step_registry,
    describe_accepted,
)
from policybot.core.session.models import UserSession
from policybot.core.session.state import Step
from policybot.core.session.store import SessionStore, get_session_store
from policybot.infra.mindee import MindeeClient
from policybot.infra.telegram import TelegramClient, get_telegram_client
from policybot.models.telegram import TelegramMessage

logger = logging.getLogger(__name__)


class ContentRouter:
    """
    Routes inbound messages through the onboarding flow.

    Flow:
    1. Classify content
    2. Look up the config for the user's current step
    3. Dispatch to the step handler, the agent, or a fallback message
    """

    _instance: Optional["ContentRouter"] = None

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        transport: Optional[TelegramClient] = None,
        agent: Optional[InsuranceAgent] = None,
        extractor: Optional[MindeeClient] = None,
    ):
        """
        Initialize the router.

        Collaborators left as None resolve to their singletons on first use.
        """
        self._store = store
        self._transport = transport
        self._agent = agent

        self.pipeline = DocumentIngestionPipeline(transport=transport, agent=agent, extractor=extractor)
        self.resolver = ConfirmationResolver(transport=transport, agent=agent)
        self.dispatcher = DeliverableDispatcher(transport=transport)
        self.registry: dict[Step, StepConfig] = build_step_registry(self.dispatcher)

    @classmethod
    def get_instance(cls) -> "ContentRouter":
        """Get singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset singleton instance (useful for testing)."""
        cls._instance = None

    def _get_store(self) -> SessionStore:
        if self._store is None:
            self._store = get_session_store()
        return self._store

    def _get_transport(self) -> TelegramClient:
        if self._transport is None:
            self._transport = get_telegram_client()
        return self._transport

    def _get_agent(self) -> InsuranceAgent:
        if self._agent is None:
            self._agent = get_agent()
        return self._agent

    async def handle_inbound_message(self, user_id: int, message: TelegramMessage) -> None:
        """
        Handle one inbound message end to end.

        Never raises. Anything escaping the routing below is logged and the
        message is dropped without a reply; the user's next message picks
        up from the unchanged session.
        """
        store = self._get_store()

        try:
            async with store.lock(user_id):
                session = store.get(user_id)
                await self._route(user_id, session, message)
        except Exception:
            session = store.peek(user_id)
            logger.exception(
                f"Dropped message from user={user_id}, "
                f"session={session.to_dict() if session else None}"
            )

    async def _route(self, user_id: int, session: UserSession, message: TelegramMessage) -> None:
        transport = self._get_transport()
        content_type = classify_content(message)
        config = self.registry[session.step]

        logger.debug(f"user={user_id} step={session.step.value} content={content_type.value}")

        fallback_message = f"Sorry, I can't process that.\n\nPlease, {config.expected_action}"

        # Stickers, voice, locations...
        if content_type == ContentType.UNSUPPORTED:
            await transport.send_message(user_id, fallback_message)
            return

        # After both extraction tiers failed, typed text is the document data
        is_manual_input = session.awaiting_manual_input and content_type == ContentType.TEXT

        if content_type in config.accepts or is_manual_input:
            try:
                await self._run_step(config, user_id, session, content_type, message)
            except Exception as e:
                logger.error(f"Step handler failed at {session.step.value} for user={user_id}: {e}")
                await transport.send_message(user_id, f"Please, send: {describe_accepted(config)}")
            return

        if content_type in (ContentType.TEXT, ContentType.COMMAND):
            await self._answer_unexpected(user_id, session, message.text, fallback_message)
            return

        # Upload at a step that doesn't take one
        await transport.send_message(user_id, fallback_message)

    async def _run_step(
        self,
        config: StepConfig,
        user_id: int,
        session: UserSession,
        content_type: ContentType,
        message: TelegramMessage,
    ) -> None:
        """Run the handler for the user's current step."""
        transport = self._get_transport()

        match config:
            case StartStep(welcome_message=welcome):
                await transport.send_message(user_id, welcome)
                session.advance()
            case DocumentStep(document_kind=kind):
                await self.pipeline.ingest(user_id, session, content_type, message, kind)
            case ConfirmationStep(on_accept=on_accept, on_reject=on_reject):
                await self.resolver.resolve(
                    user_id,
                    session,
                    message.text,
                    on_accept=on_accept,
                    on_reject=on_reject,
                )
            case DeliverableStep():
                await self.dispatcher.dispatch(user_id, session)
            case CompletedStep(closing_message=closing):
                await transport.send_message(user_id, closing)
            case _:
                raise TypeError(f"Unknown step config: {type(config).__name__}")

    async def _answer_unexpected(
        self,
        user_id: int,
        session: UserSession,
        text: str,
        fallback_message: str,
    ) -> None:
        """Let the agent answer off-script text, e.g. "What documents do I need?"."""
        transport = self._get_transport()
        session.add_to_transcript(text, "user")

        try:
            reply = await self._get_agent().prompt(
                user_id,
                session,
                text,
                instruction=UNEXPECTED_MESSAGE_INSTRUCTION,
            )
        except Exception as e:
            logger.warning(f"Agent unavailable for unexpected message from user={user_id}: {e}")
            # Kept out of the transcript so the agent's context stays clean
            await transport.send_message(user_id, fallback_message)
            return

        await transport.send_message(user_id, reply.text)
        session.add_to_transcript(reply.text, "assistant")


# Singleton accessor
def get_router() -> ContentRouter:
    """Get content router singleton instance."""
    return ContentRouter.get_instance()
