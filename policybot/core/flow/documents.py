"""
Document ingestion pipeline.

Turns an uploaded passport or driver's license into document data on the
session, degrading through three tiers:

1. Agent-mediated: the agent calls its extraction tool and talks the user
   through the result
2. Direct extraction: Mindee is called directly and a templated summary
   is sent
3. Manual: the user is asked to type the data, and the next text message
   is stored verbatim

Tiers run strictly in order and a later tier never runs once an earlier
one has handled the upload.
"""

import logging
from typing import Optional

from policybot.core.agent.assistant import InsuranceAgent, get_agent
from policybot.core.agent.prompts import EXTRACTION_INSTRUCTION
from policybot.core.flow.content import ContentType
from policybot.core.flow.uploads import resolve_upload
from policybot.core.session.models import DocumentKind, UserSession
from policybot.infra.mindee import MindeeClient, get_mindee_client
from policybot.infra.telegram import TelegramClient, get_telegram_client
from policybot.models.telegram import TelegramMessage

logger = logging.getLogger(__name__)


PROCESSING_MESSAGE = (
    "*Processing your document 👀*\n\n"
    "This may take a moment. I'll reply as soon as it's complete!"
)


def create_document_summary(data: dict[str, str], kind: DocumentKind) -> str:
    """
    Format extracted fields as a confirmation message.

    Used when the agent is unavailable, in place of its conversational
    reply.
    """
    summary = "\n".join(f"*{label}:* {value}" for label, value in data.items())
    return (
        f"✅ I've extracted your {kind.value} data:\n\n"
        f"{summary}\n\n"
        f'Is this correct?\nPlease reply with "yes" or "no".'
    )


def create_manual_input_prompt(kind: DocumentKind) -> str:
    """Apology plus the fields the user should type in."""
    return (
        f"Sorry, I couldn't process your {kind.value}. "
        f"Please type your {kind.value} information manually:\n\n"
        f"- Full name\n"
        f"- {kind.value.capitalize()} number\n"
        f"- Date of birth"
    )


class DocumentIngestionPipeline:
    """Collects one document for the current step."""

    def __init__(
        self,
        transport: Optional[TelegramClient] = None,
        agent: Optional[InsuranceAgent] = None,
        extractor: Optional[MindeeClient] = None,
    ):
        self._transport = transport
        self._agent = agent
        self._extractor = extractor

    def _get_transport(self) -> TelegramClient:
        if self._transport is None:
            self._transport = get_telegram_client()
        return self._transport

    def _get_agent(self) -> InsuranceAgent:
        if self._agent is None:
            self._agent = get_agent()
        return self._agent

    def _get_extractor(self) -> MindeeClient:
        if self._extractor is None:
            self._extractor = get_mindee_client()
        return self._extractor

    async def ingest(
        self,
        user_id: int,
        session: UserSession,
        content_type: ContentType,
        message: TelegramMessage,
        kind: DocumentKind,
    ) -> None:
        """
        Handle a message at a document-awaiting step.

        Args:
            user_id: Telegram user id
            session: The user's session (lock held by the caller)
            content_type: PHOTO, DOCUMENT, or TEXT while awaiting manual input
            message: Inbound message
            kind: Document expected at this step
        """
        if session.awaiting_manual_input and content_type == ContentType.TEXT:
            await self._record_manual_input(user_id, session, message.text, kind)
            return

        transport = self._get_transport()

        upload = await resolve_upload(transport, message, content_type)
        if not upload.success:
            await transport.send_message(user_id, upload.error_message)
            return

        # A fresh upload supersedes a pending manual entry
        session.awaiting_manual_input = False

        await transport.send_message(user_id, PROCESSING_MESSAGE)

        if await self._try_agent(user_id, session, upload.file_url, kind):
            return

        if await self._try_direct_extraction(user_id, session, upload.file_url, kind):
            return

        await self._request_manual_input(user_id, session, kind)

    # === Tiers ===

    async def _try_agent(
        self,
        user_id: int,
        session: UserSession,
        file_url: str,
        kind: DocumentKind,
    ) -> bool:
        """Tier 1. Returns True if the upload was handled."""
        # Only data captured during this turn counts
        session.set_document(kind, None)

        try:
            reply = await self._get_agent().prompt(
                user_id,
                session,
                f"Here's a photo of my {kind.value}: {file_url}",
                instruction=EXTRACTION_INSTRUCTION,
            )
        except Exception as e:
            logger.warning(f"Agent extraction failed at {session.step.value} for user={user_id}: {e}")
            return False

        transport = self._get_transport()

        if reply.is_failed:
            # Agent reported the failure itself; stay so the user can resend
            await transport.send_message(user_id, reply.text)
            return True

        if not session.has_document(kind):
            logger.warning(
                f"Agent replied without capturing the {kind.value} for user={user_id}, "
                f"falling back to direct extraction"
            )
            session.discard_last_reply()
            return False

        await transport.send_message(user_id, reply.text)
        session.advance()
        return True

    async def _try_direct_extraction(
        self,
        user_id: int,
        session: UserSession,
        file_url: str,
        kind: DocumentKind,
    ) -> bool:
        """Tier 2. Returns True if the upload was handled."""
        try:
            fields = await self._get_extractor().extract(file_url, kind)
        except Exception as e:
            logger.error(f"Direct extraction failed at {session.step.value} for user={user_id}: {e}")
            return False

        if not fields:
            logger.error(f"No data extracted from {kind.value} for user={user_id}")
            return False

        session.set_document(kind, fields)

        summary = create_document_summary(fields, kind)
        await self._get_transport().send_message(user_id, summary)
        session.add_to_transcript(summary, "assistant")
        session.advance()
        return True

    async def _request_manual_input(
        self,
        user_id: int,
        session: UserSession,
        kind: DocumentKind,
    ) -> None:
        """Tier 3."""
        prompt = create_manual_input_prompt(kind)
        await self._get_transport().send_message(user_id, prompt)
        session.add_to_transcript(prompt, "assistant")
        session.awaiting_manual_input = True

    async def _record_manual_input(
        self,
        user_id: int,
        session: UserSession,
        text: str,
        kind: DocumentKind,
    ) -> None:
        """
        Accept typed document data verbatim.

        The echo goes out as plain text since the user's own text may hold
        markup characters. The session is only updated once it is sent.
        """
        confirmation = (
            f"Thank you! I've recorded your {kind.value} information:\n\n"
            f"{text}\n\nIs this correct?"
        )
        await self._get_transport().send_message(user_id, confirmation, parse_mode=None)

        session.set_document(kind, text)
        session.awaiting_manual_input = False
        session.add_to_transcript(confirmation, "assistant")
        session.advance()
