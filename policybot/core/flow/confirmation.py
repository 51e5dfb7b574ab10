"""
Confirmation resolver.

Interprets a free-text reply at a confirmation step as accept, reject, or
neither (a side question).

Tier 1 asks the agent, which answers naturally and appends a decision
marker. A markerless answer is a reply to a side question and changes
nothing. Only when the agent call itself fails does tier 2 run: a plain
"yes"/"no" match with templated replies. So the same unclear text is
answered conversationally while the agent works, and re-prompted for
"yes" or "no" when it does not.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from policybot.config import settings
from policybot.core.agent.assistant import InsuranceAgent, get_agent
from policybot.core.agent.prompts import CONFIRMATION_INSTRUCTION
from policybot.core.session.models import UserSession
from policybot.core.session.state import Step
from policybot.infra.telegram import TelegramClient, get_telegram_client

logger = logging.getLogger(__name__)


# (user_id, session) -> None; replaces the default advance/retreat
StepCallback = Callable[[int, UserSession], Awaitable[None]]

YES_OR_NO_PROMPT = 'Please reply "yes" to confirm or "no" to retry.'


class Decision(str, Enum):
    """Outcome of a manual yes/no match."""

    YES = "yes"
    NO = "no"
    UNPARSEABLE = "unparseable"


@dataclass(frozen=True)
class ConfirmationMessages:
    """Templated replies used when the agent is unavailable."""

    success: str
    retry: str


def guess_decision(text: str) -> Decision:
    """Exact, case-insensitive yes/no match."""
    normalized = text.strip().lower()
    if normalized == "yes":
        return Decision.YES
    if normalized == "no":
        return Decision.NO
    return Decision.UNPARSEABLE


def get_messages_for_step(step: Step) -> ConfirmationMessages:
    """
    Get the templated replies for a confirmation step.

    Raises:
        ValueError: If the step is not a confirmation step
    """
    price = settings.policy_price_usd

    if step == Step.CONFIRMING_FIRST_DOCUMENT:
        return ConfirmationMessages(
            success="Great! Now please upload your driver's license.",
            retry=(
                "Sorry about that! Could you try taking another photo of your passport?\n\n"
                "Make sure it's clear and well-lit so we can help you faster. Thanks! 🙌"
            ),
        )

    if step == Step.CONFIRMING_SECOND_DOCUMENT:
        return ConfirmationMessages(
            success=(
                "Thank you for providing your information.\n\n"
                f"Our standard insurance rate is ${price} USD per policy. "
                "Would you like to proceed?"
            ),
            retry=(
                "Sorry about that! Could you try taking another photo of your driver's license?\n\n"
                "Make sure it's clear and well-lit so we can help you faster. Thanks! 🙌"
            ),
        )

    if step == Step.CONFIRMING_PRICE:
        return ConfirmationMessages(
            success="Great! We'll send you your insurance shortly.",
            retry=(
                f"We apologize, but ${price} is the only available price for this insurance.\n\n"
                "Please respond with 'yes' to continue or 'no' if you don't want to proceed."
            ),
        )

    raise ValueError(f"No confirmation messages for step {step.value}")


class ConfirmationResolver:
    """Resolves yes/no replies at confirmation steps."""

    def __init__(
        self,
        transport: Optional[TelegramClient] = None,
        agent: Optional[InsuranceAgent] = None,
    ):
        self._transport = transport
        self._agent = agent

    def _get_transport(self) -> TelegramClient:
        if self._transport is None:
            self._transport = get_telegram_client()
        return self._transport

    def _get_agent(self) -> InsuranceAgent:
        if self._agent is None:
            self._agent = get_agent()
        return self._agent

    async def resolve(
        self,
        user_id: int,
        session: UserSession,
        text: str,
        on_accept: Optional[StepCallback] = None,
        on_reject: Optional[StepCallback] = None,
    ) -> None:
        """
        Handle a reply at a confirmation step.

        Args:
            user_id: Telegram user id
            session: The user's session (lock held by the caller)
            text: The user's reply
            on_accept: Runs instead of advancing on "yes"
            on_reject: Runs instead of retreating on "no"
        """
        transport = self._get_transport()

        try:
            reply = await self._get_agent().prompt(
                user_id,
                session,
                text,
                instruction=CONFIRMATION_INSTRUCTION,
            )
        except Exception as e:
            logger.warning(f"Agent confirmation failed for user={user_id}, using manual fallback: {e}")
            await self._resolve_manually(user_id, session, text, on_accept, on_reject)
            return

        await transport.send_message(user_id, reply.text)
        session.add_to_transcript(reply.text, "assistant")

        if not reply.has_decision:
            return

        if reply.is_confirmed:
            await self._accept(user_id, session, on_accept)
        else:
            await self._reject(user_id, session, on_reject)

    async def _resolve_manually(
        self,
        user_id: int,
        session: UserSession,
        text: str,
        on_accept: Optional[StepCallback],
        on_reject: Optional[StepCallback],
    ) -> None:
        transport = self._get_transport()
        decision = guess_decision(text)

        if decision == Decision.UNPARSEABLE:
            await transport.send_message(user_id, YES_OR_NO_PROMPT)
            return

        messages = get_messages_for_step(session.step)

        if decision == Decision.YES:
            await transport.send_message(user_id, messages.success)
            session.add_to_transcript(messages.success, "assistant")
            await self._accept(user_id, session, on_accept)
        else:
            await transport.send_message(user_id, messages.retry)
            session.add_to_transcript(messages.retry, "assistant")
            await self._reject(user_id, session, on_reject)

    async def _accept(
        self,
        user_id: int,
        session: UserSession,
        on_accept: Optional[StepCallback],
    ) -> None:
        if on_accept is not None:
            await on_accept(user_id, session)
        else:
            session.advance()

    async def _reject(
        self,
        user_id: int,
        session: UserSession,
        on_reject: Optional[StepCallback],
    ) -> None:
        if on_reject is not None:
            await on_reject(user_id, session)
        else:
            session.retreat()
