"""
Policy delivery.

Renders the policy document from the confirmed session data and sends it
to the user as a file.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Optional

from policybot.config import settings
from policybot.core.session.models import DocumentKind, DocumentValue, UserSession
from policybot.infra.telegram import TelegramClient, get_telegram_client

logger = logging.getLogger(__name__)


POLICY_CAPTION = "Here is your insurance policy document.\n\nThank you for choosing our service! 💛💙"
POLICY_ERROR_MESSAGE = "Sorry, there was an error with your policy. Please try again later."


def _render_document_section(title: str, value: Optional[DocumentValue]) -> list[str]:
    lines = [f"{title}:"]
    if isinstance(value, dict):
        lines.extend(f"  {label}: {field}" for label, field in value.items())
    elif value:
        # Typed in manually
        lines.extend(f"  {line}" for line in value.splitlines())
    else:
        lines.append("  (not provided)")
    return lines


def render_policy_document(session: UserSession, issued_at: Optional[datetime] = None) -> bytes:
    """
    Render the policy as a UTF-8 text document.

    Args:
        session: Session holding both confirmed documents
        issued_at: Issue timestamp (defaults to now, UTC)

    Returns:
        Document bytes
    """
    issued_at = issued_at or datetime.now(timezone.utc)

    lines = [
        "CAR INSURANCE POLICY",
        "=" * 20,
        "",
        f"Policy holder id: {session.user_id}",
        f"Issued at: {issued_at.strftime('%Y-%m-%d %H:%M:%S %Z').strip()}",
        f"Premium: ${settings.policy_price_usd} USD",
        "",
    ]
    lines.extend(_render_document_section("Passport Data", session.get_document(DocumentKind.PASSPORT)))
    lines.append("")
    lines.extend(
        _render_document_section("Driver's License Data", session.get_document(DocumentKind.DRIVERS_LICENSE))
    )

    return ("\n".join(lines) + "\n").encode("utf-8")


class DeliverableDispatcher:
    """Sends the policy and completes the flow."""

    def __init__(self, transport: Optional[TelegramClient] = None):
        self._transport = transport

    def _get_transport(self) -> TelegramClient:
        if self._transport is None:
            self._transport = get_telegram_client()
        return self._transport

    async def dispatch(self, user_id: int, session: UserSession) -> bool:
        """
        Render and send the policy, then advance to completed.

        On failure the user gets an error message and the session stays
        on its step, so the next message retries.

        Returns:
            True if the policy was sent
        """
        transport = self._get_transport()

        try:
            content = render_policy_document(session)
            filename = f"insurance_policy_{int(time.time() * 1000)}.txt"
            await transport.send_document(user_id, content, filename, caption=POLICY_CAPTION)
        except Exception as e:
            logger.error(f"Failed to send policy to user={user_id}: {e}")
            await transport.send_message(user_id, POLICY_ERROR_MESSAGE)
            return False

        logger.info(f"Policy sent to user={user_id}")
        session.advance()
        return True
