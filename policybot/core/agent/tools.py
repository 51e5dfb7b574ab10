"""
Document extraction tools for the insurance agent.

Exposes Mindee extraction to Claude in tool_use format. Tool calls carry
the user id from the prompt context; a successful extraction is written
straight into that user's session, and only while a document is expected.
"""

import logging
from typing import Any, Optional

from policybot.core.session.models import DocumentKind
from policybot.core.session.state import is_document_step
from policybot.core.session.store import SessionStore, get_session_store
from policybot.infra.mindee import MindeeClient, get_mindee_client

logger = logging.getLogger(__name__)


TOOL_DOCUMENT_KINDS = {
    "parse_passport": DocumentKind.PASSPORT,
    "parse_drivers_license": DocumentKind.DRIVERS_LICENSE,
}


def _document_tool(name: str, description: str) -> dict:
    return {
        "name": name,
        "description": description,
        "input_schema": {
            "type": "object",
            "properties": {
                "url": {
                    "type": "string",
                    "description": "Download URL of the uploaded document image or PDF.",
                },
                "user_id": {
                    "type": "integer",
                    "description": "User_id from the # Context block of the message.",
                },
            },
            "required": ["url", "user_id"],
        },
    }


class DocumentToolBridge:
    """Bridge between Claude tool_use and the extraction service."""

    def __init__(
        self,
        extractor: Optional[MindeeClient] = None,
        store: Optional[SessionStore] = None,
    ):
        """
        Initialize the bridge.

        Args:
            extractor: Extraction client (defaults to singleton)
            store: Session store the results are written to (defaults to singleton)
        """
        self._extractor = extractor
        self._store = store

    def _get_extractor(self) -> MindeeClient:
        if self._extractor is None:
            self._extractor = get_mindee_client()
        return self._extractor

    def _get_store(self) -> SessionStore:
        if self._store is None:
            self._store = get_session_store()
        return self._store

    def get_anthropic_tools(self) -> list[dict]:
        """Return extraction tools in Anthropic tool_use format."""
        return [
            _document_tool(
                "parse_passport",
                "Extract the holder's details from a passport photo or scan. "
                "Use this only while waiting for the passport. "
                "Returns name, surname, date of birth, passport number and validity dates.",
            ),
            _document_tool(
                "parse_drivers_license",
                "Extract the holder's details from a driver's license photo or scan. "
                "Use this only while waiting for the driver's license. "
                "Returns name, license number, validity dates, country and category.",
            ),
        ]

    async def execute_tool(
        self,
        tool_name: str,
        tool_input: dict,
        user_id: Optional[int] = None,
    ) -> dict[str, Any]:
        """
        Execute a tool call.

        Failures are returned as an error payload so the agent can tell
        the user (and flag the failure) instead of aborting the turn.

        Args:
            tool_name: Tool requested by the agent
            tool_input: Tool arguments from the agent
            user_id: User the turn is running for; a call naming any other
                user is refused
        """
        kind = TOOL_DOCUMENT_KINDS.get(tool_name)
        if kind is None:
            return {"error": "unknown_tool", "message": f"Unknown tool: {tool_name}"}

        url = tool_input.get("url")
        requested_id = tool_input.get("user_id")
        if not url or requested_id is None:
            return {"error": "invalid_input", "message": "url and user_id are required"}

        try:
            requested_id = int(requested_id)
        except (TypeError, ValueError):
            return {"error": "invalid_input", "message": f"Invalid user_id: {requested_id}"}

        if user_id is not None and requested_id != user_id:
            logger.warning(f"Tool {tool_name} called for user={requested_id} during turn of user={user_id}")
            return {"error": "user_mismatch", "message": "user_id does not match the current user"}

        session = self._get_store().get(requested_id)
        if not is_document_step(session.step):
            return {
                "error": "wrong_step",
                "message": f"No document is expected at step {session.step.value}",
            }

        try:
            fields = await self._get_extractor().extract(url, kind)
        except Exception as e:
            logger.error(f"Tool {tool_name} failed for user={requested_id}: {e}")
            return {"error": "extraction_failed", "message": str(e)}

        session.set_document(kind, fields)

        return {"document": kind.value, "fields": fields}
