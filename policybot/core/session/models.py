"""
Session data model.

One UserSession per Telegram user. Holds where the user is in the flow,
the transcript handed to the agent on every prompt, and the document
data collected so far. Sessions live in memory only.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Optional, Union

from .state import Step, next_step, previous_step


def _utcnow() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


class DocumentKind(str, Enum):
    """Documents collected by the flow."""

    PASSPORT = "passport"
    DRIVERS_LICENSE = "driver's license"


# Structured fields from extraction, or the raw text typed by the user
DocumentValue = Union[dict[str, str], str]

Role = Literal["user", "assistant"]


@dataclass
class UserSession:
    """
    Per-user conversation state.

    The passport is the first document, the driver's license the second.
    Each is None until captured, a dict of human-readable fields when
    extracted, or a plain string when typed in manually.
    """

    user_id: int = 0
    step: Step = Step.START

    # Anthropic messages format, replaced wholesale after each agent turn
    transcript: list[dict] = field(default_factory=list)

    first_document: Optional[DocumentValue] = None
    second_document: Optional[DocumentValue] = None

    # Both extraction tiers failed; next text is taken as the document value
    awaiting_manual_input: bool = False

    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def advance(self) -> Step:
        """Move to the next step. No-op at the terminal step."""
        self.step = next_step(self.step)
        self._touch()
        return self.step

    def retreat(self) -> Step:
        """Move to the previous step. No-op at the initial step."""
        self.step = previous_step(self.step)
        self._touch()
        return self.step

    def add_to_transcript(self, content: str, role: Role) -> None:
        """
        Append a plain text entry to the agent transcript.

        Used for messages the bot sends itself (templated summaries,
        confirmations) so the agent keeps seeing them as context.
        """
        self.transcript.append({"role": role, "content": content})
        self._touch()

    def set_transcript(self, transcript: list[dict]) -> None:
        """Replace the transcript with the agent's updated history."""
        self.transcript = list(transcript)
        self._touch()

    def discard_last_reply(self) -> None:
        """Drop a trailing assistant entry that was never sent to the user."""
        if self.transcript and self.transcript[-1].get("role") == "assistant":
            self.transcript.pop()
            self._touch()

    def get_transcript(self) -> list[dict]:
        """Get a copy of the transcript for agent calls."""
        return list(self.transcript)

    def get_document(self, kind: DocumentKind) -> Optional[DocumentValue]:
        """Get stored data for a document kind."""
        if kind == DocumentKind.PASSPORT:
            return self.first_document
        return self.second_document

    def set_document(self, kind: DocumentKind, value: Optional[DocumentValue]) -> None:
        """Store (or clear, with None) data for a document kind."""
        if kind == DocumentKind.PASSPORT:
            self.first_document = value
        else:
            self.second_document = value
        self._touch()

    def has_document(self, kind: DocumentKind) -> bool:
        """Check if a document value has been captured."""
        return bool(self.get_document(kind))

    def _touch(self) -> None:
        self.updated_at = _utcnow()

    def to_dict(self) -> dict:
        """Convert to dictionary (diagnostics and logging)."""
        return {
            "user_id": self.user_id,
            "step": self.step.value,
            "transcript_length": len(self.transcript),
            "first_document": self.first_document,
            "second_document": self.second_document,
            "awaiting_manual_input": self.awaiting_manual_input,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
