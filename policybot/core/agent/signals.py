"""
Agent reply signals.

The agent is asked to end some replies with a literal marker so the bot
gets a machine-readable outcome next to the text it shows the user:

    "Perfect, moving on! [CONFIRMED]" -> text="Perfect, moving on!", signal=CONFIRMED

parse_agent_reply() is the only place that looks at marker strings.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class AgentSignal(str, Enum):
    """Markers the agent may append to a reply."""

    CONFIRMED = "[CONFIRMED]"
    REJECTED = "[REJECTED]"
    FAILED = "[FAILED]"


@dataclass(frozen=True)
class AgentReply:
    """Agent output split into user-facing text and an optional signal."""

    text: str
    signal: Optional[AgentSignal] = None

    @property
    def is_confirmed(self) -> bool:
        return self.signal == AgentSignal.CONFIRMED

    @property
    def is_rejected(self) -> bool:
        return self.signal == AgentSignal.REJECTED

    @property
    def is_failed(self) -> bool:
        return self.signal == AgentSignal.FAILED

    @property
    def has_decision(self) -> bool:
        """Check if the reply carries a yes/no decision."""
        return self.is_confirmed or self.is_rejected


def parse_agent_reply(raw: str) -> AgentReply:
    """
    Split a trailing marker off an agent reply.

    Only a marker at the very end counts; markers elsewhere in the text
    are left alone.

    Args:
        raw: Final text returned by the agent

    Returns:
        AgentReply with the marker removed and the signal set, or the
        trimmed text with no signal
    """
    text = raw.strip()

    for signal in AgentSignal:
        if text.endswith(signal.value):
            return AgentReply(text=text[: -len(signal.value)].strip(), signal=signal)

    return AgentReply(text=text)
