"""
Agent Module

Claude-backed conversational agent used by the onboarding flow:
- Signals: marker parsing for machine-readable outcomes
- Tools: document extraction exposed as Claude tools
- Assistant: the agent and its tool loop
"""

from policybot.core.agent.signals import AgentReply, AgentSignal, parse_agent_reply
from policybot.core.agent.tools import DocumentToolBridge
from policybot.core.agent.assistant import (
    AgentError,
    AgentRunResult,
    InsuranceAgent,
    get_agent,
)

__all__ = [
    # Signals
    "AgentReply",
    "AgentSignal",
    "parse_agent_reply",
    # Tools
    "DocumentToolBridge",
    # Agent
    "AgentError",
    "AgentRunResult",
    "InsuranceAgent",
    "get_agent",
]
