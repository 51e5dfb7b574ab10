"""
Insurance agent.

Claude tool_use agent that converses with the user and can call the
document extraction tools. The transcript it works on is owned by the
user's session and replaced after every successful turn.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

from policybot.config import settings
from policybot.infra.claude import ClaudeClient
from policybot.core.agent.prompts import SYSTEM_PROMPT, build_contextual_message
from policybot.core.agent.signals import AgentReply, parse_agent_reply
from policybot.core.agent.tools import DocumentToolBridge
from policybot.core.session.models import UserSession

logger = logging.getLogger(__name__)


class AgentError(Exception):
    """Raised when the agent produces no usable reply."""
    pass


@dataclass
class AgentRunResult:
    """Outcome of one agent turn."""

    final_text: str
    transcript: list[dict]


class InsuranceAgent:
    """
    Conversational agent with document extraction tools.

    Provides:
    - run(): one turn over an explicit transcript
    - prompt(): one turn for a user session, returning a parsed AgentReply

    Errors from Claude propagate to the caller; callers decide which
    fallback applies.
    """

    _instance: Optional["InsuranceAgent"] = None

    def __init__(
        self,
        claude_client: Optional[ClaudeClient] = None,
        tool_bridge: Optional[DocumentToolBridge] = None,
        model: Optional[str] = None,
    ):
        """
        Initialize the agent.

        Args:
            claude_client: Claude client instance. If None, uses singleton.
            tool_bridge: Extraction tool bridge. If None, a default one is built.
            model: Model to use. Defaults to settings.agent_model.
        """
        self._client = claude_client
        self._bridge = tool_bridge
        self._model = model or settings.agent_model
        self._max_tokens = settings.agent_max_tokens
        self._max_iterations = settings.agent_max_tool_iterations

    @classmethod
    def get_instance(cls) -> "InsuranceAgent":
        """Get singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset singleton instance (useful for testing)."""
        cls._instance = None

    def _get_client(self) -> ClaudeClient:
        """Get Claude client, creating if necessary."""
        if self._client is None:
            self._client = ClaudeClient.get_instance()
        return self._client

    def _get_bridge(self) -> DocumentToolBridge:
        """Get tool bridge, creating if necessary."""
        if self._bridge is None:
            self._bridge = DocumentToolBridge()
        return self._bridge

    def get_system_prompt(self) -> str:
        """Build system prompt with the configured price."""
        return SYSTEM_PROMPT.format(price=settings.policy_price_usd)

    async def prompt(
        self,
        user_id: int,
        session: UserSession,
        message: str,
        instruction: Optional[str] = None,
    ) -> AgentReply:
        """
        Run one turn for a user and store the updated transcript.

        Args:
            user_id: Telegram user id (handed to tools via the prompt and bound to them)
            session: The user's session
            message: What the user said (or a description of what they sent)
            instruction: Extra per-turn instruction, e.g. marker rules

        Returns:
            Reply with any trailing marker split off

        Raises:
            ClaudeClientError, AgentError: The turn failed; the session
                transcript is left unchanged
        """
        contextual = build_contextual_message(
            step=session.step.value,
            user_id=user_id,
            message=message,
            instruction=instruction,
        )

        result = await self.run(session.get_transcript(), contextual, user_id=user_id)
        session.set_transcript(result.transcript)

        return parse_agent_reply(result.final_text)

    async def run(
        self,
        transcript: list[dict],
        prompt: str,
        user_id: Optional[int] = None,
    ) -> AgentRunResult:
        """
        Run one agent turn.

        Args:
            transcript: Prior conversation in Anthropic messages format
            prompt: New user message
            user_id: User the turn runs for; tools only act on this user

        Returns:
            Final text and the transcript extended with this turn
        """
        messages = self._prepare_messages(transcript)
        messages.append({"role": "user", "content": prompt})

        system_prompt = self.get_system_prompt()
        bridge = self._get_bridge()
        tools = bridge.get_anthropic_tools()
        client = self._get_client()

        response = await client.create_message(
            messages=messages,
            system=system_prompt,
            model=self._model,
            max_tokens=self._max_tokens,
            tools=tools,
        )

        new_messages: list[dict] = []

        for _ in range(self._max_iterations):
            if response.stop_reason != "tool_use":
                break

            tool_uses = [b for b in response.content if getattr(b, "type", None) == "tool_use"]
            if not tool_uses:
                break

            tool_results = []
            for tool_use in tool_uses:
                logger.info(f"Executing tool: {tool_use.name}")

                try:
                    result = await bridge.execute_tool(tool_use.name, tool_use.input, user_id=user_id)
                except Exception as e:
                    logger.error(f"Tool execution error: {e}")
                    result = {"error": "execution_failed", "message": str(e)}

                tool_results.append({
                    "type": "tool_result",
                    "tool_use_id": tool_use.id,
                    "content": json.dumps(result),
                })

            assistant_msg = {
                "role": "assistant",
                "content": self._serialize_content_blocks(response.content),
            }
            tool_result_msg = {"role": "user", "content": tool_results}
            new_messages.extend([assistant_msg, tool_result_msg])

            response = await client.create_message(
                messages=messages + new_messages,
                system=system_prompt,
                model=self._model,
                max_tokens=self._max_tokens,
                tools=tools,
            )

        final_text = self._extract_text(response)
        if not final_text:
            raise AgentError(f"Agent returned no text (stop_reason={response.stop_reason})")

        new_messages.append({"role": "assistant", "content": final_text})
        return AgentRunResult(final_text=final_text, transcript=messages + new_messages)

    def _prepare_messages(self, transcript: list[dict]) -> list[dict]:
        """
        Copy the transcript for an API call.

        The Messages API needs the conversation to open with a user turn;
        bot messages recorded before the user's first agent turn are dropped.
        """
        messages = list(transcript)
        while messages and messages[0].get("role") != "user":
            messages.pop(0)
        return messages

    def _serialize_content_blocks(self, content: list) -> list[dict]:
        """
        Serialize Anthropic content blocks to dicts.

        Anthropic SDK returns objects, but we need dicts for storage and API calls.
        """
        serialized = []
        for block in content:
            if isinstance(block, dict):
                serialized.append(block)
            elif getattr(block, "type", None) == "text":
                serialized.append({"type": "text", "text": block.text})
            elif getattr(block, "type", None) == "tool_use":
                serialized.append({
                    "type": "tool_use",
                    "id": block.id,
                    "name": block.name,
                    "input": block.input,
                })
        return serialized

    def _extract_text(self, response: Any) -> str:
        """Join the text blocks of a Claude response."""
        parts = [
            block.text
            for block in (response.content or [])
            if getattr(block, "type", None) == "text" and block.text
        ]
        return "\n\n".join(parts).strip()


# Singleton accessor
def get_agent() -> InsuranceAgent:
    """Get agent singleton instance."""
    return InsuranceAgent.get_instance()
