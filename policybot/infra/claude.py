"""
Claude API Client

Manages Anthropic API connections with async support, retry logic,
and model fallback for the insurance agent.
"""

import asyncio
import logging
from typing import Any, Optional

from anthropic import AsyncAnthropic, APIError, RateLimitError, APIConnectionError

from policybot.config import settings

logger = logging.getLogger(__name__)


class ClaudeClientError(Exception):
    """Raised when Claude API call fails."""
    pass


class ClaudeClient:
    """
    Async Claude API client wrapper.

    Features:
    - Async API calls with tool definitions
    - Automatic retries with exponential backoff
    - Model fallback (primary -> fallback model)
    """

    _instance: Optional["ClaudeClient"] = None

    def __init__(self, api_key: Optional[str] = None):
        """Initialize Claude client.

        Args:
            api_key: Anthropic API key (defaults to settings)
        """
        self.api_key = api_key or settings.anthropic_api_key
        if not self.api_key:
            raise ValueError("Anthropic API key is required")

        self._client = AsyncAnthropic(api_key=self.api_key)
        self._default_model = settings.agent_model
        self._fallback_model = settings.agent_fallback_model

        logger.info(f"ClaudeClient initialized with model={self._default_model}")

    @classmethod
    def get_instance(cls) -> "ClaudeClient":
        """Get singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset singleton instance (useful for testing)."""
        cls._instance = None

    async def create_message(
        self,
        messages: list[dict],
        system: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: int = 1024,
        temperature: float = 0.3,
        tools: Optional[list[dict]] = None,
        use_fallback_on_error: bool = True,
    ) -> Any:
        """
        Create a message, returning the raw Anthropic response.

        Args:
            messages: Conversation in Anthropic messages format
            system: System prompt (optional)
            model: Model to use (defaults to agent model)
            max_tokens: Maximum tokens in response
            temperature: Sampling temperature
            tools: Tool definitions in Anthropic format (optional)
            use_fallback_on_error: Try fallback model on failure

        Returns:
            anthropic Message with content blocks and stop_reason

        Raises:
            ClaudeClientError: If API call fails after retries
        """
        model = model or self._default_model

        try:
            return await self._call_with_retry(
                messages=messages,
                system=system,
                model=model,
                max_tokens=max_tokens,
                temperature=temperature,
                tools=tools,
            )

        except Exception as e:
            if use_fallback_on_error and model != self._fallback_model:
                logger.warning(f"Primary model failed, trying fallback: {e}")
                return await self.create_message(
                    messages=messages,
                    system=system,
                    model=self._fallback_model,
                    max_tokens=max_tokens,
                    temperature=temperature,
                    tools=tools,
                    use_fallback_on_error=False,
                )
            raise ClaudeClientError(f"Claude API call failed: {e}") from e

    async def _call_with_retry(
        self,
        messages: list[dict],
        system: Optional[str],
        model: str,
        max_tokens: int,
        temperature: float,
        tools: Optional[list[dict]],
        max_retries: int = 3,
    ) -> Any:
        """Call API with exponential backoff retry."""
        last_error = None

        for attempt in range(max_retries):
            try:
                kwargs: dict[str, Any] = {
                    "model": model,
                    "max_tokens": max_tokens,
                    "temperature": temperature,
                    "messages": messages,
                }
                if system:
                    kwargs["system"] = system
                if tools:
                    kwargs["tools"] = tools

                return await self._client.messages.create(**kwargs)

            except RateLimitError as e:
                last_error = e
                wait_time = 2 ** attempt
                logger.warning(f"Rate limited, waiting {wait_time}s (attempt {attempt + 1})")
                await asyncio.sleep(wait_time)

            except APIConnectionError as e:
                last_error = e
                wait_time = 2 ** attempt
                logger.warning(f"Connection error, retrying in {wait_time}s (attempt {attempt + 1})")
                await asyncio.sleep(wait_time)

            except APIError as e:
                logger.error(f"API error: {e}")
                raise

        raise last_error or ClaudeClientError("Max retries exceeded")

    async def close(self) -> None:
        """Close the client."""
        await self._client.close()
