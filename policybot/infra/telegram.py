"""
Telegram Bot API client.

Thin async wrapper over the Bot API methods the bot needs: sending
messages and documents, resolving file download URLs, and keeping the
webhook registration in sync with the configured server URL.

All HTTP, JSON and response-shape problems are raised as TelegramApiError
so callers can catch one exception type.
"""

import logging
import re
from typing import Any, Optional

import httpx

from policybot.config import get_settings

logger = logging.getLogger(__name__)

# MarkdownV2 reserved characters, except * (bold) and ` (code) which we use
_MARKDOWN_V2_RESERVED = re.compile(r"([_\[\]()~>#+=|{}.!\\-])")


def escape_markdown_v2(text: str) -> str:
    """Escape text for MarkdownV2 while keeping *bold* and `code` markup."""
    return _MARKDOWN_V2_RESERVED.sub(r"\\\1", text)


class TelegramApiError(Exception):
    """
    Raised when a Bot API call fails.

    The string form gives a quick snapshot of what went wrong, e.g.
    "Telegram API > POST > sendMessage > 400: Bad Request: chat not found".
    """

    def __init__(
        self,
        api_method: Optional[str] = None,
        http_method: Optional[str] = None,
        code: Optional[int] = None,
        details: Optional[str] = None,
    ):
        self.api_method = api_method
        self.http_method = http_method
        self.code = code
        self.details = details

        # Telegram answers 404 for every method when the token is wrong
        if code == 404:
            self.details = "Invalid URL or BOT_TOKEN"

        parts = ["Telegram API", http_method, api_method, code]
        self.name = " > ".join(str(p) for p in parts if p)
        super().__init__(f"{self.name}: {self.details}" if self.details else self.name)


class TelegramClient:
    """
    Async Telegram Bot API client.

    Bot API endpoints used:
    - POST /sendMessage
    - POST /sendDocument (multipart)
    - GET /getFile
    - GET /getWebhookInfo
    - POST /setWebhook
    """

    _instance: Optional["TelegramClient"] = None

    def __init__(
        self,
        api_url: Optional[str] = None,
        file_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize client.

        Args:
            api_url: Bot API root including the token (defaults to settings)
            file_url: File download root including the token (defaults to settings)
            timeout: Request timeout in seconds
        """
        settings = get_settings()
        self.api_url = api_url or settings.telegram_api_url
        self.file_url = file_url or settings.telegram_file_url
        self.timeout = timeout or settings.telegram_timeout
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def get_instance(cls) -> "TelegramClient":
        """Get singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset singleton instance (useful for testing)."""
        cls._instance = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.api_url,
                timeout=self.timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    # === Messaging ===

    async def send_message(
        self,
        chat_id: int,
        text: str,
        parse_mode: Optional[str] = "MarkdownV2",
    ) -> dict:
        """
        Send a text message.

        Args:
            chat_id: Target chat (the user id in private chats)
            text: Message text; escaped automatically for MarkdownV2
            parse_mode: Telegram parse mode, or None for plain text

        Returns:
            {"ok": bool, "message_id": int}
        """
        payload: dict[str, Any] = {
            "chat_id": chat_id,
            "text": escape_markdown_v2(text) if parse_mode == "MarkdownV2" else text,
        }
        if parse_mode:
            payload["parse_mode"] = parse_mode

        data = await self._post("sendMessage", json=payload)
        return {
            "ok": data.get("ok", False),
            "message_id": (data.get("result") or {}).get("message_id"),
        }

    async def send_document(
        self,
        chat_id: int,
        content: bytes,
        filename: str,
        caption: Optional[str] = None,
    ) -> bool:
        """
        Upload a file to the chat.

        Args:
            chat_id: Target chat
            content: File bytes
            filename: Name shown to the user
            caption: Optional caption (sent as plain text)

        Returns:
            True if Telegram accepted the upload
        """
        form: dict[str, Any] = {"chat_id": str(chat_id)}
        if caption:
            form["caption"] = caption

        data = await self._post(
            "sendDocument",
            data=form,
            files={"document": (filename, content)},
        )
        return bool(data.get("ok"))

    # === Files ===

    async def get_file_url(self, file_id: str) -> str:
        """
        Resolve a file id into a downloadable URL.

        Raises:
            TelegramApiError: If the file id is invalid or expired
        """
        data = await self._get("getFile", params={"file_id": file_id})

        file_path = (data.get("result") or {}).get("file_path")
        if not isinstance(file_path, str):
            raise TelegramApiError(
                api_method="getFile",
                http_method="GET",
                details="file_path is not a string",
            )
        return f"{self.file_url}/{file_path}"

    # === Webhook ===

    async def get_webhook_info(self) -> dict:
        """Get current webhook url and allowed updates."""
        data = await self._get("getWebhookInfo")
        result = data.get("result") or {}
        return {
            "url": result.get("url", ""),
            "allowed_updates": result.get("allowed_updates", []),
        }

    async def set_webhook(
        self,
        url: str,
        secret_token: str,
        allowed_updates: list[str],
    ) -> bool:
        """Register the webhook URL with Telegram."""
        data = await self._post(
            "setWebhook",
            json={
                "url": url,
                "allowed_updates": allowed_updates,
                "secret_token": secret_token,
            },
        )

        # Telegram answers 200 even when it refuses; the verdict is in result
        if not data.get("result"):
            raise TelegramApiError(
                api_method="setWebhook",
                http_method="POST",
                details=data.get("description"),
            )
        return True

    async def ensure_webhook(self) -> bool:
        """
        Make sure the registered webhook matches our configuration.

        Returns:
            True if the webhook had to be (re)registered
        """
        settings = get_settings()
        info = await self.get_webhook_info()

        if (
            info["url"] == settings.server_url
            and info["allowed_updates"] == settings.webhook_allowed_updates
        ):
            return False

        logger.warning("Webhook out of date, registering it again")
        await self.set_webhook(
            url=settings.server_url,
            secret_token=settings.secret_token,
            allowed_updates=settings.webhook_allowed_updates,
        )
        return True

    # === HTTP helpers ===

    async def _post(self, api_method: str, **kwargs: Any) -> dict:
        """POST a Bot API method (json= or data=/files=) and return the JSON body."""
        client = await self._get_client()

        try:
            response = await client.post(f"/{api_method}", **kwargs)
        except httpx.HTTPError as e:
            raise TelegramApiError(
                api_method=api_method, http_method="POST", details=str(e)
            ) from e

        return self._parse(response, api_method, "POST")

    async def _get(self, api_method: str, params: Optional[dict] = None) -> dict:
        """GET a Bot API method and return the JSON body."""
        client = await self._get_client()

        try:
            response = await client.get(f"/{api_method}", params=params)
        except httpx.HTTPError as e:
            raise TelegramApiError(
                api_method=api_method, http_method="GET", details=str(e)
            ) from e

        return self._parse(response, api_method, "GET")

    def _parse(self, response: Any, api_method: str, http_method: str) -> dict:
        """Decode a Bot API response, raising on HTTP errors or bad JSON."""
        try:
            data = response.json()
        except ValueError as e:
            raise TelegramApiError(
                api_method=api_method,
                http_method=http_method,
                code=response.status_code,
                details=f"invalid JSON: {e}",
            ) from e

        if response.status_code >= 400:
            raise TelegramApiError(
                api_method=api_method,
                http_method=http_method,
                code=response.status_code,
                details=data.get("description") if isinstance(data, dict) else None,
            )

        if not isinstance(data, dict):
            raise TelegramApiError(
                api_method=api_method,
                http_method=http_method,
                details="response is not a JSON object",
            )
        return data


# Singleton accessor
def get_telegram_client() -> TelegramClient:
    """Get Telegram client singleton instance."""
    return TelegramClient.get_instance()
