"""
Configuration Management

Uses Pydantic BaseSettings to load configuration from environment variables.
All settings can be overridden via .env file or environment variables.

Environment Variables:
    BOT_TOKEN: Telegram bot token
    SECRET_TOKEN: Secret Telegram sends in the webhook header
    SERVER_URL: Public URL of the /webhook endpoint
    ANTHROPIC_API_KEY: Claude API key for the conversational agent
    MINDEE_API_KEY: Mindee API key for document extraction
    MINDEE_PASSPORT_MODEL_ID: Mindee model used for passports
    MINDEE_DRIVERS_LICENSE_MODEL_ID: Mindee model used for driver's licenses
    APP_ENV: Environment name (development/staging/production)
    DEBUG: Enable debug mode (default: False)
"""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application Configuration
    app_name: str = "policy-bot"
    """Application name."""

    app_env: Literal["development", "staging", "production"] = "development"
    """Current application environment.

    Options:
    - development: Local development, verbose logging
    - staging: Pre-production testing environment
    - production: Live production environment, minimal logging
    """

    debug: bool = False
    """Enable debug logging."""

    host: str = "0.0.0.0"
    """Host to bind the application server."""

    port: int = 8000
    """Port to bind the application server."""

    # Telegram Configuration
    bot_token: str = ""
    """Telegram bot token issued by BotFather."""

    secret_token: str = ""
    """Secret echoed by Telegram in X-Telegram-Bot-Api-Secret-Token.

    Requests to /webhook without the matching header are answered with 404.
    """

    server_url: str = ""
    """Public webhook URL registered with Telegram on startup."""

    telegram_api_base: str = "https://api.telegram.org"
    """Telegram Bot API base URL."""

    webhook_allowed_updates: list[str] = ["message"]
    """Update types the webhook subscribes to."""

    telegram_timeout: float = 15.0
    """Timeout in seconds for Bot API requests."""

    # Anthropic Configuration
    anthropic_api_key: str = ""
    """Anthropic API key used by the conversational agent."""

    agent_model: str = "claude-sonnet-4-5"
    """Primary model for the insurance agent."""

    agent_fallback_model: str = "claude-haiku-4-5"
    """Model tried once when the primary model call fails."""

    agent_max_tokens: int = 1024
    """Maximum tokens per agent response."""

    agent_max_tool_iterations: int = 5
    """Upper bound on tool_use round trips within one agent turn."""

    # Mindee Configuration
    mindee_api_key: str = ""
    """Mindee API key."""

    mindee_base_url: str = "https://api-v2.mindee.net"
    """Mindee v2 API base URL."""

    mindee_passport_model_id: str = ""
    """Mindee model ID for passport extraction."""

    mindee_drivers_license_model_id: str = ""
    """Mindee model ID for driver's license extraction."""

    mindee_poll_interval: float = 1.0
    """Seconds between inference job polls."""

    mindee_max_polls: int = 30
    """Polls before an inference job is considered failed."""

    # Flow Configuration
    max_file_size: int = 10485760
    """Largest accepted upload in bytes (10 MB)."""

    policy_price_usd: int = 100
    """Fixed policy price offered at the price confirmation step."""

    # Pydantic configuration
    model_config = SettingsConfigDict(
        env_file=".env",  # Load from .env file if it exists
        env_file_encoding="utf-8",
        case_sensitive=False,  # Allow BOT_TOKEN or bot_token
        extra="ignore",  # Ignore extra environment variables
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.app_env == "development"

    @property
    def telegram_api_url(self) -> str:
        """Bot API method root, e.g. https://api.telegram.org/bot<token>."""
        return f"{self.telegram_api_base}/bot{self.bot_token}"

    @property
    def telegram_file_url(self) -> str:
        """Root for downloadable file paths returned by getFile."""
        return f"{self.telegram_api_base}/file/bot{self.bot_token}"

    def missing_required(self) -> list[str]:
        """Names of required secrets that are not configured."""
        required = {
            "bot_token": self.bot_token,
            "secret_token": self.secret_token,
            "server_url": self.server_url,
            "anthropic_api_key": self.anthropic_api_key,
            "mindee_api_key": self.mindee_api_key,
            "mindee_passport_model_id": self.mindee_passport_model_id,
            "mindee_drivers_license_model_id": self.mindee_drivers_license_model_id,
        }
        return [name.upper() for name, value in required.items() if not value]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once and reused
    across the application.

    Returns:
        Settings: Cached settings instance

    Example:
        >>> from policybot.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.max_file_size)
        10485760
    """
    return Settings()


# Module-level settings instance for easy imports
settings = get_settings()
