"""Moments configuration management."""

import logging
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field
from pydantic_settings import BaseSettings

logger = logging.getLogger("moments.config")


class ConfigError(Exception):
    """Raised when required settings are missing or invalid."""
    pass


class MomentsSettings(BaseSettings):
    """Settings loaded from environment variables or .env file."""

    # Telegram: the bot is locked to a single authorized user
    telegram_bot_token: Optional[str] = Field(default=None, description="Telegram bot token")
    authorized_user_id: Optional[int] = Field(default=None, description="The only Telegram user id allowed to use the bot")

    # GitHub content store
    github_token: Optional[str] = Field(default=None, description="GitHub token with contents write scope")
    github_owner: Optional[str] = Field(default=None, description="Repository owner")
    github_repo: Optional[str] = Field(default=None, description="Repository name")
    github_branch: str = Field(default="main", description="Branch to read and write")
    github_api_url: str = Field(default="https://api.github.com", description="GitHub API base URL")
    moments_path: str = Field(default="content/moments", description="Path of dated moment files in the repo")
    moments_images_path: str = Field(default="static/images/moments", description="Path of uploaded images in the repo")
    moments_images_url_prefix: str = Field(default="/images/moments", description="Public URL prefix for image embeds")

    # LLM (OpenAI-compatible endpoint, OpenRouter by default)
    openrouter_api_key: Optional[str] = Field(default=None, description="OpenRouter API key")
    llm_base_url: str = Field(default="https://openrouter.ai/api/v1", description="OpenAI-compatible base URL")
    ai_model: str = Field(default="anthropic/claude-sonnet-4", description="Model id")

    # Behaviour
    timezone: str = Field(default="Europe/Amsterdam", description="Timezone used for date keys")
    recent_days: int = Field(default=3, ge=0, description="Days back (besides today) the edit flow reads")
    clarification_ttl_seconds: int = Field(default=300, gt=0, description="Clarification dialog expiry")
    serialize_events: bool = Field(default=False, description="Run inbound events one after another")

    log_file: Optional[str] = Field(default="~/moments.log", description="Log file path (empty disables)")

    model_config = {"env_prefix": "MOMENTS_", "env_file": ".env", "extra": "ignore"}


_REQUIRED = (
    "telegram_bot_token",
    "authorized_user_id",
    "github_token",
    "github_owner",
    "github_repo",
    "openrouter_api_key",
)


def validate_settings(settings: MomentsSettings) -> MomentsSettings:
    """Check required values and the timezone name."""
    missing = [name for name in _REQUIRED if getattr(settings, name) in (None, "")]
    if missing:
        names = ", ".join(f"MOMENTS_{name.upper()}" for name in missing)
        raise ConfigError(f"Missing required environment variable(s): {names}")

    try:
        ZoneInfo(settings.timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f"Unknown timezone: {settings.timezone}") from e

    return settings


def load_settings() -> MomentsSettings:
    """Load settings from environment."""
    settings = validate_settings(MomentsSettings())
    if not settings.github_api_url.startswith("https://"):
        logger.warning("⚠️ GitHub API URL is not HTTPS — the token will be sent in clear text.")
    return settings
