"""Hub configuration with pydantic-settings.

All values come from environment variables (or a local ``.env`` file).
Nothing here is validated against remote services at load time; secrets
such as the encryption passphrase are optional on load and enforced by the
component that needs them.

Usage:
    from toolhub.config import get_settings

    settings = get_settings()
    settings.redis_url
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Tool hub settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Logging ===

    service_name: str = Field(
        default="toolhub",
        description="Service name for structured logging",
    )
    log_format: Literal["json", "console"] = Field(
        default="console",
        description="Log output format",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )

    # === Storage ===

    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL backing the key-value store",
        examples=["redis://redis:6379/0"],
    )
    registry_max_retries: int = Field(
        default=5,
        ge=1,
        description="Compare-and-swap attempts for a server registry mutation",
    )

    # === Credentials ===

    encryption_key: str | None = Field(
        default=None,
        description="Passphrase used to encrypt stored API keys and OAuth tokens",
    )
    oauth_state_ttl_seconds: int = Field(
        default=600,
        ge=1,
        description="Lifetime of an unconsumed OAuth flow state",
    )
    oauth_http_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        description="Timeout for token exchange and refresh calls",
    )

    sentry_client_id: str = Field(default="", description="Sentry OAuth client id")
    sentry_client_secret: str = Field(default="", description="Sentry OAuth client secret")
    sentry_redirect_uri: str = Field(default="", description="Sentry OAuth redirect URI")

    github_client_id: str = Field(default="", description="GitHub OAuth client id")
    github_client_secret: str = Field(default="", description="GitHub OAuth client secret")
    github_redirect_uri: str = Field(default="", description="GitHub OAuth redirect URI")

    # === Tools & agent ===

    mcp_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for requests to remote tool servers",
    )
    agent_name: str = Field(default="MCP Agent")
    agent_model: str = Field(
        default="gpt-4o-mini",
        description="Chat model used by the agent",
    )
    agent_max_tool_rounds: int = Field(default=8, ge=1)
    openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY")

    # === Conversation ===

    conversation_max_messages: int = Field(
        default=20,
        ge=1,
        description="Messages kept per conversation thread",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return upper_v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
