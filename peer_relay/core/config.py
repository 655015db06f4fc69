"""
Application configuration using Pydantic Settings.

Configuration values can be set via environment variables or .env file.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    APP_NAME: str = "Peer Relay"
    HOST: str = "0.0.0.0"
    PORT: int = 8787
    DEBUG: bool = False
    DEV_MODE: bool = False

    # Signing secret for reconnection tokens. Connections are refused without it.
    SECRET_KEY: Optional[str] = None

    # When set, `open` requires the caller to present this key
    PEER_API_KEY: Optional[str] = None

    # Minimum interval between two successful polls of one session (milliseconds)
    PEER_POLL_INTERVAL: int = Field(default=4500, ge=0)

    # Connections that neither open nor reconnect within this window are closed
    AUTH_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)

    DATABASE_URL: str = "sqlite:///./data/peer_relay.db"

    # Rate limiting configuration for the plain HTTP endpoints
    rate_limit_http_endpoints: str = "30/minute"

    # Optional Redis URL for distributed rate limiting
    # When set, rate limits will be shared across multiple instances
    redis_url: Optional[str] = None


# Global settings instance
settings = Settings()
