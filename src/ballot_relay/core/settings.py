"""Application settings and configuration.

This module defines all configuration options for the Ballot Relay client.
Settings are loaded from environment variables with sensible defaults.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Ballot Relay", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Local queue database
    database_url: str = Field(default="sqlite:///./ballot_relay.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Remote acceptor
    acceptor_base_url: str | None = Field(default=None, alias="RELAY_ACCEPTOR_BASE_URL")
    acceptor_path: str = Field(default="/api/votes", alias="RELAY_ACCEPTOR_PATH")
    instance_id: str = Field(default="relay-local", alias="RELAY_INSTANCE_ID")
    shared_secret: str | None = Field(default=None, alias="RELAY_SHARED_SECRET")
    audience: str = Field(default="vote-acceptor", alias="RELAY_JWT_AUD")
    token_ttl_seconds: int = Field(default=300, alias="RELAY_TOKEN_TTL_SECONDS")
    http_timeout_seconds: float = Field(default=10.0, alias="RELAY_HTTP_TIMEOUT_SECONDS")
    transport_mode: Literal["http", "simulated"] = Field(
        default="http",
        alias="RELAY_TRANSPORT_MODE",
    )
    simulated_failure_rate: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        alias="RELAY_SIMULATED_FAILURE_RATE",
    )

    # Integrity tags
    signing_private_key: str | None = Field(default=None, alias="RELAY_SIGNING_PRIVATE_KEY")

    # Delivery policy
    sweep_interval_seconds: float = Field(default=5.0, gt=0, alias="RELAY_SWEEP_INTERVAL_SECONDS")
    base_delay_seconds: float = Field(default=1.0, gt=0, alias="RELAY_BASE_DELAY_SECONDS")
    max_delay_seconds: float | None = Field(default=None, alias="RELAY_MAX_DELAY_SECONDS")
    attempt_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        alias="RELAY_ATTEMPT_TIMEOUT_SECONDS",
    )
    max_concurrent_attempts: int = Field(
        default=4,
        ge=1,
        alias="RELAY_MAX_CONCURRENT_ATTEMPTS",
    )
    start_online: bool = Field(default=True, alias="RELAY_START_ONLINE")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling such as Alembic."""
        url = self.database_url
        if url.startswith("sqlite+aiosqlite"):
            return url.replace("sqlite+aiosqlite", "sqlite", 1)
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url


settings = Settings()
