"""Application settings and configuration.

This module defines all configuration options for the RChat service.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="RChat", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 7,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )

    # Database configuration
    database_url: str = Field(default="sqlite:///./rchat.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Redis backs the login throttle when reachable; in-process cache otherwise
    redis_url: str | None = Field(default=None, alias="REDIS_URL")

    # Reserved identities and the distinguished default community
    default_server_name: str = Field(default="RChat", alias="DEFAULT_SERVER_NAME")
    default_channel_name: str = Field(default="general", alias="DEFAULT_CHANNEL_NAME")
    system_username: str = Field(default="system", alias="SYSTEM_USERNAME")
    guest_username: str = Field(default="guest", alias="GUEST_USERNAME")
    admin_username: str | None = Field(default=None, alias="ADMIN_USERNAME")
    admin_password: str | None = Field(default=None, alias="ADMIN_PASSWORD")

    # Content limits
    message_max_length: int = Field(default=4000, alias="MESSAGE_MAX_LENGTH")
    name_max_length: int = Field(default=64, alias="NAME_MAX_LENGTH")
    password_min_length: int = Field(default=8, alias="PASSWORD_MIN_LENGTH")
    # Extra words censored on top of the better-profanity word list
    profanity_words: list[str] = Field(default_factory=list, alias="PROFANITY_WORDS")

    # Live connections: per-subscriber buffer before oldest events are dropped
    ws_queue_size: int = Field(default=1000, ge=1, alias="WS_QUEUE_SIZE")

    # Login throttling and lockout
    login_throttle_seconds: int = Field(default=1, alias="LOGIN_THROTTLE_SECONDS")
    login_max_attempts: int = Field(default=1000, alias="LOGIN_MAX_ATTEMPTS")
    login_lock_hours: int = Field(default=24, alias="LOGIN_LOCK_HOURS")

    # Create tables and the default community on startup
    auto_bootstrap: bool = Field(default=True, alias="AUTO_BOOTSTRAP")

    # Site-ban cascade: attempts per step (1 = no automatic retry)
    site_ban_max_attempts: int = Field(default=1, ge=1, alias="SITE_BAN_MAX_ATTEMPTS")
    site_ban_retry_delay_seconds: float = Field(
        default=0.0,
        ge=0,
        alias="SITE_BAN_RETRY_DELAY_SECONDS",
    )

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts asyncpg URLs to psycopg for synchronous database operations
        like Alembic migrations.
        """
        url = self.database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url


settings = Settings()  # type: ignore[call-arg]
