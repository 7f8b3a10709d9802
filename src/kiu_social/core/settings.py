"""Application settings and configuration.

This module defines all configuration options for the KIU Social service.
Settings are loaded from environment variables with sensible defaults.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or a `.env` file.
    """

    # Application metadata
    app_name: str = Field(default="KIU Social", alias="APP_NAME")
    app_version: str = Field(default="1.0.0", alias="APP_VERSION")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database configuration
    database_url: str = Field(default="sqlite:///./kiu_social.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")
    auto_create_tables: bool = Field(default=True, alias="AUTO_CREATE_TABLES")

    # JWT authentication settings
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 7,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )

    # Registration rules
    allowed_email_domain: str = Field(default="kiu.edu.ge", alias="ALLOWED_EMAIL_DOMAIN")
    min_start_year: int = Field(default=2020, alias="MIN_START_YEAR")
    start_year_horizon: int = Field(default=5, alias="START_YEAR_HORIZON")

    # Listing limits
    search_result_limit: int = Field(default=20, alias="SEARCH_RESULT_LIMIT")
    feed_comment_preview: int = Field(default=3, alias="FEED_COMMENT_PREVIEW")

    # Real-time fan-out: "local" keeps rooms in-process, "redis" shares them over pub/sub
    realtime_broker: Literal["local", "redis"] = Field(default="local", alias="REALTIME_BROKER")
    redis_url: str = Field(default="redis://localhost:6379", alias="REDIS_URL")
    redis_channel: str = Field(default="kiu_social:realtime", alias="REDIS_CHANNEL")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["http://localhost:5173"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
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
    )

    @property
    def email_pattern(self) -> str:
        """Regular expression that registration emails must match."""
        domain = self.allowed_email_domain.replace(".", r"\.")
        return rf"^[a-zA-Z0-9._%+-]+@{domain}$"


settings = Settings()  # type: ignore[call-arg]
