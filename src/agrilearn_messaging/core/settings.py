"""Application settings and configuration.

This module defines all configuration options for the AgriLearn messaging
service. Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or a `.env` file.
    """

    # Application metadata
    app_name: str = Field(default="AgriLearn Messaging", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    api_prefix: str = Field(default="/api/v1", alias="API_PREFIX")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database configuration
    database_url: str = Field(default="sqlite:///./agrilearn_messaging.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # JWT authentication settings
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 7,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )

    # Message limits
    message_max_length: int = Field(default=5000, alias="MESSAGE_MAX_LENGTH")
    subject_max_length: int = Field(default=200, alias="SUBJECT_MAX_LENGTH")
    tag_max_length: int = Field(default=50, alias="TAG_MAX_LENGTH")
    message_list_limit: int = Field(default=200, alias="MESSAGE_LIST_LIMIT")

    # Attachment handling
    attachment_max_files: int = Field(default=5, alias="ATTACHMENT_MAX_FILES")
    attachment_max_bytes: int = Field(default=10 * 1024 * 1024, alias="ATTACHMENT_MAX_BYTES")
    attachment_allowed_extensions: list[str] = Field(
        default=["jpeg", "jpg", "png", "gif", "pdf", "doc", "docx", "txt", "zip", "rar"],
        alias="ATTACHMENT_ALLOWED_EXTENSIONS",
    )
    upload_dir: str = Field(default="./uploads/messages", alias="UPLOAD_DIR")
    attachment_base_url: str = Field(default="/uploads/messages", alias="ATTACHMENT_BASE_URL")

    # Client polling cadence
    conversation_poll_interval_seconds: float = Field(
        default=30.0,
        alias="CONVERSATION_POLL_INTERVAL_SECONDS",
    )
    client_http_timeout_seconds: float = Field(
        default=10.0,
        alias="CLIENT_HTTP_TIMEOUT_SECONDS",
    )

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
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
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides.

        Returns:
            The active database URL (test database if in testing mode, otherwise production)
        """
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for Alembic.

        Converts asyncpg URLs to psycopg for synchronous database operations.
        """
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def allowed_extensions(self) -> frozenset[str]:
        """Return the normalised set of accepted attachment extensions."""
        return frozenset(ext.lower().lstrip(".") for ext in self.attachment_allowed_extensions)


settings = Settings()  # type: ignore[call-arg]
