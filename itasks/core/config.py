# itasks/core/config.py - Environment-driven settings for the iTasks API
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, SecretStr
from typing import Dict, List


class Settings(BaseSettings):
    """
    Settings for the iTasks helpdesk API.

    Values that administrators can change at runtime (SLA hours, SMTP, branding)
    live in the system_config table; the values here are the defaults used
    until that row exists.
    """
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Database Settings
    DATABASE_URL: str = Field(..., description="Async SQLAlchemy database URL (asyncpg or aiosqlite)")

    # JWT Authentication Settings
    JWT_SECRET_KEY: SecretStr = Field(..., description="Secret key for signing JWT tokens")
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 8

    # Application Settings
    ENVIRONMENT: str = Field("development", description="Environment name")
    LOG_LEVEL: str = Field("INFO", description="Log level")
    APP_NAME: str = Field("iTasks", description="Default application name used in emails")
    APP_URL: str = Field("http://localhost:3000", description="Public URL used in notification links")

    # Logging Configuration
    ENABLE_JSON_LOGGING: bool = Field(False, description="Enable JSON structured logging")

    # OpenTelemetry Tracing Settings
    ENABLE_OTEL_EXPORTER: bool = Field(False, description="Enable OpenTelemetry tracing")
    ENABLE_OTEL_CONSOLE_EXPORT: bool = Field(False, description="Export spans to the console")
    ENABLE_EXTERNAL_TRACING: bool = Field(False, description="Enable external OTLP tracing")
    OTLP_ENDPOINT: str = Field("http://localhost:4317", description="OTLP endpoint for external tracing")

    # CORS Settings
    CORS_ORIGINS: str = Field(
        "http://localhost:3000,http://127.0.0.1:3000",
        description="Comma-separated list of allowed CORS origins"
    )

    # Rate Limiting Settings
    RATE_LIMIT_ENABLED: bool = Field(True, description="Enable rate limiting")
    DEFAULT_RATE_LIMIT: str = Field("200/minute", description="Default rate limit")
    LOGIN_RATE_LIMIT: str = Field("5/minute", description="Login rate limit")

    # Performance Settings
    DB_POOL_SIZE: int = Field(20, description="Database connection pool size")
    DB_MAX_OVERFLOW: int = Field(0, description="Database max overflow connections")

    # SLA defaults (hours per priority)
    SLA_CRITICAL_HOURS: int = Field(4, description="Default SLA for Critical tasks")
    SLA_HIGH_HOURS: int = Field(24, description="Default SLA for High tasks")
    SLA_MEDIUM_HOURS: int = Field(48, description="Default SLA for Medium tasks")
    SLA_LOW_HOURS: int = Field(120, description="Default SLA for Low tasks")
    SLA_APPROACHING_WINDOW_HOURS: int = Field(24, description="Window for 'approaching' SLA classification")

    # Recurring task generation
    RECURRING_SCHEDULER_ENABLED: bool = Field(True, description="Run the in-process recurring task loop")
    RECURRING_CHECK_INTERVAL_SECONDS: int = Field(60, description="Seconds between generator runs")
    RECURRING_TIMEZONE: str = Field("UTC", description="Timezone cron expressions are evaluated in")

    # SMTP defaults (overridden by system_config when present)
    SMTP_ENABLED: bool = Field(False, description="Send email notifications")
    SMTP_HOST: str = Field("localhost", description="SMTP server host")
    SMTP_PORT: int = Field(25, description="SMTP server port")
    SMTP_USER: str = Field("", description="SMTP username")
    SMTP_PASSWORD: SecretStr = Field(SecretStr(""), description="SMTP password")
    SMTP_FROM: str = Field("itasks@localhost", description="Sender address")
    SMTP_USE_TLS: bool = Field(False, description="Use STARTTLS")
    SMTP_MAX_RETRIES: int = Field(3, description="Delivery attempts per email")

    # Attachments
    ATTACHMENT_DIR: str = Field("./data/attachments", description="Directory for uploaded files")
    ATTACHMENT_MAX_BYTES: int = Field(10 * 1024 * 1024, description="Maximum upload size in bytes")
    ATTACHMENT_ALLOWED_TYPES: str = Field(
        "image/png,image/jpeg,image/gif,application/pdf,text/plain,text/csv,"
        "application/zip,application/vnd.openxmlformats-officedocument.wordprocessingml.document,"
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        description="Comma-separated MIME allow-list"
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Convert CORS_ORIGINS string to list"""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def attachment_allowed_types(self) -> List[str]:
        return [t.strip() for t in self.ATTACHMENT_ALLOWED_TYPES.split(",") if t.strip()]

    @property
    def sla_default_hours(self) -> Dict[str, int]:
        return {
            "Critical": self.SLA_CRITICAL_HOURS,
            "High": self.SLA_HIGH_HOURS,
            "Medium": self.SLA_MEDIUM_HOURS,
            "Low": self.SLA_LOW_HOURS,
        }

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    @property
    def should_use_json_logging(self) -> bool:
        """Use JSON logging in production or when explicitly enabled"""
        return self.ENVIRONMENT == "production" or self.ENABLE_JSON_LOGGING


# Create settings instance
settings = Settings()
