"""Application configuration."""
from decimal import Decimal
from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # App
    app_name: str = "arena-backend"
    app_version: str = "1.0.0"
    app_env: str = "development"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_debug: bool = True
    log_level: str = "DEBUG"

    # Database
    database_url: str = Field(
        ...,
        description="Database connection URL (required)",
    )
    db_pool_size: int = Field(
        default=20,
        description="DB connection pool size (ignored for SQLite)",
    )
    db_max_overflow: int = Field(
        default=10,
        description="Max overflow connections (ignored for SQLite)",
    )
    db_echo: bool = Field(
        default=False,
        description="Echo SQL statements",
    )

    # Redis
    redis_url: str = Field(
        ...,
        description="Redis connection URL (required)",
    )
    redis_max_connections: int = Field(
        default=50,
        description="Redis max connections",
    )
    redis_socket_timeout: float = Field(
        default=5.0,
        description="Redis socket timeout in seconds",
    )

    # JWT
    jwt_secret_key: str = Field(
        ...,
        description="JWT secret key (required, minimum 32 characters)",
    )
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 60

    # Sentry Error Tracking
    sentry_dsn: str | None = Field(
        default=None,
        description="Sentry DSN for error tracking",
    )
    sentry_traces_sample_rate: float = Field(
        default=0.05,
        description="Sentry transaction sampling rate (0.0-1.0)",
    )

    # CORS
    cors_origins: str = "http://localhost:3000"

    # Wallet limits (rupees)
    deposit_min_amount: Decimal = Field(
        default=Decimal("10"),
        description="Minimum add-cash request",
    )
    deposit_max_amount: Decimal = Field(
        default=Decimal("1000"),
        description="Maximum add-cash request",
    )
    withdraw_min_amount: Decimal = Field(
        default=Decimal("10"),
        description="Minimum withdrawal request",
    )
    withdraw_max_amount: Decimal = Field(
        default=Decimal("50"),
        description="Maximum withdrawal request",
    )
    withdraw_tax_percent: int = Field(
        default=10,
        description="Flat tax withheld from withdrawals, in percent",
    )
    withdraw_cooldown_hours: int = Field(
        default=24,
        description="Minimum hours between approved withdrawals",
    )

    # Rooms
    room_publish_lead_minutes: int = Field(
        default=5,
        description="Room credentials become readable this many minutes before start",
    )
    room_publisher_interval_seconds: int = Field(
        default=30,
        description="Celery beat interval for the room publish sweep",
    )

    # Announcements
    announcement_dispatcher_interval_seconds: int = Field(
        default=60,
        description="Celery beat interval for scheduled announcements",
    )

    notification_webhook_url: str | None = Field(
        default=None,
        description="HTTP relay for notifications; logged only when unset",
    )
    notification_batch_size: int = Field(
        default=500,
        description="Recipients per relay request",
    )

    # Password reset
    password_reset_ttl_seconds: int = Field(
        default=120,
        description="Lifetime of a password reset token",
    )
    password_min_length: int = Field(
        default=6,
        description="Minimum length for a new password",
    )
    frontend_url: str = Field(
        default="http://localhost:3000",
        description="Base URL used to build password reset links",
    )

    # Uploads
    upload_dir: str = Field(
        default="uploads",
        description="Directory for deposit payment screenshots",
    )

    @field_validator("jwt_secret_key")
    @classmethod
    def validate_jwt_secret_key(cls, v: str) -> str:
        """Validate JWT secret key length."""
        if len(v) < 32:
            raise ValueError(
                "jwt_secret_key must be at least 32 characters long"
            )

        weak_patterns = [
            "change-this",
            "secret",
            "password",
            "12345",
            "qwerty",
        ]
        lower_v = v.lower()
        for pattern in weak_patterns:
            if pattern in lower_v:
                raise ValueError(
                    f"jwt_secret_key contains weak pattern '{pattern}'. "
                    "Use a strong, random secret key."
                )

        return v

    @field_validator("withdraw_tax_percent")
    @classmethod
    def validate_tax_percent(cls, v: int) -> int:
        """Tax must be a whole percentage below 100."""
        if not 0 <= v < 100:
            raise ValueError("withdraw_tax_percent must be between 0 and 99")
        return v

    @model_validator(mode="after")
    def validate_amount_bounds(self) -> "Settings":
        """Min/max pairs must be ordered and positive."""
        if not Decimal("0") < self.deposit_min_amount <= self.deposit_max_amount:
            raise ValueError("deposit amount bounds are inconsistent")
        if not Decimal("0") < self.withdraw_min_amount <= self.withdraw_max_amount:
            raise ValueError("withdraw amount bounds are inconsistent")
        return self

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Validate settings for production environment."""
        if self.app_env == "production":
            if self.app_debug:
                raise ValueError(
                    "app_debug must be False in production environment"
                )

            origins = [o.strip() for o in self.cors_origins.split(",")]
            if "*" in origins:
                raise ValueError(
                    "CORS wildcard '*' is not allowed in production environment. "
                    "Specify explicit allowed origins."
                )

            if self.database_url.startswith("sqlite"):
                raise ValueError("SQLite is not supported in production")

        return self

    model_config = {
        "env_file": ".env",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
