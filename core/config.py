"""
Core configuration using Pydantic Settings.
Loads from environment variables.
"""

from typing import Literal
from pydantic import Field, RedisDsn
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # App
    app_name: str = Field(default="talentflow-ats", alias="APP_NAME")
    app_env: Literal["development", "staging", "production", "test"] = Field(
        default="development", alias="APP_ENV"
    )
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", alias="LOG_LEVEL"
    )

    # API
    api_prefix: str = "/api"
    allowed_origins: list[str] = Field(
        default=["http://localhost:5173", "http://localhost:3000"],
        alias="ALLOWED_ORIGINS",
    )

    # Database
    database_url: str = Field(..., alias="DATABASE_URL")
    database_pool_size: int = Field(default=20, alias="DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(default=10, alias="DATABASE_MAX_OVERFLOW")
    database_echo: bool = Field(default=False, alias="DATABASE_ECHO")

    # Redis
    redis_url: RedisDsn = Field(default="redis://localhost:6379/0", alias="REDIS_URL")

    # Celery
    celery_broker_url: str = Field(
        default="redis://localhost:6379/1", alias="CELERY_BROKER_URL"
    )
    celery_result_backend: str = Field(
        default="redis://localhost:6379/2", alias="CELERY_RESULT_BACKEND"
    )
    celery_task_always_eager: bool = Field(
        default=False, alias="CELERY_TASK_ALWAYS_EAGER"
    )

    # Auth
    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 12, alias="ACCESS_TOKEN_EXPIRE_MINUTES"
    )

    # Logging
    log_request_body: bool = Field(default=False, alias="LOG_REQUEST_BODY")
    log_response_body: bool = Field(default=False, alias="LOG_RESPONSE_BODY")
    log_max_body_size: int = Field(default=1024, alias="LOG_MAX_BODY_SIZE")
    json_logs: bool = Field(default=True, alias="JSON_LOGS")

    # Public intake
    public_applications_enabled: bool = Field(
        default=True, alias="PUBLIC_APPLICATIONS_ENABLED"
    )
    public_log_applications: bool = Field(
        default=True, alias="PUBLIC_LOG_APPLICATIONS"
    )
    public_portal_url: str = Field(
        default="http://localhost:5173", alias="PUBLIC_PORTAL_URL"
    )

    # Rate Limiting
    public_applications_rate_limit: int = Field(
        default=5, ge=1, alias="PUBLIC_APPLICATIONS_RATE_LIMIT"
    )
    public_applications_rate_window_seconds: int = Field(
        default=10 * 60, ge=1, alias="PUBLIC_APPLICATIONS_RATE_WINDOW_SECONDS"
    )
    rate_limit_backend: Literal["memory", "redis"] = Field(
        default="memory", alias="RATE_LIMIT_BACKEND"
    )

    # Captcha
    captcha_required: bool = Field(default=True, alias="PUBLIC_CAPTCHA_REQUIRED")
    recaptcha_secret_key: str | None = Field(default=None, alias="RECAPTCHA_SECRET_KEY")
    recaptcha_min_score: float = Field(default=0.5, alias="RECAPTCHA_MIN_SCORE")
    recaptcha_verify_url: str = Field(
        default="https://www.google.com/recaptcha/api/siteverify",
        alias="RECAPTCHA_VERIFY_URL",
    )
    recaptcha_timeout_seconds: float = Field(
        default=5.0, alias="RECAPTCHA_TIMEOUT_SECONDS"
    )

    # Email
    smtp_host: str | None = Field(default=None, alias="SMTP_HOST")
    smtp_port: int = Field(default=587, alias="SMTP_PORT")
    smtp_user: str | None = Field(default=None, alias="SMTP_USER")
    smtp_password: str | None = Field(default=None, alias="SMTP_PASSWORD")
    smtp_use_tls: bool = Field(default=True, alias="SMTP_USE_TLS")
    smtp_from: str = Field(default="no-reply@talentflow.local", alias="SMTP_FROM")
    smtp_from_name: str = Field(default="Talent Flow", alias="SMTP_FROM_NAME")


# Global settings instance
settings = Settings()
