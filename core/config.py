"""
Configuration settings for DriveAssist Backend.

Uses Pydantic Settings for environment variable management.
"""

import os
from typing import List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Environment
    ENV: str = Field(default="development", env="ENV")
    DEBUG: bool = Field(default=False, env="DEBUG")
    LOG_LEVEL: str = Field(default="INFO", env="LOG_LEVEL")

    # Logging Control
    ENABLE_FILE_LOGGING: bool = Field(default=True, env="ENABLE_FILE_LOGGING")
    ENABLE_REQUEST_LOGGING: bool = Field(default=True, env="ENABLE_REQUEST_LOGGING")

    # Application
    APP_NAME: str = Field(default="DriveAssist Backend", env="APP_NAME")
    VERSION: str = Field(default="1.0.0", env="VERSION")

    # Server
    HOST: str = Field(default="0.0.0.0", env="HOST")
    PORT: int = Field(default=8000, env="PORT")

    REDIS_URL: str = Field(default="redis://localhost:6379/0", env="REDIS_URL")
    CELERY_BROKER_URL: str = Field(default="redis://localhost:6379/0", env="CELERY_BROKER_URL")
    CELERY_RESULT_BACKEND: str = Field(default="redis://localhost:6379/0", env="CELERY_RESULT_BACKEND")

    origins: List[str] = [
        "http://localhost:8081",  # expo dev client
        "http://localhost:5173",
        "https://driveassist.app",
    ]

    DATABASE_URL: Optional[str] = Field(default=None, env="DATABASE_URL")
    PRODUCTION_DATABASE_URL: Optional[str] = Field(default=None, env="PRODUCTION_DATABASE_URL")

    @property
    def database_url(self) -> str:
        if self.ENV == "development":
            return self.DATABASE_URL or ""
        return self.PRODUCTION_DATABASE_URL or ""

    DATABASE_POOL_SIZE: int = Field(default=10, env="DATABASE_POOL_SIZE")
    DATABASE_MAX_OVERFLOW: int = Field(default=20, env="DATABASE_MAX_OVERFLOW")

    # Auth
    OTP_TTL_MINUTES: int = 10
    MAX_ATTEMPTS: int = 5
    SESSION_DURATION: int = 60 * 24 * 90  # 90 days
    PASSWORD_MIN_LENGTH: int = 8

    # Quotas
    GUEST_FREE_DIAGNOSES: int = Field(default=3, env="GUEST_FREE_DIAGNOSES")
    DRIVER_FREE_DIAGNOSES: int = Field(default=5, env="DRIVER_FREE_DIAGNOSES")
    EXPERT_FREE_LEADS: int = Field(default=4, env="EXPERT_FREE_LEADS")
    MAX_DIAGNOSIS_IMAGES: int = Field(default=5, env="MAX_DIAGNOSIS_IMAGES")
    LEAD_MATCH_LIMIT: int = Field(default=10, env="LEAD_MATCH_LIMIT")
    GUEST_DIAGNOSIS_CREATES_LEADS: bool = Field(default=True, env="GUEST_DIAGNOSIS_CREATES_LEADS")
    LEAD_EXPIRY_DAYS: int = Field(default=30, env="LEAD_EXPIRY_DAYS")

    # Maintenance reminders
    MAINTENANCE_DUE_SOON_DAYS: int = Field(default=7, env="MAINTENANCE_DUE_SOON_DAYS")

    # Nearby experts
    NEARBY_DEFAULT_RADIUS_KM: float = Field(default=20.0, env="NEARBY_DEFAULT_RADIUS_KM")
    NEARBY_MAX_RADIUS_KM: float = Field(default=200.0, env="NEARBY_MAX_RADIUS_KM")

    # AI diagnosis providers
    AI_DEFAULT_PROVIDER: str = Field(default="groq", env="AI_DEFAULT_PROVIDER")
    AI_TIMEOUT: float = Field(default=60.0, env="AI_TIMEOUT")
    AI_TEMPERATURE: float = Field(default=0.7, env="AI_TEMPERATURE")
    AI_MAX_TOKENS: int = Field(default=2000, env="AI_MAX_TOKENS")
    AI_MAX_RETRIES: int = Field(default=3, env="AI_MAX_RETRIES")
    AI_RETRY_BACKOFF: int = Field(default=30, env="AI_RETRY_BACKOFF")

    GROQ_API_KEY: Optional[str] = Field(default=None, env="GROQ_API_KEY")
    GROQ_API_URL: str = Field(
        default="https://api.groq.com/openai/v1/chat/completions",
        env="GROQ_API_URL"
    )
    GROQ_MODEL: str = Field(default="llama-3.3-70b-versatile", env="GROQ_MODEL")

    OPENAI_API_KEY: Optional[str] = Field(default=None, env="OPENAI_API_KEY")
    OPENAI_API_URL: str = Field(
        default="https://api.openai.com/v1/chat/completions",
        env="OPENAI_API_URL"
    )
    OPENAI_MODEL: str = Field(default="gpt-4o-mini", env="OPENAI_MODEL")

    ANTHROPIC_API_KEY: Optional[str] = Field(default=None, env="ANTHROPIC_API_KEY")
    ANTHROPIC_API_URL: str = Field(
        default="https://api.anthropic.com/v1/messages",
        env="ANTHROPIC_API_URL"
    )
    ANTHROPIC_MODEL: str = Field(default="claude-3-5-sonnet-20241022", env="ANTHROPIC_MODEL")
    ANTHROPIC_VERSION: str = "2023-06-01"

    # Broadcasting (pusher-compatible signing)
    BROADCAST_KEY: str = Field(default="driveassist-key", env="BROADCAST_KEY")
    BROADCAST_SECRET: str = Field(default="driveassist-secret", env="BROADCAST_SECRET")
    BROADCAST_CHANNEL_PREFIX: str = Field(default="driveassist", env="BROADCAST_CHANNEL_PREFIX")

    # Payments
    PAYMENT_PROVIDER: str = Field(default="paystack", env="PAYMENT_PROVIDER")
    DEFAULT_CURRENCY: str = Field(default="GHS", env="DEFAULT_CURRENCY")

    # Email Configuration
    MAILGUN_API_URL: Optional[str] = Field(default=None, env="MAILGUN_API_URL")
    MAILGUN_API_KEY: Optional[str] = Field(default=None, env="MAILGUN_API_KEY")
    MAIL_FROM: str = Field(default="DriveAssist <no-reply@driveassist.app>", env="MAIL_FROM")

    # Sentry (Optional)
    SENTRY_DSN: Optional[str] = Field(default=None, env="SENTRY_DSN")
    SENTRY_ENVIRONMENT: str = Field(default="development", env="SENTRY_ENVIRONMENT")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


# Create settings instance
settings = Settings()


def get_env_file() -> str:
    """Get the appropriate environment file based on ENV setting."""
    env_file = f".env.{settings.ENV}"
    if os.path.exists(env_file):
        return env_file
    return ".env"


# Update settings with environment-specific file
settings = Settings(_env_file=get_env_file())
