"""
Application settings configuration for Volunteer Hub.

Centralized settings loaded from environment variables.
"""

from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class AppSettings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment Variables:
        VHUB_JWT_SECRET_KEY: Secret key for verifying bearer tokens (>= 32 chars)
        VHUB_AI_SUMMARY_URL: Chat-completions endpoint used for event summaries
        VHUB_AI_SUMMARY_API_KEY: API key for the summary endpoint (empty = disabled)
        VHUB_AI_SUMMARY_MODEL: Model name sent with each summary request
        VHUB_AI_SUMMARY_TIMEOUT: Request timeout in seconds (default: 30)
        VHUB_SUMMARY_BACKFILL_DELAY: Seconds to wait between backfill requests (default: 1.0)
        VHUB_CORS_ORIGINS: Comma-separated list of allowed browser origins
    """

    jwt_secret_key: str = Field(
        default="",
        validation_alias="VHUB_JWT_SECRET_KEY",
        description="Secret key for verifying HS256 bearer tokens. Must be at least 32 bytes."
    )

    # AI summary endpoint (OpenRouter-compatible chat completions)
    ai_summary_url: str = Field(
        default="https://openrouter.ai/api/v1/chat/completions",
        validation_alias="VHUB_AI_SUMMARY_URL",
    )

    ai_summary_api_key: str = Field(
        default="",
        validation_alias="VHUB_AI_SUMMARY_API_KEY",
        description="API key for the summary endpoint. Empty = summaries disabled."
    )

    ai_summary_model: str = Field(
        default="deepseek/deepseek-r1-distill-llama-70b:free",
        validation_alias="VHUB_AI_SUMMARY_MODEL",
    )

    ai_summary_timeout: float = Field(
        default=30.0,
        validation_alias="VHUB_AI_SUMMARY_TIMEOUT",
        gt=0,
    )

    # Pause between requests when backfilling a whole series
    summary_backfill_delay: float = Field(
        default=1.0,
        validation_alias="VHUB_SUMMARY_BACKFILL_DELAY",
        ge=0,
    )

    cors_origins: str = Field(
        default="http://localhost:5173,http://127.0.0.1:5173",
        validation_alias="VHUB_CORS_ORIGINS",
    )

    class Config:
        env_file = ".env"
        extra = "ignore"

    @field_validator("jwt_secret_key")
    @classmethod
    def validate_jwt_secret_key(cls, v: str) -> str:
        """Validate that JWT secret key is sufficiently long."""
        if v and len(v) < 32:
            raise ValueError("VHUB_JWT_SECRET_KEY must be at least 32 characters")
        return v

    @property
    def jwt_configured(self) -> bool:
        """Check if bearer token verification is configured."""
        return bool(self.jwt_secret_key)

    @property
    def ai_summary_configured(self) -> bool:
        """Check if the AI summary endpoint can be called."""
        return bool(self.ai_summary_url and self.ai_summary_api_key)

    @property
    def cors_origins_list(self) -> List[str]:
        """Get the allowed CORS origins as a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache()
def get_settings() -> AppSettings:
    """
    Get cached application settings instance.

    Returns:
        AppSettings: Configured application settings from environment
    """
    return AppSettings()
