"""Configuration management for the Dialectic Engine."""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # In sandboxed environments, .env might not be accessible
    # Environment variables should be set directly
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Supabase configuration (required)
    SUPABASE_URL: str = Field(..., description="Supabase project URL")
    SUPABASE_SERVICE_ROLE_KEY: str = Field(..., description="Supabase service role key")
    SUPABASE_TIMEOUT_SECONDS: int = Field(
        default=60, description="Request timeout for catalog and storage calls"
    )

    # AI provider keys (only the providers a session actually selects need one)
    ANTHROPIC_API_KEY: str | None = Field(default=None, description="Anthropic API key")
    OPENAI_API_KEY: str | None = Field(default=None, description="OpenAI API key")

    # Environment
    DIALECTIC_ENV: str = Field(default="dev", description="Environment: dev, staging, prod")

    # Storage
    CONTENT_STORAGE_BUCKET: str = Field(
        default="dialectic-contributions", description="Bucket for generated contributions"
    )
    MAX_UPLOAD_ATTEMPTS: int = Field(
        default=5, description="Max attempt-count bumps when a contribution file name collides"
    )

    # Generation
    AI_CALL_TIMEOUT_SECONDS: float = Field(
        default=300.0, description="Wall-clock limit for a single model call"
    )
    DEFAULT_MAX_OUTPUT_TOKENS: int = Field(
        default=4096, description="Output token cap when the provider config sets none"
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance

    Raises:
        ValidationError: If required environment variables are missing
    """
    return Settings()
