"""Configuration management for the document patch engine."""

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

    # Environment
    DOCPATCH_ENV: str = Field(default="dev", description="Environment: dev, staging, prod")

    # Generation provider configuration
    GENERATION_PROVIDER: str = Field(
        default="openai", description="Generation backend: openai or anthropic"
    )
    OPENAI_API_KEY: str | None = Field(default=None, description="OpenAI API key")
    ANTHROPIC_API_KEY: str | None = Field(default=None, description="Anthropic API key")

    # Section edit configuration
    EDIT_MODEL: str = Field(default="gpt-4o-mini", description="Model for section edits")
    EDIT_TEMPERATURE: float = Field(default=0.3, description="Sampling temperature for edits")
    EDIT_MAX_TOKENS: int = Field(
        default=8000, description="Max output tokens per section edit (Anthropic only)"
    )
    GENERATION_TIMEOUT_SECONDS: float = Field(
        default=120.0, description="Per-call timeout for the generation client"
    )

    # Retry policy
    EDIT_MAX_ATTEMPTS: int = Field(default=5, description="Max generation attempts per section")
    RETRY_BASE_DELAY_SECONDS: float = Field(
        default=1.0, description="Base delay for exponential backoff"
    )
    RATE_LIMIT_MAX_DELAY_SECONDS: float = Field(
        default=30.0, description="Backoff cap for rate-limit and timeout errors"
    )
    TRANSIENT_MAX_DELAY_SECONDS: float = Field(
        default=10.0, description="Backoff cap for other transient errors"
    )

    # Batch scheduling
    EDIT_BATCH_SIZE: int = Field(default=2, description="Sections edited concurrently per batch")
    EDIT_BATCH_PAUSE_SECONDS: float = Field(
        default=1.0, description="Pause between batches to ease rate-limit pressure"
    )

    # Reference store (optional, read-only)
    SUPABASE_URL: str | None = Field(default=None, description="Supabase project URL")
    SUPABASE_SERVICE_ROLE_KEY: str | None = Field(
        default=None, description="Supabase service role key"
    )
    REFERENCE_TABLE: str = Field(
        default="countries", description="Table holding per-subject extracted source text"
    )

    # Documents
    DEFAULT_DOCUMENT_TITLE: str = Field(
        default="Project Information Form",
        description="Title reported when a document has no level-1 heading",
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance

    Raises:
        ValidationError: If an environment variable has an invalid value
    """
    return Settings()
