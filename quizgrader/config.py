"""
Configuration management for the quiz grader.

Settings come from environment variables (or a .env file) and are validated
when first loaded, so a bad value stops the CLI before any grading starts.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    The grading oracle is optional: without an API key every short answer
    is scored by the local fallback scorer.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Grading Oracle Configuration
    # ==========================================================================
    oracle_api_key: str | None = Field(
        default=None,
        description="API key for the OpenAI-compatible grading endpoint",
    )

    oracle_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="Base URL for the grading endpoint",
    )

    oracle_model: str = Field(
        default="gpt-4-turbo-preview",
        description="Model used to grade short answers",
    )

    oracle_temperature: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Temperature for oracle generation (lower = more consistent)",
    )

    oracle_max_tokens: int = Field(
        default=500,
        ge=16,
        le=4096,
        description="Maximum tokens in an oracle response",
    )

    oracle_timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        le=300.0,
        description="Per-call timeout for the grading endpoint",
    )

    oracle_max_retries: int = Field(
        default=2,
        ge=0,
        le=5,
        description="Retries on rate limits, connection errors and 5xx responses",
    )

    oracle_stagger_seconds: float = Field(
        default=0.1,
        ge=0.0,
        le=5.0,
        description="Delay between consecutive oracle calls within one submission",
    )

    # ==========================================================================
    # Grading Configuration
    # ==========================================================================
    fallback_confidence: int = Field(
        default=60,
        ge=0,
        le=100,
        description="Confidence substituted when the oracle reports an invalid one",
    )

    # ==========================================================================
    # Storage / Runtime Configuration
    # ==========================================================================
    data_directory: Path = Field(
        default=Path("./data"),
        description="Root directory of the JSON attempt store",
    )

    log_level: str = Field(
        default="INFO",
        description="Log level used by the command-line interface",
    )

    @field_validator("oracle_base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Ensure base URL doesn't have trailing slash."""
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and check the log level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def oracle_configured(self) -> bool:
        """Whether an API key for the grading oracle is available."""
        return bool(self.oracle_api_key)


@lru_cache()
def get_settings() -> Settings:
    """
    Return the process-wide settings.

    Loaded on first use; tests construct Settings directly instead.
    """
    return Settings()
