"""
AudioScholar Backend — Application Configuration
=================================================

What:  Centralized configuration management using Pydantic Settings.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types/ranges, and provides a singleton `settings` object.
Who:   Imported by the key rotation manager, executors and API consumers.
When:  Loaded once at module import time; validated before first use.

Credential lists are kept as raw comma-separated strings here and parsed by
the key rotation manager. An empty credential list is NOT a startup error:
it surfaces lazily the first time a key is requested for that provider.
"""

from typing import List

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes are grouped by concern for readability.
    """

    # ── Credentials ───────────────────────────────────────────────────────
    # Format: comma-separated list, e.g. "key1,key2,key3"
    gemini_api_keys: str = Field(default="", description="Gemini API keys (comma-separated)")

    # Legacy single-key source, appended to the pool if not already present
    google_ai_api_key: str = Field(default="", description="Legacy single Gemini API key")

    convertapi_secrets: str = Field(default="", description="ConvertAPI secrets (comma-separated)")
    convertapi_secret: str = Field(default="", description="Legacy single ConvertAPI secret")

    # ── Key Cooldown ──────────────────────────────────────────────────────
    # What: How long a key reported as rate-limited (429/403) is skipped
    key_cooldown_seconds: int = Field(default=60, ge=1, le=3600)

    # ── Gemini Model Rotation ─────────────────────────────────────────────
    # What: Ordered fallback list; the first entry is preferred
    gemini_model_hierarchy: str = Field(
        default="gemini-2.5-flash,gemini-2.0-flash,gemini-2.0-flash-lite"
    )

    # What: Backoff applied only after the whole hierarchy is exhausted once
    # Example: 2000 → 4000 → 8000 → ... → 60000 (capped)
    gemini_rotation_base_backoff_ms: int = Field(default=2000, ge=1)
    gemini_rotation_max_backoff_ms: int = Field(default=60000, ge=1)
    gemini_rotation_backoff_multiplier: float = Field(default=2.0, ge=1.0)

    gemini_base_url: str = Field(default="https://generativelanguage.googleapis.com/v1beta")

    @property
    def gemini_model_hierarchy_list(self) -> List[str]:
        """Splits the comma-separated hierarchy into an ordered list of model names."""
        return [m.strip() for m in self.gemini_model_hierarchy.split(",") if m.strip()]

    @field_validator("gemini_model_hierarchy")
    @classmethod
    def validate_model_hierarchy(cls, v: str) -> str:
        """Rejects a hierarchy with no usable model names."""
        if not any(m.strip() for m in v.split(",")):
            raise ValueError("gemini_model_hierarchy must name at least one model")
        return v

    # ── Infinite Retry Executor ───────────────────────────────────────────
    retry_initial_delay_ms: int = Field(default=2000, ge=1)
    retry_max_delay_ms: int = Field(default=60000, ge=1)

    # What: Worker threads used by RobustTaskExecutor.submit()
    executor_max_workers: int = Field(default=4, ge=1, le=64)

    # ── ConvertAPI ────────────────────────────────────────────────────────
    convertapi_url: str = Field(default="https://v2.convertapi.com/convert/pptx/to/pdf")

    # What: Fixed attempt budget for one conversion (bounded, unlike Gemini)
    convertapi_max_attempts: int = Field(default=3, ge=1, le=10)

    # ── HTTP ──────────────────────────────────────────────────────────────
    http_timeout_seconds: float = Field(default=60.0, gt=0)

    # ── Logging ───────────────────────────────────────────────────────────
    # Valid: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    @model_validator(mode="after")
    def validate_backoff_bounds(self) -> "Settings":
        """A cap below its starting value would make every delay the cap."""
        if self.gemini_rotation_max_backoff_ms < self.gemini_rotation_base_backoff_ms:
            raise ValueError(
                "gemini_rotation_max_backoff_ms must be >= gemini_rotation_base_backoff_ms"
            )
        if self.retry_max_delay_ms < self.retry_initial_delay_ms:
            raise ValueError("retry_max_delay_ms must be >= retry_initial_delay_ms")
        return self

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }


# Singleton instance, imported throughout the application
settings = Settings()
