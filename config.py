"""
Configuration settings for the mastery-loop engine.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DATA_DIR = Path.home() / ".mastery"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Database
    # ========================================
    database_url: str = Field(
        default=f"sqlite:///{DEFAULT_DATA_DIR / 'profile.db'}",
        description="SQLAlchemy connection string for the weakness profile store",
    )

    # ========================================
    # Content Generator (OpenAI-compatible chat completions)
    # ========================================
    generator_api_url: str = Field(
        default="https://api.groq.com/openai/v1",
        description="Base URL of the chat-completions provider",
    )
    generator_api_key: str | None = Field(
        default=None,
        description="API key for the content generator; remediation falls back to offline content when unset",
    )
    generator_model: str = Field(
        default="llama-3.3-70b-versatile",
        description="Model used for notes, flashcards, reports and quizzes",
    )
    generator_temperature: float = Field(
        default=0.4,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for generation calls",
    )
    generator_max_tokens: int = Field(
        default=4096,
        description="Maximum tokens per generation call",
    )
    generator_timeout_ms: int = Field(
        default=30000,
        description="Request timeout in milliseconds",
    )
    generator_retry_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts per generation call before a transport error is raised",
    )

    # ========================================
    # Mastery Loop / Remediation Gate
    # ========================================
    notes_dwell_seconds: float = Field(
        default=15.0,
        ge=0.0,
        description="Minimum time on remediation notes before advancing",
    )
    flashcard_dwell_seconds: float = Field(
        default=10.0,
        ge=0.0,
        description="Minimum time on remediation flashcards before advancing",
    )
    remediation_flashcard_count: int = Field(
        default=4,
        ge=1,
        description="Flashcards requested per remediation round",
    )

    # ========================================
    # Weakness Profile
    # ========================================
    smoothing_factor: float = Field(
        default=0.7,
        gt=0.0,
        lt=1.0,
        description="Weight kept by the previous score on each new sample",
    )
    trend_delta: int = Field(
        default=5,
        ge=0,
        description="Score change beyond which a topic is improving/declining",
    )
    weak_score_threshold: int = Field(
        default=70,
        ge=0,
        le=100,
        description="Topics scoring below this are weak",
    )

    # ========================================
    # Quiz Composer
    # ========================================
    weak_topic_ratio: float = Field(
        default=0.4,
        ge=0.0,
        le=1.0,
        description="Minimum share of requested questions tagged to weak topics",
    )
    composer_max_weak_topics: int = Field(
        default=5,
        ge=1,
        description="Weak topics pulled from the profile per composition",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Minimum loguru level for the stderr sink",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional rotating log file path",
    )

    def has_generator_configured(self) -> bool:
        """Check if a content generator API key is configured."""
        return bool(self.generator_api_key)

    def get_loop_config(self) -> dict[str, Any]:
        """Get remediation gate configuration as a dictionary."""
        return {
            "notes_dwell_seconds": self.notes_dwell_seconds,
            "flashcard_dwell_seconds": self.flashcard_dwell_seconds,
            "flashcard_count": self.remediation_flashcard_count,
        }

    def get_profile_config(self) -> dict[str, Any]:
        """Get weakness profile configuration as a dictionary."""
        return {
            "smoothing_factor": self.smoothing_factor,
            "trend_delta": self.trend_delta,
            "weak_score_threshold": self.weak_score_threshold,
        }

    def get_composer_config(self) -> dict[str, Any]:
        """Get quiz composer configuration as a dictionary."""
        return {
            "weak_topic_ratio": self.weak_topic_ratio,
            "max_weak_topics": self.composer_max_weak_topics,
            "weak_score_threshold": self.weak_score_threshold,
        }

    def get_generator_config(self) -> dict[str, Any]:
        """Get content generator client configuration as a dictionary."""
        return {
            "api_url": self.generator_api_url,
            "api_key": self.generator_api_key,
            "model": self.generator_model,
            "temperature": self.generator_temperature,
            "max_tokens": self.generator_max_tokens,
            "timeout_ms": self.generator_timeout_ms,
            "retry_attempts": self.generator_retry_attempts,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
