"""
Configuration settings for studyhabits.

Uses Pydantic Settings for environment variable management with .env file support.
Every variable is prefixed with STUDYHABITS_ (e.g. STUDYHABITS_WORK_MINUTES=50).
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="STUDYHABITS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Storage
    # ========================================
    state_db_path: Path = Field(
        default=Path.home() / ".studyhabits" / "state.db",
        description="SQLite file holding every persisted snapshot",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: str = Field(
        default="WARNING",
        description="Minimum loguru level written to stderr by the CLI",
    )

    # ========================================
    # Spaced Repetition
    # ========================================
    max_interval_days: int = Field(
        default=365,
        ge=1,
        description="Upper bound for any review interval",
    )

    # ========================================
    # Pomodoro Timer Defaults
    # ========================================
    work_minutes: int = Field(default=25, ge=1, description="Focused work block length")
    short_break_minutes: int = Field(default=5, ge=1, description="Short break length")
    long_break_minutes: int = Field(default=15, ge=1, description="Long break length")
    sessions_before_long_break: int = Field(
        default=4,
        ge=1,
        description="Completed work blocks between long breaks",
    )

    # ========================================
    # RSVP Reader Defaults
    # ========================================
    default_rate_wpm: int = Field(default=300, ge=1, description="Reading speed for new texts")
    skip_step_tokens: int = Field(
        default=10,
        ge=1,
        description="Words jumped by skip forward/backward",
    )

    def get_timer_defaults(self) -> dict[str, int]:
        """Get default pomodoro lengths as a dictionary."""
        return {
            "work_minutes": self.work_minutes,
            "short_break_minutes": self.short_break_minutes,
            "long_break_minutes": self.long_break_minutes,
            "sessions_before_long_break": self.sessions_before_long_break,
        }

    def get_reader_defaults(self) -> dict[str, Any]:
        """Get default reader configuration as a dictionary."""
        return {
            "default_rate_wpm": self.default_rate_wpm,
            "skip_step_tokens": self.skip_step_tokens,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
