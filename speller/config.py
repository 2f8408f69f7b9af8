"""
Configuration settings for the speller engine.

Uses Pydantic Settings for environment variable management with .env file support.
Every variable is prefixed with SPELLER_ (e.g. SPELLER_DATABASE_URL).
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SPELLER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Database
    # ========================================
    database_url: str = Field(
        default="sqlite:///speller.db",
        description="SQLAlchemy connection string (SQLite or PostgreSQL)",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # Ratings & Tiers
    # ========================================
    default_rating: int = Field(
        default=1500,
        description="Rating given to learners and words with no history",
    )
    k_factor: int = Field(
        default=32,
        description="ELO K-factor applied to every scored attempt",
    )
    max_tier: int = Field(
        default=7,
        description="Highest difficulty tier a learner can reach",
    )

    # ========================================
    # Mini-sets & Word Selection
    # ========================================
    mini_set_size: int = Field(
        default=5,
        description="Words per mini-set before a break",
    )
    band_tolerances: list[int] = Field(
        default=[100, 200, 400, 800],
        description="Expanding rating windows searched around the target rating",
    )
    mini_set_query_limit: int = Field(
        default=50,
        description="Maximum candidates fetched per rating-band query",
    )
    recent_attempt_cooldown: int = Field(
        default=20,
        description="Recent attempts whose (correct) words are held back",
    )
    recent_seen_window_days: int = Field(
        default=7,
        description="Days a mastered word counts as recently seen",
    )
    mastery_high_score: int = Field(
        default=2,
        description="Mastery score at or above which a word is deprioritized",
    )
    mastery_max_score: int = Field(
        default=3,
        description="Ceiling of the per-word mastery counter",
    )
    custom_list_bank_slots: int = Field(
        default=0,
        description="Word-bank slots kept when five or more curated words exist",
    )
    challenge_rating_boost: int = Field(
        default=150,
        description="Rating added to the target for a challenge jump",
    )
    challenge_rating_cap: int = Field(
        default=2200,
        description="Highest rating a challenge jump may target",
    )
    max_practical_rating: int = Field(
        default=2000,
        description="Learners at or above this rating get no challenge words",
    )

    # ========================================
    # Level Adjustment
    # ========================================
    cold_start_window: int = Field(
        default=10,
        description="Most recent attempts considered by the cold-start policy",
    )
    cold_start_min_attempts: int = Field(
        default=5,
        description="Attempts required before the cold-start policy acts",
    )
    cold_start_latency_ms: int = Field(
        default=5000,
        description="Median latency below which a fast, accurate learner moves up",
    )
    cold_start_raise_accuracy: float = Field(
        default=0.8,
        description="Accuracy at or above which the tier rises",
    )
    cold_start_lower_accuracy: float = Field(
        default=0.4,
        description="Accuracy at or below which the tier drops",
    )
    confidence_threshold: int = Field(
        default=2,
        description="Accumulated mini-set confidence that moves the ladder one tier",
    )

    # ========================================
    # Concurrency
    # ========================================
    session_lock_ttl_ms: int = Field(
        default=30000,
        description="Lease length for the per-session lock",
    )

    # ========================================
    # Helper Methods
    # ========================================
    def get_selection_config(self) -> dict[str, object]:
        """Get word selection configuration as a dictionary."""
        return {
            "mini_set_size": self.mini_set_size,
            "band_tolerances": list(self.band_tolerances),
            "query_limit": self.mini_set_query_limit,
            "recent_attempt_cooldown": self.recent_attempt_cooldown,
            "recent_seen_window_days": self.recent_seen_window_days,
            "custom_list_bank_slots": self.custom_list_bank_slots,
            "challenge": {
                "boost": self.challenge_rating_boost,
                "cap": self.challenge_rating_cap,
                "max_practical_rating": self.max_practical_rating,
            },
        }

    def get_cold_start_config(self) -> dict[str, float]:
        """Get cold-start level adjustment thresholds."""
        return {
            "window": self.cold_start_window,
            "min_attempts": self.cold_start_min_attempts,
            "latency_ms": self.cold_start_latency_ms,
            "raise_accuracy": self.cold_start_raise_accuracy,
            "lower_accuracy": self.cold_start_lower_accuracy,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
