"""
Configuration settings for the linework curriculum engine.

Uses Pydantic Settings for environment variable management with .env file support.
All variables are read with the LINEWORK_ prefix, e.g. LINEWORK_LOG_LEVEL=DEBUG.
"""
from __future__ import annotations

import sys
from functools import lru_cache
from pathlib import Path
from typing import Literal

from loguru import logger
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="LINEWORK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
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
    # Storage
    # ========================================
    data_dir: Path = Field(
        default=Path.home() / ".linework",
        description="Directory for JSON storage and the default SQLite database",
    )
    storage_backend: Literal["memory", "json", "sql"] = Field(
        default="json",
        description="Key-value backend used for progress and suspended sessions",
    )
    database_url: str | None = Field(
        default=None,
        description="SQLAlchemy URL for the sql backend (defaults to SQLite in data_dir)",
    )
    learner_id: str = Field(
        default="default",
        description="Learner whose progress the CLI reads and writes",
    )

    # ========================================
    # Catalog & Assets
    # ========================================
    catalog_path: Path | None = Field(
        default=None,
        description="YAML catalog to load instead of the bundled fundamentals catalog",
    )
    asset_base_url: str = Field(
        default="https://assets.linework.invalid/",
        description="Base URL that relative lesson asset paths are resolved against",
    )
    asset_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for a single asset preload request",
    )
    asset_cache_entries: int = Field(
        default=64,
        ge=1,
        description="Preloaded assets kept in memory before the least recently used is dropped",
    )

    # ========================================
    # Assessment
    # ========================================
    perfect_score_threshold: float = Field(
        default=0.95,
        description="Final score at or above which the perfect-score bonus applies",
    )
    perfect_score_multiplier: float = Field(
        default=1.5,
        description="Multiplier applied to reward XP for a perfect score",
    )
    objective_pass_score: float = Field(
        default=0.7,
        description="Final score needed to mark learning objectives as met",
    )
    self_assessment_default: float = Field(
        default=0.8,
        description="Score used for a self-assessed criterion the learner skipped",
    )
    peer_assessment_default: float = Field(
        default=0.75,
        description="Score used for a peer-assessed criterion with no review yet",
    )

    # ========================================
    # Practice Guidance
    # ========================================
    hint_time_factor: float = Field(
        default=1.5,
        description="Multiple of the expected step time after which a timeout hint fires",
    )
    default_expected_step_seconds: float = Field(
        default=30.0,
        description="Expected time per practice step when the rule does not specify one",
    )
    suspended_session_expiry_hours: int = Field(
        default=24,
        description="Suspended lesson sessions older than this are discarded",
    )

    # ========================================
    # Progress
    # ========================================
    default_daily_goal: int = Field(
        default=100,
        description="Daily XP goal for new learners",
    )
    daily_goal_min: int = Field(default=50, description="Lowest daily goal a learner may set")
    daily_goal_max: int = Field(default=500, description="Highest daily goal a learner may set")

    def get_database_url(self) -> str:
        """SQLAlchemy URL for the sql storage backend."""
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.data_dir / 'linework.db'}"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(settings: Settings | None = None) -> None:
    """Install loguru sinks for the configured level and optional log file."""
    settings = settings or get_settings()
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if settings.log_file:
        logger.add(
            settings.log_file,
            level=settings.log_level,
            rotation="10 MB",
            retention=5,
            encoding="utf-8",
        )
