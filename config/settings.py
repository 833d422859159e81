"""Application settings and configuration management."""
from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_BUNDLED_QUESTION_BANK = Path(__file__).resolve().parent / "question_bank.yaml"


class Settings(BaseSettings):
    """Settings loaded from environment variables or defaults."""

    DB_PATH: str = Field(default="data/interview.db")

    PRIMARY_KEY: str = "persist:ai-interview-app"
    AUTOSAVE_KEY: str = "ai-interview-autosave"

    PRIMARY_THROTTLE_SECONDS: float = Field(default=0.1, ge=0.0)
    FLUSH_SETTLE_SECONDS: float = Field(default=0.1, ge=0.0)
    FLUSH_INTERVAL_SECONDS: float = Field(default=5.0, gt=0.0)
    AUTOSAVE_DEBOUNCE_SECONDS: float = Field(default=2.0, ge=0.0)
    TICK_SECONDS: float = Field(default=0.1, gt=0.0)

    BACKUP_RETENTION_DAYS: int = Field(default=7, ge=1)
    QUESTIONS_PER_INTERVIEW: int = Field(default=6, ge=1)
    QUESTION_BANK_PATH: str = str(_BUNDLED_QUESTION_BANK)

    model_config = SettingsConfigDict(env_file=".env", validate_assignment=True)


settings = Settings()
