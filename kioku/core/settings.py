"""Application settings and configuration management."""

from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

# Look for .env file in the project root, then in the working directory
env_file = Path(__file__).parent.parent.parent / ".env"
if env_file.exists():
    load_dotenv(env_file)
else:
    load_dotenv(".env", verbose=False)

ALLOWED_DAILY_TARGETS = (5, 10, 15, 20)


class Settings(BaseSettings):
    """Study engine settings with environment variable support."""

    # Storage
    database_path: str = Field(default="data/kioku.db", alias="KIOKU_DATABASE_PATH")
    progress_json_path: str = Field(
        default="", alias="KIOKU_PROGRESS_JSON_PATH"
    )  # empty: keep daily progress in the database

    # Study session
    auto_advance: bool = Field(default=True, alias="KIOKU_AUTO_ADVANCE")
    clicks_to_advance: int = Field(default=3, alias="KIOKU_CLICKS_TO_ADVANCE")

    # Daily words
    daily_words_enabled: bool = Field(default=True, alias="KIOKU_DAILY_WORDS_ENABLED")
    daily_target_words: int = Field(default=10, alias="KIOKU_DAILY_TARGET_WORDS")
    history_limit: int = Field(default=30, alias="KIOKU_HISTORY_LIMIT")

    # Logging
    log_level: str = Field(default="INFO", alias="KIOKU_LOG_LEVEL")
    log_file: str = Field(default="", alias="KIOKU_LOG_FILE")

    model_config = {
        "env_prefix": "",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }

    @field_validator("clicks_to_advance")
    @classmethod
    def _check_clicks(cls, value: int) -> int:
        if value < 1:
            raise ValueError("clicks_to_advance must be at least 1")
        return value

    @field_validator("daily_target_words")
    @classmethod
    def _check_target(cls, value: int) -> int:
        if value not in ALLOWED_DAILY_TARGETS:
            raise ValueError(f"daily_target_words must be one of {ALLOWED_DAILY_TARGETS}")
        return value

    @field_validator("history_limit")
    @classmethod
    def _check_history(cls, value: int) -> int:
        if value < 1:
            raise ValueError("history_limit must be positive")
        return value

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        return value.upper()


def get_settings() -> Settings:
    """Get application settings instance."""
    return Settings()
