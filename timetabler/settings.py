"""Environment-driven engine settings."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic.aliases import AliasChoices
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TIMETABLER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Runtime
    environment: str = Field(
        default="development",
        validation_alias=AliasChoices("environment", "TIMETABLER_ENVIRONMENT", "ENVIRONMENT"),
    )
    log_level: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("log_level", "TIMETABLER_LOG_LEVEL", "LOG_LEVEL"),
    )
    log_dir: Optional[Path] = Field(
        default=None,
        validation_alias=AliasChoices("log_dir", "TIMETABLER_LOG_DIR"),
    )

    # Placement policy
    # - allow_split_double_periods: when no adjacent pair is left, place the
    #   two hours of a double period as separate singles instead of leaving
    #   them as shortfall.
    # - enforce_daily_spread: try days where an allocation is under its
    #   per-day cap before stacking more periods on one day.
    allow_split_double_periods: bool = Field(
        default=False,
        validation_alias=AliasChoices("allow_split_double_periods", "TIMETABLER_ALLOW_SPLIT_DOUBLE_PERIODS"),
    )
    enforce_daily_spread: bool = Field(
        default=True,
        validation_alias=AliasChoices("enforce_daily_spread", "TIMETABLER_ENFORCE_DAILY_SPREAD"),
    )

    # CLI default dataset
    data_file: Optional[Path] = Field(
        default=None,
        validation_alias=AliasChoices("data_file", "TIMETABLER_DATA_FILE"),
    )

    @field_validator("environment")
    @classmethod
    def _normalize_environment(cls, v: str) -> str:
        return (v or "development").strip().lower()

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v else None


@lru_cache
def get_settings() -> Settings:
    return Settings()
