from __future__ import annotations

from pathlib import Path
from typing import Self

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sprint_rollover.constants import CYCLE_RECORD_KEY, EXPORT_FORMAT_VERSION, HISTORY_LOG_KEY

# .env is read once at import so every section sees the same environment
load_dotenv()


class CycleSettings(BaseSettings):
    """Sprint rollover behaviour. Env vars prefixed with CYCLE_."""

    model_config = SettingsConfigDict(env_prefix="CYCLE_")

    history_cap: int = Field(10, gt=0)
    # Merge-import keeps every imported entry unless this is enabled
    merge_applies_cap: bool = False
    sprint_length_days: int = Field(7, gt=0)
    week_modulus: int = Field(52, gt=1)
    survivor_label: str = "sprint-survivor"
    done_board_keywords: tuple[str, ...] = ("done", "closed", "complete", "finished")
    export_version: str = EXPORT_FORMAT_VERSION

    @field_validator("done_board_keywords")
    @classmethod
    def _normalize_keywords(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        keywords = tuple(k.strip().lower() for k in v if k.strip())
        if not keywords:
            raise ValueError("CYCLE_DONE_BOARD_KEYWORDS must contain at least one keyword")
        return keywords

    @field_validator("survivor_label")
    @classmethod
    def _validate_label(cls, v: str) -> str:
        v = v.strip()
        if not v or " " in v:
            raise ValueError(
                f"CYCLE_SURVIVOR_LABEL must be a single non-empty token (got '{v}')"
            )
        return v


class StorageSettings(BaseSettings):
    """Record store selection. Env vars prefixed with STORAGE_."""

    model_config = SettingsConfigDict(env_prefix="STORAGE_")

    backend: str = "sql"
    json_dir: Path = Path("sprint-data")
    database_url: str = "sqlite:///sprint_rollover.db"
    cycle_key: str = CYCLE_RECORD_KEY
    history_key: str = HISTORY_LOG_KEY

    @field_validator("backend")
    @classmethod
    def _validate_backend(cls, v: str) -> str:
        allowed = {"memory", "json", "sql"}
        v = v.strip().lower()
        if v not in allowed:
            msg = f"STORAGE_BACKEND must be one of {sorted(allowed)} (got '{v}')"
            raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def _validate_keys(self) -> Self:
        if self.cycle_key == self.history_key:
            raise ValueError(
                f"STORAGE_CYCLE_KEY and STORAGE_HISTORY_KEY must differ (both '{self.cycle_key}')"
            )
        return self


class LoggingSettings(BaseSettings):
    """Log output settings. Env vars prefixed with LOG_."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    json_output: bool = True
    level: str = "INFO"

    @field_validator("level")
    @classmethod
    def _validate_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        v = v.upper()
        if v not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {sorted(allowed)} (got '{v}')")
        return v


class Settings(BaseSettings):
    """Root settings composing all sub-configurations."""

    model_config = SettingsConfigDict(extra="ignore")

    cycle: CycleSettings = Field(default_factory=CycleSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def get_settings() -> Settings:
    """Load and validate settings. Raises ValidationError on invalid values."""
    return Settings()
