"""easyplug configuration via environment / .env file."""

from __future__ import annotations

from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="EASYPLUG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Discovery ---
    PLUGINS_DIR: Path = Path("./plugins")
    ARCHIVE_SUFFIX: str = ".zip"
    UNIT_SUFFIX: str = ".py"

    # --- Loading ---
    SEARCH_PATHS: list[Path] = []
    AUTOLOAD: bool = True

    @field_validator("ARCHIVE_SUFFIX", "UNIT_SUFFIX", mode="before")
    @classmethod
    def _normalise_suffix(cls, v: str) -> str:
        v = str(v).strip()
        if not v or v == ".":
            raise ValueError("suffix cannot be empty")
        if not v.startswith("."):
            v = "." + v
        return v


settings = Settings()
