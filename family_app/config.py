"""
Family App — Centralized configuration.

Loads all settings from .env and validates them. The data mode chosen here is
resolved once at startup and then passed explicitly to every factory, so a
process can build a local and a remote application side by side.
"""

from __future__ import annotations

import os
import sys
from enum import Enum
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from family_app/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class DataMode(str, Enum):
    LOCAL = "local"      # in-memory store persisted to a local snapshot
    REMOTE = "remote"    # REST boundary in front of the hosted database


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Data access
    DATA_MODE: DataMode = DataMode.LOCAL
    API_BASE_URL: str = ""
    API_TIMEOUT_SECONDS: float = 10.0
    API_MAX_RETRIES: int = 2
    API_RETRY_BACKOFF_SECONDS: float = 0.5

    # Local snapshot (SQLite file holding the persisted store)
    STORE_PATH: str = "data/family_app.db"

    # Telegram (Mini App init data verification + notifications)
    TELEGRAM_BOT_TOKEN: str = ""
    NOTIFICATIONS_ENABLED: bool = False
    INIT_DATA_MAX_AGE_SECONDS: int = 86400

    @field_validator("DATA_MODE", mode="before")
    @classmethod
    def parse_mode(cls, v: str | DataMode) -> DataMode:
        if isinstance(v, DataMode):
            return v
        value = (v or "local").strip().lower()
        # Legacy DEMO_MODE spellings: "demo" and "production".
        aliases = {"demo": "local", "production": "remote"}
        return DataMode(aliases.get(value, value))

    @field_validator("NOTIFICATIONS_ENABLED", mode="before")
    @classmethod
    def parse_flag(cls, v: str | bool) -> bool:
        if isinstance(v, bool):
            return v
        return str(v).strip().lower() in {"1", "true", "yes", "on"}

    @field_validator("API_BASE_URL", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return (v or "").strip().rstrip("/")

    @property
    def is_local(self) -> bool:
        return self.DATA_MODE is DataMode.LOCAL


def _load_settings() -> Settings:
    """Load settings from environment, validating mode-specific keys."""
    mode = os.getenv("DATA_MODE", "local")
    base_url = os.getenv("API_BASE_URL", "")

    try:
        loaded = Settings(
            DATA_MODE=mode,
            API_BASE_URL=base_url,
            API_TIMEOUT_SECONDS=os.getenv("API_TIMEOUT_SECONDS", "10"),
            API_MAX_RETRIES=os.getenv("API_MAX_RETRIES", "2"),
            API_RETRY_BACKOFF_SECONDS=os.getenv("API_RETRY_BACKOFF_SECONDS", "0.5"),
            STORE_PATH=os.getenv("STORE_PATH", "data/family_app.db"),
            TELEGRAM_BOT_TOKEN=os.getenv("TELEGRAM_BOT_TOKEN", ""),
            NOTIFICATIONS_ENABLED=os.getenv("NOTIFICATIONS_ENABLED", "false"),
            INIT_DATA_MAX_AGE_SECONDS=os.getenv("INIT_DATA_MAX_AGE_SECONDS", "86400"),
        )
    except ValueError as exc:
        print(f"ERROR: invalid configuration in .env: {exc}", file=sys.stderr)
        sys.exit(1)

    if not loaded.is_local and not loaded.API_BASE_URL:
        print("ERROR: API_BASE_URL is required when DATA_MODE=remote", file=sys.stderr)
        sys.exit(1)

    return loaded


# Singleton for the entry point. Library code receives Settings explicitly:
#   create_app(settings)
settings = _load_settings()
