"""
Event Notifier — Centralized configuration.

Loads all settings from .env and validates required keys.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (one level up from notifier/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Push provider: "fcm" | "log"
    PUSH_PROVIDER: str = "fcm"

    # Firebase Cloud Messaging
    FCM_PROJECT_ID: str
    GOOGLE_APPLICATION_CREDENTIALS: str = "service-account.json"
    FCM_TIMEOUT_SECONDS: float = 10.0

    # SQLite
    DATABASE_PATH: str = "data/notifier.db"

    # Timed jobs
    SCHEDULER_ENABLED: bool = True
    SCHEDULER_TIMEZONE: str = "America/New_York"
    EVENT_REMINDER_INTERVAL_HOURS: int = 1
    REGISTRATION_DEADLINE_INTERVAL_HOURS: int = 6

    # HTTP server
    HOST: str = "127.0.0.1"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    @field_validator("SCHEDULER_ENABLED", mode="before")
    @classmethod
    def parse_bool(cls, v: str | bool) -> bool:
        if isinstance(v, bool):
            return v
        return str(v).strip().lower() in ("1", "true", "yes", "on")

    @field_validator(
        "EVENT_REMINDER_INTERVAL_HOURS",
        "REGISTRATION_DEADLINE_INTERVAL_HOURS",
        "PORT",
        mode="before",
    )
    @classmethod
    def parse_int(cls, v: str | int) -> int:
        return int(v)

    @field_validator("LOG_LEVEL", mode="after")
    @classmethod
    def upper_level(cls, v: str) -> str:
        return v.strip().upper() or "INFO"


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    project_id = os.getenv("FCM_PROJECT_ID", "")

    if not project_id or project_id.startswith("your-"):
        print("ERROR: FCM_PROJECT_ID is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    return Settings(
        PUSH_PROVIDER=os.getenv("PUSH_PROVIDER", "fcm"),
        FCM_PROJECT_ID=project_id,
        GOOGLE_APPLICATION_CREDENTIALS=os.getenv(
            "GOOGLE_APPLICATION_CREDENTIALS", "service-account.json"
        ),
        FCM_TIMEOUT_SECONDS=os.getenv("FCM_TIMEOUT_SECONDS", "10"),
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/notifier.db"),
        SCHEDULER_ENABLED=os.getenv("SCHEDULER_ENABLED", "true"),
        SCHEDULER_TIMEZONE=os.getenv("SCHEDULER_TIMEZONE", "America/New_York"),
        EVENT_REMINDER_INTERVAL_HOURS=os.getenv("EVENT_REMINDER_INTERVAL_HOURS", "1"),
        REGISTRATION_DEADLINE_INTERVAL_HOURS=os.getenv(
            "REGISTRATION_DEADLINE_INTERVAL_HOURS", "6"
        ),
        HOST=os.getenv("HOST", "127.0.0.1"),
        PORT=os.getenv("PORT", "8000"),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
    )


# Singleton — imported by all other modules as:
#   from notifier.config import settings
settings = _load_settings()
