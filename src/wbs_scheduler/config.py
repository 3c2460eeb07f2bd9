"""
Configuration settings for the scheduler.
Values come from environment variables, optionally seeded from a .env file.
"""
from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from the working directory's .env file
env_file = Path.cwd() / ".env"
if env_file.exists():
    load_dotenv(env_file)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str) -> float | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return float(value)


class Settings:
    """Application settings loaded from environment variables."""

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE = os.getenv("LOG_FILE") or None

    # Scheduling
    HOURS_PER_DAY = float(os.getenv("HOURS_PER_DAY", "8"))
    WBS_MAX_DEPTH = int(os.getenv("WBS_MAX_DEPTH", "5"))
    STRICT_DURATIONS = _env_bool("STRICT_DURATIONS", True)

    # Seconds to wait for a project's lock; None waits until it is free
    SCHEDULE_LOCK_TIMEOUT = _env_float("SCHEDULE_LOCK_TIMEOUT")


# Create settings instance
settings = Settings()
