"""
Studio service configuration — all environment variables in one place.

Read from environment at runtime. Never hardcode secrets.
"""

from __future__ import annotations

import os


class Settings:
    """Application settings from environment variables."""

    # Database (empty = in-memory storage)
    DATABASE_URL: str = os.environ.get("DATABASE_URL", "")

    # Editing sessions
    HISTORY_LIMIT: int = int(os.environ.get("STUDIO_HISTORY_LIMIT", "50"))
    SAVE_DEBOUNCE_MS: int = int(os.environ.get("STUDIO_SAVE_DEBOUNCE_MS", "500"))
    SAVE_MAX_RETRIES: int = int(os.environ.get("STUDIO_SAVE_MAX_RETRIES", "3"))
    SAVE_BACKOFF_MS: int = int(os.environ.get("STUDIO_SAVE_BACKOFF_MS", "200"))

    # Logging
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")

    # Application
    ENVIRONMENT: str = os.environ.get("ENVIRONMENT", "development")

    @property
    def PUBLIC_URL(self) -> str:
        url = os.environ.get("STUDIO_PUBLIC_URL")
        if url:
            return url
        return "http://localhost:8000" if self.ENVIRONMENT == "development" else "https://pages.studio.app"


# Singleton instance
settings = Settings()

if settings.HISTORY_LIMIT < 1:
    raise RuntimeError("STUDIO_HISTORY_LIMIT must be at least 1")
if settings.SAVE_MAX_RETRIES < 0:
    raise RuntimeError("STUDIO_SAVE_MAX_RETRIES must not be negative")
