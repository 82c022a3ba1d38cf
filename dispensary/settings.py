"""
dispensary.settings
===================

Configuration settings for the Dispensary application.

This module provides centralized configuration options that can be used
across the library and the HTTP layer.  It includes default values that
can be overridden via environment variables or a ``.env`` file.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings

# ---------------------------------------------------------------------------
# Base directories
# ---------------------------------------------------------------------------
# Base directory of the project
BASE_DIR = Path(__file__).resolve().parent.parent

# Database settings
# ---------------------------------------------------------------------------
DB_FILE = os.environ.get("DISPENSARY_DB_FILE", BASE_DIR / "dispensary.db")
DB_URL = os.environ.get("DISPENSARY_DB_URL", f"sqlite:///{DB_FILE}")
DB_ECHO = os.environ.get("DISPENSARY_DB_ECHO", "False").lower() == "true"

# API settings
# ---------------------------------------------------------------------------
API_HOST = os.environ.get("DISPENSARY_API_HOST", "127.0.0.1")
API_PORT = int(os.environ.get("DISPENSARY_API_PORT", "8000"))
API_DEBUG = os.environ.get("DISPENSARY_API_DEBUG", "False").lower() == "true"


# ---------------------------------------------------------------------------
# Pydantic settings model
# ---------------------------------------------------------------------------
class Settings(BaseSettings):
    """Pydantic model for application settings, loaded from environment variables."""

    log_level: str = Field("INFO", description="Root log level for the API process")
    store_backend: str = Field("sql", description="Record store used by the API: 'sql' or 'memory'")
    default_pharmacy_id: str | None = Field(
        None, description="Tenant stamped on new rows when the caller supplies none"
    )
    delivery_log_limit: int = Field(20, ge=1, description="Rows returned by the recent deliveries list")
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://127.0.0.1:5173"],
        description="Origins allowed to call the API from a browser",
    )

    class Config:
        """Configuration for the settings model."""
        env_prefix = "DISPENSARY_"
        env_file = ".env"  # load from .env file if present
        case_sensitive = False  # case-insensitive environment variables


# Initialize settings
settings = Settings()
