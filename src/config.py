"""Utility helpers for loading project configuration.

This module is the single source of truth for environment-driven
configuration such as the explorer API endpoint, refresh cadence and
database connection details.

Usage:
- Call ``load_env_file()`` once at startup to load ``resources/.env``.
- Use ``get_env`` for simple lookups.
- Use the convenience helpers like ``get_token_sync_config`` and
  ``get_database_url`` for normalized access.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_NETWORK = "mantle"
DEFAULT_EXPLORER_BASE_URL = "https://explorer.mantle.xyz"


def load_env_file(env_path: Optional[Path] = None) -> None:
    """
    Load environment variables from an .env file when present.

    Parameters:
        env_path: Optional path to the .env file. Defaults to resources/.env.
    """
    env_file = env_path or "resources/.env"
    if Path(env_file).exists():
        load_dotenv(env_file)


def get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    """Fetch an environment variable with an optional default."""
    return os.getenv(name, default)


def _get_int(name: str, default: int) -> int:
    raw = get_env(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _get_float(name: str, default: float) -> float:
    raw = get_env(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


def _get_bool(name: str, default: bool) -> bool:
    raw = get_env(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# ----- Application helpers -----

def get_app_env() -> str:
    """Return the runtime environment name (``development`` or ``production``)."""
    return (get_env("APP_ENV") or "production").strip().lower()


def is_development() -> bool:
    return get_app_env() == "development"


@dataclass(frozen=True)
class TokenSyncConfig:
    """Settings for the explorer token sync pipeline.

    Keys (environment):
    - EXPLORER_BASE_URL
    - TOKENS_NETWORK
    - EXPLORER_TIMEOUT_SECONDS
    - TOKENS_MAX_PAGES
    - TOKENS_TOP_N
    - TOKENS_REFRESH_INTERVAL_SECONDS
    - CACHE_MISS_TIMEOUT_SECONDS
    - TOKENS_PRUNE_STALE ("1" deletes rows that fell out of the top window)
    - REFRESH_ENABLED / REFRESH_ON_STARTUP
    """

    explorer_base_url: str = DEFAULT_EXPLORER_BASE_URL
    network: str = DEFAULT_NETWORK
    request_timeout: float = 10.0
    max_pages: int = 3
    top_n: int = 100
    refresh_interval_seconds: float = 20 * 60
    cache_miss_timeout: float = 30.0
    prune_stale: bool = False
    refresh_enabled: bool = True
    refresh_on_startup: bool = True


def get_token_sync_config() -> TokenSyncConfig:
    """Return the token sync settings gathered from the environment."""
    return TokenSyncConfig(
        explorer_base_url=(get_env("EXPLORER_BASE_URL") or DEFAULT_EXPLORER_BASE_URL).rstrip("/"),
        network=(get_env("TOKENS_NETWORK") or DEFAULT_NETWORK).strip().lower(),
        request_timeout=_get_float("EXPLORER_TIMEOUT_SECONDS", 10.0),
        max_pages=_get_int("TOKENS_MAX_PAGES", 3),
        top_n=_get_int("TOKENS_TOP_N", 100),
        refresh_interval_seconds=_get_float("TOKENS_REFRESH_INTERVAL_SECONDS", 20 * 60),
        cache_miss_timeout=_get_float("CACHE_MISS_TIMEOUT_SECONDS", 30.0),
        prune_stale=_get_bool("TOKENS_PRUNE_STALE", False),
        refresh_enabled=_get_bool("REFRESH_ENABLED", True),
        refresh_on_startup=_get_bool("REFRESH_ON_STARTUP", True),
    )


# ----- Logging helpers -----

def get_log_level() -> str:
    default = "DEBUG" if is_development() else "INFO"
    return (get_env("LOG_LEVEL") or default).upper()


def get_log_dir() -> Optional[str]:
    return get_env("LOG_DIR") or None


# ----- Database helpers -----

def get_database_url() -> Optional[str]:
    """Return a database URL for PostgreSQL.

    Prefers ``DATABASE_URL`` if present; otherwise constructs a DSN from:
    - DB_HOST, DB_PORT, DB_NAME, DB_USER, DB_PASSWORD
    """
    db_url = get_env("DATABASE_URL")
    if db_url:
        return db_url

    host = get_env("DB_HOST")
    port = get_env("DB_PORT") or "5432"
    name = get_env("DB_NAME")
    user = get_env("DB_USER")
    password = get_env("DB_PASSWORD")

    if not (host and name and user and password):
        return None

    return f"postgresql+psycopg2://{user}:{password}@{host}:{port}/{name}"


def get_port() -> int:
    return _get_int("PORT", 3000)
