"""
Environment configuration.

Settings come from environment variables, optionally loaded from dotenv
files in an ``env`` directory:

    env/.env            (TEST_ENV unset)
    env/.env.<TEST_ENV> (e.g. TEST_ENV=staging -> env/.env.staging)
    env/.env.local      (private overrides, loaded last, wins)

Variables already present in the process environment are not replaced by
the first file. The directory can be moved with SETTLEWRIGHT_ENV_DIR.
"""

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

LOG_LEVELS = ("debug", "info", "warning", "error")


def load_environment(env_dir: Optional[str] = None) -> Optional[Path]:
    """
    Load the dotenv file for the current TEST_ENV plus ``.env.local``.

    Returns:
        Path of the environment file that was loaded, or None if missing.
    """
    directory = Path(env_dir or os.getenv("SETTLEWRIGHT_ENV_DIR") or Path.cwd() / "env")
    env_name = os.getenv("TEST_ENV", "")
    env_file = directory / (f".env.{env_name}" if env_name else ".env")

    loaded = None
    if env_file.exists():
        load_dotenv(env_file)
        loaded = env_file

    local_file = directory / ".env.local"
    if local_file.exists():
        load_dotenv(local_file, override=True)
    return loaded


def _int_env(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {raw!r}")


def _bool_env(key: str, default: bool = False) -> bool:
    raw = os.getenv(key)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """Runtime settings for tests and the CLI."""
    base_url: Optional[str] = None
    log_level: str = "info"
    log_dir: str = "logs"
    capture_timeout_ms: int = 30000
    debug: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        """Read settings from the (already loaded) process environment."""
        log_level = os.getenv("LOG_LEVEL", "info").strip().lower()
        if log_level == "warn":
            log_level = "warning"
        if log_level not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {log_level!r}")

        return cls(
            base_url=os.getenv("BASE_URL") or None,
            log_level=log_level,
            log_dir=os.getenv("LOG_DIR", "logs"),
            capture_timeout_ms=_int_env("CAPTURE_TIMEOUT_MS", 30000),
            debug=_bool_env("SETTLEWRIGHT_DEBUG"),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load the environment files once and return the settings."""
    load_environment()
    return Settings.from_env()
