# src/tasksync/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time.
- Every path lives under a local (gitignored) data dir by default.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKSYNC"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Behaviour ----
    collection: str
    require_verified_email: bool

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    store_db_path: Path
    session_path: Path

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "tasksync").strip() or "tasksync"
        log_level = _env(_k("LOG_LEVEL"), "WARNING")

        collection = _env(_k("COLLECTION"), "tasks").strip() or "tasks"
        require_verified_email = _env_bool(_k("REQUIRE_VERIFIED_EMAIL"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/tasksync"))
        store_db_path = _env_path(_k("STORE_DB_PATH"), data_dir / "tasksync.sqlite3")
        session_path = _env_path(_k("SESSION_PATH"), data_dir / "session.json")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            collection=collection,
            require_verified_email=require_verified_email,
            data_dir=data_dir,
            store_db_path=store_db_path,
            session_path=session_path,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
