# src/todo_note/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- Every value has a local default; nothing is required to start.
- Optional config_local.py overrides for a few switches.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .tasks.migration import LEGACY_TODOS_FILE

ENV_PREFIX = "TODO_NOTE"


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


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


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

    # ---- Connector flags ----
    console_enabled: bool

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path
    legacy_path: Path

    # ---- Reconciliation tuning ----
    undo_grace_seconds: float
    edit_debounce_ms: int
    title_max_length: int

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "Simple Todo Note") or "Simple Todo Note"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/todo_note"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "simple_todo_note.db")
        legacy_path = _env_path(_k("LEGACY_PATH"), data_dir / LEGACY_TODOS_FILE)

        undo_grace_seconds = max(0.0, _env_float(_k("UNDO_GRACE_SECONDS"), 5.0))
        edit_debounce_ms = max(0, _env_int(_k("EDIT_DEBOUNCE_MS"), 220))
        title_max_length = max(1, _env_int(_k("TITLE_MAX_LENGTH"), 160))

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            data_dir=data_dir,
            db_path=db_path,
            legacy_path=legacy_path,
            undo_grace_seconds=undo_grace_seconds,
            edit_debounce_ms=edit_debounce_ms,
            title_max_length=title_max_length,
        )


SETTINGS = Settings.from_env()

# ---- Optional local overrides (never committed) ----
# Prefer .env; use config_local.py only for simple switches.
try:
    import config_local as _config_local  # type: ignore

    if hasattr(_config_local, "CONSOLE_ENABLED"):
        object.__setattr__(SETTINGS, "console_enabled", bool(_config_local.CONSOLE_ENABLED))  # type: ignore[misc]
    if hasattr(_config_local, "UNDO_GRACE_SECONDS"):
        object.__setattr__(SETTINGS, "undo_grace_seconds", float(_config_local.UNDO_GRACE_SECONDS))  # type: ignore[misc]
except ImportError:
    pass


def get_settings() -> Settings:
    return SETTINGS
