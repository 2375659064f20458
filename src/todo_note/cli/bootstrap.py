# src/todo_note/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the SQLite store, the legacy source and the controller into AppState.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.ports import ErrorSink
from ..core.state import AppState
from ..tasks.controller import TaskController
from ..tasks.migration import LegacyJsonSource, MigrationCoordinator
from ..tasks.task_store import AsyncTaskStore, TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None, on_error: ErrorSink | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = AsyncTaskStore(TaskStore(settings.db_path))
    migration = MigrationCoordinator(store, LegacyJsonSource(settings.legacy_path))

    controller = TaskController(
        store,
        migration=migration,
        grace_seconds=float(getattr(settings, "undo_grace_seconds", 5.0)),
        debounce_seconds=int(getattr(settings, "edit_debounce_ms", 220)) / 1000.0,
        title_max_length=int(getattr(settings, "title_max_length", 160)),
        on_error=on_error,
    )

    logger.debug("State wired db=%s legacy=%s", settings.db_path, settings.legacy_path)
    return AppState(settings=settings, store=store, controller=controller)
