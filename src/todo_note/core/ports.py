# src/todo_note/core/ports.py

"""
Ports (interfaces) used by the core.

The controller depends on Protocols instead of concrete implementations.
This keeps the SQLite store and the legacy source swappable and makes testing
easier (see tests/fakes.py).
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

from ..tasks.task_models import (
    CreateTaskInput,
    LegacyTask,
    MigrationResult,
    Task,
    TaskPatch,
    UiPrefs,
    WindowPrefs,
)

ErrorSink = Callable[[str], None]
# Receives the single user-visible error message (replaces any previous one).


class TaskRepo(Protocol):
    """
    Durable store command interface.

    Every command either returns the authoritative result or raises StoreError
    (StoreUnavailable when the store cannot be reached at all).
    """

    async def list_tasks(self) -> list[Task]: ...
    async def create_task(self, data: CreateTaskInput) -> Task: ...
    async def update_task(self, task_id: str, patch: TaskPatch) -> Task: ...
    async def toggle_completed(self, task_id: str) -> Task: ...
    async def set_cycle_check(self, task_id: str, checked: bool) -> Task: ...
    async def delete_task(self, task_id: str) -> None: ...
    async def reorder_tasks(self, ids: list[str]) -> None: ...
    async def migrate_legacy(self, payload: list[LegacyTask]) -> MigrationResult: ...

    async def get_window_prefs(self) -> WindowPrefs: ...
    async def save_window_prefs(self, prefs: WindowPrefs) -> WindowPrefs: ...
    async def get_ui_prefs(self) -> UiPrefs: ...
    async def save_ui_prefs(self, prefs: UiPrefs) -> UiPrefs: ...


class LegacySource(Protocol):
    """Deprecated local snapshot (read-only apart from clearing it)."""

    def load_snapshot(self) -> list[LegacyTask]: ...
    def clear(self) -> None: ...
