# src/todo_note/tasks/migration.py

"""
One-shot import of the deprecated JSON snapshot into the SQLite store.

The store decides whether the import already happened (persisted marker), so
running this on every startup is safe. The legacy file is only removed once the
store confirms the data is in: migrated_count > 0 or already_migrated.
"""

from __future__ import annotations

import contextlib
import json
import logging
from dataclasses import replace
from pathlib import Path

from ..core.ports import LegacySource, TaskRepo
from .task_models import LegacyTask, MigrationResult, RecurrenceTag

logger = logging.getLogger(__name__)

LEGACY_TODOS_FILE = "simple_todo_note.todos.v1.json"
LEGACY_SELECTED_FILE = "simple_todo_note.selected.v1.json"


class LegacyJsonSource:
    """
    Legacy snapshot stored as a JSON array of camelCase task objects.

    Reading is forgiving: a missing file, invalid JSON or a non-array payload
    all mean "nothing to migrate"; entries that do not look like tasks are
    dropped.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _selected_path(self) -> Path:
        return self._path.with_name(LEGACY_SELECTED_FILE)

    def load_snapshot(self) -> list[LegacyTask]:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text("utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError):
            logger.warning("Legacy snapshot unreadable, ignoring: %s", self._path, exc_info=True)
            return []
        if not isinstance(data, list):
            return []

        out: list[LegacyTask] = []
        for item in data:
            task = LegacyTask.from_json(item)
            if task is not None:
                out.append(task)

        logger.info("Loaded legacy snapshot: %d of %d records from %s", len(out), len(data), self._path)
        return out

    def clear(self) -> None:
        for path in (self._path, self._selected_path()):
            with contextlib.suppress(FileNotFoundError):
                path.unlink()
        logger.info("Legacy snapshot cleared: %s", self._path)


def normalize_legacy(record: LegacyTask) -> LegacyTask:
    """Fill recurrence fields that predate recurrence support."""
    return replace(
        record,
        recurrence_tag=record.recurrence_tag or RecurrenceTag.NONE,
        recurrence_checked_at=record.recurrence_checked_at or None,
    )


def should_clear_legacy(result: MigrationResult) -> bool:
    return result.migrated_count > 0 or result.already_migrated


class MigrationCoordinator:
    """Runs the legacy import at most once per process, before the first list read."""

    def __init__(self, store: TaskRepo, source: LegacySource) -> None:
        self._store = store
        self._source = source
        self._result: MigrationResult | None = None

    @property
    def result(self) -> MigrationResult | None:
        return self._result

    async def migrate(self, records: list[LegacyTask]) -> MigrationResult:
        payload = [normalize_legacy(r) for r in records]
        return await self._store.migrate_legacy(payload)

    async def run_once(self) -> MigrationResult:
        """
        Load, migrate and (when safe) clear the legacy source.

        Store errors propagate and leave the legacy source untouched. After a
        successful run, later calls return the cached result.
        """
        if self._result is not None:
            return self._result

        records = self._source.load_snapshot()
        result = await self.migrate(records)
        self._result = result

        logger.info(
            "Legacy migration result migrated=%s already=%s payload=%s",
            result.migrated_count,
            result.already_migrated,
            len(records),
        )

        if should_clear_legacy(result):
            self._source.clear()
        return result
