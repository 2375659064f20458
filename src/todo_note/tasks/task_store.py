# src/todo_note/tasks/task_store.py

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import sqlite3
import uuid
from collections.abc import Callable, Iterable, Iterator
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ..core.errors import StoreError, StoreUnavailable, TaskNotFound
from .task_models import (
    TITLE_MAX_LENGTH,
    CreateTaskInput,
    LegacyTask,
    MigrationResult,
    RecurrenceTag,
    Task,
    TaskPatch,
    UiPrefs,
    WindowPrefs,
)

logger = logging.getLogger(__name__)

MIGRATION_KEY = "legacy_migration_done"
WINDOW_PREFS_KEY = "window_prefs_json"
UI_PREFS_KEY = "ui_prefs_json"

_TASK_COLUMNS = (
    "id, title, recurrence_tag, recurrence_checked_at, note, completed, "
    "due_date, created_at, updated_at, sort_order"
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_date(value: str | None) -> str | None:
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None


def _clean_title(title: str) -> str:
    trimmed = (title or "").strip()
    if not trimmed:
        raise StoreError("Title cannot be empty")
    if len(trimmed) > TITLE_MAX_LENGTH:
        raise StoreError(f"Title is longer than {TITLE_MAX_LENGTH} characters")
    return trimmed


class TaskStore:
    """
    SQLite task store.

    The schema is intentionally simple and migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Every public method opens its own short-lived connection, so the store can
    be driven from worker threads (see AsyncTaskStore).

    sqlite3 errors never leak: opening the database fails with StoreUnavailable,
    anything else with StoreError.
    """

    def __init__(
        self,
        db_path: str | Path = "todo_note.sqlite3",
        *,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._db_path = Path(db_path)
        self._clock = clock
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreUnavailable(f"Cannot create data directory for {self._db_path}: {exc}") from exc
        self._ensure_schema()
        logger.info("TaskStore ready db=%s total=%s", self._db_path, self.count_tasks())

    # ---- low-level helpers ----

    def _now_iso(self) -> str:
        return self._clock().isoformat()

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    @contextlib.contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._get_conn()
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"Cannot open task database {self._db_path}: {exc}") from exc
        try:
            yield conn
        except sqlite3.Error as exc:
            logger.warning("SQLite error db=%s: %s", self._db_path, exc)
            raise StoreError(str(exc)) from exc
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    recurrence_tag TEXT NOT NULL DEFAULT 'none',
                    recurrence_checked_at TEXT,
                    note TEXT NOT NULL DEFAULT '',
                    completed INTEGER NOT NULL DEFAULT 0,
                    due_date TEXT,
                    sort_order INTEGER NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS app_meta (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("recurrence_tag", "TEXT NOT NULL DEFAULT 'none'")
            add_col("recurrence_checked_at", "TEXT")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_sort_order ON tasks(sort_order)")
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_tasks_completed_sort ON tasks(completed, sort_order)"
            )

            conn.commit()

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=str(row["id"]),
            title=str(row["title"] or ""),
            note=str(row["note"] or ""),
            recurrence_tag=RecurrenceTag.from_db(row["recurrence_tag"]),
            recurrence_checked_at=row["recurrence_checked_at"],
            completed=bool(row["completed"]),
            due_date=row["due_date"],
            created_at=str(row["created_at"]),
            updated_at=str(row["updated_at"]),
        )

    def _fetch(self, conn: sqlite3.Connection, task_id: str) -> Task:
        row = conn.execute(
            f"SELECT {_TASK_COLUMNS} FROM tasks WHERE id = ?", (task_id,)
        ).fetchone()
        if row is None:
            raise TaskNotFound(task_id)
        return self._row_to_task(row)

    @staticmethod
    def _get_meta(conn: sqlite3.Connection, key: str) -> str | None:
        row = conn.execute("SELECT value FROM app_meta WHERE key = ?", (key,)).fetchone()
        return None if row is None else str(row["value"])

    @staticmethod
    def _set_meta(conn: sqlite3.Connection, key: str, value: str) -> None:
        conn.execute(
            """
            INSERT INTO app_meta (key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """,
            (key, value),
        )

    # ---- tasks ----

    def count_tasks(self) -> int:
        with self._connection() as conn:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)

    def list_tasks(self) -> list[Task]:
        with self._connection() as conn:
            rows = conn.execute(
                f"SELECT {_TASK_COLUMNS} FROM tasks ORDER BY sort_order ASC, created_at DESC"
            ).fetchall()
            return [self._row_to_task(r) for r in rows]

    def get_task(self, task_id: str) -> Task:
        with self._connection() as conn:
            return self._fetch(conn, task_id)

    def create_task(self, data: CreateTaskInput) -> Task:
        """Insert a new task at the top of the list."""
        title = _clean_title(data.title)
        now = self._now_iso()

        with self._connection() as conn:
            (sort_order,) = conn.execute(
                "SELECT COALESCE(MIN(sort_order), 0) - 1 FROM tasks"
            ).fetchone()

            task = Task(
                id=str(uuid.uuid4()),
                title=title,
                note=data.note or "",
                recurrence_tag=RecurrenceTag.from_db(data.recurrence_tag),
                recurrence_checked_at=None,
                completed=False,
                due_date=normalize_date(data.due_date),
                created_at=now,
                updated_at=now,
            )
            conn.execute(
                f"""
                INSERT INTO tasks ({_TASK_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    task.id,
                    task.title,
                    task.recurrence_tag.value,
                    task.recurrence_checked_at,
                    task.note,
                    int(task.completed),
                    task.due_date,
                    task.created_at,
                    task.updated_at,
                    int(sort_order),
                ),
            )
            conn.commit()

        logger.debug("Task created id=%s tag=%s due=%s", task.id, task.recurrence_tag, task.due_date)
        return task

    def update_task(self, task_id: str, patch: TaskPatch) -> Task:
        """Apply a partial update and return the full stored record."""
        with self._connection() as conn:
            task = self._fetch(conn, task_id)
            fields = patch.fields()

            if "title" in fields:
                task.title = _clean_title(fields["title"])
            if "recurrence_tag" in fields:
                task.recurrence_tag = RecurrenceTag.from_db(fields["recurrence_tag"])
            if "note" in fields:
                task.note = fields["note"] or ""
            if "completed" in fields:
                task.completed = bool(fields["completed"])
            if "due_date" in fields:
                task.due_date = normalize_date(fields["due_date"])

            task.updated_at = self._now_iso()

            conn.execute(
                """
                UPDATE tasks
                SET title = ?, recurrence_tag = ?, note = ?, completed = ?,
                    due_date = ?, updated_at = ?
                WHERE id = ?
                """,
                (
                    task.title,
                    task.recurrence_tag.value,
                    task.note,
                    int(task.completed),
                    task.due_date,
                    task.updated_at,
                    task.id,
                ),
            )
            conn.commit()

        logger.debug("Task updated id=%s fields=%s", task_id, sorted(fields))
        return task

    def toggle_completed(self, task_id: str) -> Task:
        with self._connection() as conn:
            task = self._fetch(conn, task_id)
            task.completed = not task.completed
            task.updated_at = self._now_iso()
            conn.execute(
                "UPDATE tasks SET completed = ?, updated_at = ? WHERE id = ?",
                (int(task.completed), task.updated_at, task.id),
            )
            conn.commit()
        logger.debug("Task toggled id=%s completed=%s", task_id, task.completed)
        return task

    def set_cycle_check(self, task_id: str, checked: bool) -> Task:
        """
        Mark (or unmark) the current recurrence cycle as satisfied.

        Never touches `completed`. On a non-recurring task the stamp is stored
        but has no effect.
        """
        with self._connection() as conn:
            task = self._fetch(conn, task_id)
            now = self._now_iso()
            task.recurrence_checked_at = now if checked else None
            task.updated_at = now
            conn.execute(
                "UPDATE tasks SET recurrence_checked_at = ?, updated_at = ? WHERE id = ?",
                (task.recurrence_checked_at, task.updated_at, task.id),
            )
            conn.commit()
        logger.debug("Task cycle check id=%s checked=%s", task_id, checked)
        return task

    def delete_task(self, task_id: str) -> None:
        with self._connection() as conn:
            cur = conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            conn.commit()
        logger.debug("Task deleted id=%s rows=%s", task_id, cur.rowcount)

    def reorder_tasks(self, ids: Iterable[str]) -> None:
        now = self._now_iso()
        with self._connection() as conn:
            for index, task_id in enumerate(ids):
                conn.execute(
                    "UPDATE tasks SET sort_order = ?, updated_at = ? WHERE id = ?",
                    (index, now, task_id),
                )
            conn.commit()

    def migrate_legacy(self, payload: Iterable[LegacyTask]) -> MigrationResult:
        """
        One-time import of legacy records.

        A persisted marker makes this idempotent: once it is set, every later
        call returns already_migrated=True without touching the table. Rows are
        inserted with INSERT OR IGNORE so an id collision never duplicates.
        """
        records = list(payload)

        with self._connection() as conn:
            if self._get_meta(conn, MIGRATION_KEY) == "true":
                return MigrationResult(migrated_count=0, already_migrated=True)

            (min_sort,) = conn.execute(
                "SELECT COALESCE(MIN(sort_order), 0) FROM tasks"
            ).fetchone()
            next_sort = int(min_sort) - len(records)
            migrated = 0

            for legacy in records:
                title = (legacy.title or "").strip()
                if not title:
                    continue

                task_id = legacy.id if legacy.id.strip() else str(uuid.uuid4())
                created_at = legacy.created_at if legacy.created_at.strip() else self._now_iso()
                updated_at = legacy.updated_at if legacy.updated_at.strip() else created_at
                tag = legacy.recurrence_tag or RecurrenceTag.NONE

                cur = conn.execute(
                    f"""
                    INSERT OR IGNORE INTO tasks ({_TASK_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        task_id,
                        title[:TITLE_MAX_LENGTH],
                        RecurrenceTag.from_db(tag).value,
                        legacy.recurrence_checked_at,
                        legacy.note or "",
                        int(bool(legacy.completed)),
                        normalize_date(legacy.due_date),
                        created_at,
                        updated_at,
                        next_sort,
                    ),
                )
                if cur.rowcount > 0:
                    migrated += 1
                    next_sort += 1

            self._set_meta(conn, MIGRATION_KEY, "true")
            conn.commit()

        logger.info("Legacy migration done migrated=%s payload=%s", migrated, len(records))
        return MigrationResult(migrated_count=migrated, already_migrated=False)

    # ---- preferences ----

    def _load_prefs(self, key: str) -> dict[str, Any] | None:
        with self._connection() as conn:
            raw = self._get_meta(conn, key)
        if raw is None:
            return None
        try:
            val = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StoreError(f"Stored preferences {key} are not valid JSON") from exc
        if not isinstance(val, dict):
            raise StoreError(f"Stored preferences {key} are not an object")
        return val

    def _save_prefs(self, key: str, value: dict[str, Any]) -> None:
        with self._connection() as conn:
            self._set_meta(conn, key, json.dumps(value, ensure_ascii=False))
            conn.commit()

    def get_window_prefs(self) -> WindowPrefs:
        raw = self._load_prefs(WINDOW_PREFS_KEY)
        if raw is None:
            return WindowPrefs()
        try:
            return WindowPrefs.from_json(raw)
        except (KeyError, TypeError, ValueError) as exc:
            raise StoreError(f"Stored window preferences are invalid: {exc}") from exc

    def save_window_prefs(self, prefs: WindowPrefs) -> WindowPrefs:
        self._save_prefs(WINDOW_PREFS_KEY, prefs.to_json())
        return prefs

    def get_ui_prefs(self) -> UiPrefs:
        raw = self._load_prefs(UI_PREFS_KEY)
        if raw is None:
            return UiPrefs()
        try:
            return UiPrefs.from_json(raw)
        except (KeyError, TypeError, ValueError) as exc:
            raise StoreError(f"Stored UI preferences are invalid: {exc}") from exc

    def save_ui_prefs(self, prefs: UiPrefs) -> UiPrefs:
        self._save_prefs(UI_PREFS_KEY, prefs.to_json())
        return prefs


class AsyncTaskStore:
    """
    Async command port over TaskStore.

    Each command runs in a worker thread so the event loop (timers, console
    input) keeps running while SQLite works.
    """

    def __init__(self, store: TaskStore) -> None:
        self._store = store

    async def list_tasks(self) -> list[Task]:
        return await asyncio.to_thread(self._store.list_tasks)

    async def create_task(self, data: CreateTaskInput) -> Task:
        return await asyncio.to_thread(self._store.create_task, data)

    async def update_task(self, task_id: str, patch: TaskPatch) -> Task:
        return await asyncio.to_thread(self._store.update_task, task_id, patch)

    async def toggle_completed(self, task_id: str) -> Task:
        return await asyncio.to_thread(self._store.toggle_completed, task_id)

    async def set_cycle_check(self, task_id: str, checked: bool) -> Task:
        return await asyncio.to_thread(self._store.set_cycle_check, task_id, checked)

    async def delete_task(self, task_id: str) -> None:
        await asyncio.to_thread(self._store.delete_task, task_id)

    async def reorder_tasks(self, ids: list[str]) -> None:
        await asyncio.to_thread(self._store.reorder_tasks, list(ids))

    async def migrate_legacy(self, payload: list[LegacyTask]) -> MigrationResult:
        return await asyncio.to_thread(self._store.migrate_legacy, list(payload))

    async def get_window_prefs(self) -> WindowPrefs:
        return await asyncio.to_thread(self._store.get_window_prefs)

    async def save_window_prefs(self, prefs: WindowPrefs) -> WindowPrefs:
        return await asyncio.to_thread(self._store.save_window_prefs, prefs)

    async def get_ui_prefs(self) -> UiPrefs:
        return await asyncio.to_thread(self._store.get_ui_prefs)

    async def save_ui_prefs(self, prefs: UiPrefs) -> UiPrefs:
        return await asyncio.to_thread(self._store.save_ui_prefs, prefs)
