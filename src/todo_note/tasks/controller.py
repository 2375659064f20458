# src/todo_note/tasks/controller.py

"""
Reconciliation controller.

Owns the in-memory task list, the selection and the visible error message.
Every mutation is applied optimistically, dispatched to the store, and then
reconciled:
- success: the store's record replaces the local one verbatim;
- failure: one visible error message + a full corrective refresh.

Responses are matched to a per-task request sequence. A response is applied
only if it answers the latest request issued for that task, so an older reply
can never overwrite a newer optimistic state.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable, Coroutine
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

from ..core.errors import StaleState, StoreError, ValidationError
from ..core.ports import ErrorSink, TaskRepo
from .debounce import EditDebouncer
from .migration import MigrationCoordinator
from .recurrence import DoneAction, is_cycle_satisfied, resolve_done_action
from .soft_delete import DEFAULT_GRACE_SECONDS, SoftDeleteManager
from .task_models import (
    TITLE_MAX_LENGTH,
    CreateTaskInput,
    DeletedSnapshot,
    EditDraft,
    RecurrenceTag,
    Task,
    TaskFilter,
    TaskPatch,
)
from .task_store import normalize_date
from .views import filter_tasks

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.22
PROVISIONAL_PREFIX = "local:"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def is_provisional(task_id: str) -> bool:
    return task_id.startswith(PROVISIONAL_PREFIX)


class TaskController:
    def __init__(
        self,
        store: TaskRepo,
        *,
        migration: MigrationCoordinator | None = None,
        grace_seconds: float = DEFAULT_GRACE_SECONDS,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        title_max_length: int = TITLE_MAX_LENGTH,
        clock: Callable[[], datetime] = _utc_now,
        on_error: ErrorSink | None = None,
    ) -> None:
        self._store = store
        self._migration = migration
        self._clock = clock
        self._on_error = on_error
        self._title_max = int(title_max_length)

        self.tasks: list[Task] = []
        self.selected_id: str | None = None
        self.error_message: str | None = None

        self._seq: dict[str, int] = {}
        self._background: set[asyncio.Task[Any]] = set()

        self.soft_delete = SoftDeleteManager(self, store, grace_seconds=grace_seconds)
        self._debouncer = EditDebouncer(debounce_seconds, self._on_edit_settled)

    # ---- view helpers ----

    @property
    def selected(self) -> Task | None:
        if self.selected_id is None:
            return None
        return self.get(self.selected_id)

    def get(self, task_id: str) -> Task | None:
        idx = self.index_of(task_id)
        return None if idx is None else self.tasks[idx]

    def index_of(self, task_id: str) -> int | None:
        for i, task in enumerate(self.tasks):
            if task.id == task_id:
                return i
        return None

    def visible(self, task_filter: TaskFilter = TaskFilter.ALL, search: str = "") -> list[Task]:
        return filter_tasks(self.tasks, task_filter, search)

    def _now_iso(self) -> str:
        return self._clock().isoformat()

    # ---- errors / background work ----

    def _report(self, exc: Exception) -> None:
        message = str(exc) or exc.__class__.__name__
        self.error_message = message
        logger.warning("User-visible error: %s", message)
        if self._on_error is not None:
            self._on_error(message)

    def clear_error(self) -> None:
        self.error_message = None

    async def recover(self, exc: StoreError) -> None:
        """Surface one error and re-converge to the store's state."""
        self._report(exc)
        await self._refresh(None, surface_errors=False)

    async def _resync(self, stale: StaleState) -> None:
        logger.info("Resync: %s", stale)
        await self._refresh(None, surface_errors=False)

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._on_background_done)
        return task

    def _on_background_done(self, task: asyncio.Task[Any]) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background task failed", exc_info=exc)

    async def drain(self) -> None:
        """Wait for timer-spawned work (finalizes, settled edits) to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ---- sequencing ----

    def _next_seq(self, task_id: str) -> int:
        seq = self._seq.get(task_id, 0) + 1
        self._seq[task_id] = seq
        return seq

    def _is_latest(self, task_id: str, seq: int) -> bool:
        return self._seq.get(task_id, 0) == seq

    # ---- validation ----

    def _validate_title(self, title: str) -> str:
        trimmed = (title or "").strip()
        if not trimmed:
            raise ValidationError("Title cannot be empty")
        if len(trimmed) > self._title_max:
            raise ValidationError(f"Title is longer than {self._title_max} characters")
        return trimmed

    @staticmethod
    def _validate_tag(tag: RecurrenceTag | str) -> RecurrenceTag:
        try:
            return RecurrenceTag(tag)
        except ValueError:
            raise ValidationError(f"Unknown recurrence: {tag}") from None

    # ---- lifecycle ----

    async def start(self) -> None:
        """Run the legacy migration (once) and load the first list."""
        if self._migration is not None:
            try:
                await self._migration.run_once()
            except StoreError as exc:
                logger.warning("Legacy migration failed, legacy source kept: %s", exc)
                self._report(exc)
        await self.refresh()

    async def aclose(self) -> None:
        """
        Shutdown: unsettled edits are dropped, a pending delete is finalized.
        """
        self._debouncer.cancel_all()
        await self.soft_delete.finalize_now()
        await self.drain()

    # ---- refresh ----

    async def refresh(self, preferred_id: str | None = None) -> bool:
        return await self._refresh(preferred_id, surface_errors=True)

    async def _refresh(self, preferred_id: str | None, *, surface_errors: bool) -> bool:
        issued = dict(self._seq)
        try:
            fresh = await self._store.list_tasks()
        except StoreError as exc:
            if surface_errors:
                self._report(exc)
            else:
                logger.warning("Resync failed: %s", exc)
            return False

        hidden = self.soft_delete.hidden_ids()
        current = {t.id: t for t in self.tasks}

        merged = [t for t in self.tasks if is_provisional(t.id)]
        for task in fresh:
            if task.id in hidden:
                continue
            # A mutation issued after the list request keeps its local state.
            if task.id in current and self._seq.get(task.id, 0) != issued.get(task.id, 0):
                merged.append(current[task.id])
            else:
                merged.append(task)

        self.tasks = merged

        candidate = preferred_id or self.selected_id
        if candidate is not None and self.index_of(candidate) is not None:
            self.selected_id = candidate
        else:
            self.selected_id = merged[0].id if merged else None

        logger.debug("Refreshed tasks=%d selected=%s", len(merged), self.selected_id)
        return True

    # ---- mutations ----

    async def create(
        self,
        title: str,
        *,
        recurrence_tag: RecurrenceTag | str = RecurrenceTag.NONE,
        note: str = "",
        due_date: str | None = None,
    ) -> Task | None:
        clean_title = self._validate_title(title)
        tag = self._validate_tag(recurrence_tag)
        now = self._now_iso()

        provisional = Task(
            id=f"{PROVISIONAL_PREFIX}{uuid.uuid4().hex}",
            title=clean_title,
            note=note or "",
            recurrence_tag=tag,
            recurrence_checked_at=None,
            completed=False,
            due_date=normalize_date(due_date),
            created_at=now,
            updated_at=now,
        )
        self.tasks.insert(0, provisional)
        self.selected_id = provisional.id

        try:
            created = await self._store.create_task(
                CreateTaskInput(
                    title=clean_title,
                    recurrence_tag=tag,
                    note=provisional.note,
                    due_date=provisional.due_date,
                )
            )
        except StoreError as exc:
            idx = self.index_of(provisional.id)
            if idx is not None:
                del self.tasks[idx]
            if self.selected_id == provisional.id:
                self.selected_id = None
            logger.warning("Create failed: %s", exc)
            await self.recover(exc)
            return None

        # A refresh that landed mid-create may already hold the stored row.
        if self.index_of(provisional.id) is not None:
            self.tasks = [t for t in self.tasks if t.id != created.id]

        idx = self.index_of(provisional.id)
        if idx is not None:
            self.tasks[idx] = created
        elif self.index_of(created.id) is None:
            self.tasks.insert(0, created)

        if self.selected_id == provisional.id:
            self.selected_id = created.id

        self.clear_error()
        logger.info("Task created id=%s", created.id)
        return created

    async def _mutate(
        self,
        task_id: str,
        action: str,
        changes: dict[str, Any],
        command: Callable[[], Awaitable[Task]],
    ) -> Task | None:
        idx = self.index_of(task_id)
        if idx is None:
            if task_id not in self.soft_delete.hidden_ids():
                await self._resync(StaleState(f"{action} for task not in view: {task_id}"))
            return None
        if is_provisional(task_id):
            logger.debug("%s ignored, create still in flight id=%s", action, task_id)
            return None

        self.tasks[idx] = replace(self.tasks[idx], **changes, updated_at=self._now_iso())
        seq = self._next_seq(task_id)

        try:
            saved = await command()
        except StoreError as exc:
            logger.warning("%s failed id=%s seq=%s: %s", action, task_id, seq, exc)
            await self.recover(exc)
            return None

        if not self._is_latest(task_id, seq):
            logger.debug(
                "Dropped stale %s response id=%s seq=%s latest=%s",
                action,
                task_id,
                seq,
                self._seq.get(task_id),
            )
            return saved

        idx = self.index_of(task_id)
        if idx is None:
            logger.debug("%s response for task no longer in view id=%s", action, task_id)
            return saved

        self.tasks[idx] = saved
        self.clear_error()
        return saved

    async def patch(self, task_id: str, **fields: Any) -> Task | None:
        """Partial update: title, note, recurrence_tag, completed, due_date."""
        patch = TaskPatch(**fields)
        changes = patch.fields()
        if not changes:
            return self.get(task_id)

        if "title" in changes:
            changes["title"] = self._validate_title(changes["title"])
        if "recurrence_tag" in changes:
            changes["recurrence_tag"] = self._validate_tag(changes["recurrence_tag"])
        if "due_date" in changes:
            changes["due_date"] = normalize_date(changes["due_date"])
        if "note" in changes:
            changes["note"] = changes["note"] or ""

        store_patch = TaskPatch(**changes)
        return await self._mutate(
            task_id,
            "patch",
            changes,
            lambda: self._store.update_task(task_id, store_patch),
        )

    async def toggle_completed(self, task_id: str) -> Task | None:
        current = self.get(task_id)
        changes = {} if current is None else {"completed": not current.completed}
        return await self._mutate(
            task_id,
            "toggle_completed",
            changes,
            lambda: self._store.toggle_completed(task_id),
        )

    async def set_cycle_check(self, task_id: str, checked: bool) -> Task | None:
        changes = {"recurrence_checked_at": self._now_iso() if checked else None}
        return await self._mutate(
            task_id,
            "set_cycle_check",
            changes,
            lambda: self._store.set_cycle_check(task_id, checked),
        )

    async def mark_done(self, task_id: str) -> Task | None:
        """The "done" interaction: full completion or a cycle check, see resolve_done_action()."""
        task = self.get(task_id)
        if task is None:
            return await self.toggle_completed(task_id)

        satisfied = is_cycle_satisfied(task, self._clock())
        action = resolve_done_action(task.recurrence_tag, task.completed, satisfied)
        if action == DoneAction.TOGGLE_COMPLETED:
            return await self.toggle_completed(task_id)
        return await self.set_cycle_check(task_id, not satisfied)

    async def reorder(self, ids: list[str]) -> bool:
        position = {task_id: i for i, task_id in enumerate(ids)}
        tail = len(position)
        self.tasks.sort(key=lambda t: position.get(t.id, tail))

        try:
            await self._store.reorder_tasks([t.id for t in self.tasks if not is_provisional(t.id)])
        except StoreError as exc:
            logger.warning("Reorder failed: %s", exc)
            await self.recover(exc)
            return False

        self.clear_error()
        return True

    # ---- soft delete ----

    def delete(self, task_id: str) -> DeletedSnapshot | None:
        if is_provisional(task_id):
            logger.debug("Delete ignored, create still in flight id=%s", task_id)
            return None
        self._debouncer.cancel(task_id)
        return self.soft_delete.request(task_id)

    def undo(self) -> Task | None:
        return self.soft_delete.undo()

    def detach(self, task_id: str) -> tuple[Task, int] | None:
        idx = self.index_of(task_id)
        if idx is None:
            return None
        task = self.tasks.pop(idx)
        if self.selected_id == task_id:
            self.selected_id = None
        return task, idx

    def reattach(self, task: Task, index: int) -> None:
        self.tasks.insert(min(index, len(self.tasks)), task)
        self.selected_id = task.id

    # ---- selection + debounced text edits ----

    def select(self, task_id: str | None) -> bool:
        """
        Change the selection.

        An unsettled edit of the previous selection is dropped, not flushed;
        call flush_edits() first to keep it.
        """
        if task_id is not None and self.index_of(task_id) is None:
            return False
        previous = self.selected_id
        if previous is not None and previous != task_id:
            self._debouncer.cancel(previous)
        self.selected_id = task_id
        return True

    def edit_title(self, text: str) -> bool:
        if self.selected_id is None:
            return False
        self._debouncer.touch(self.selected_id, title=text)
        return True

    def edit_note(self, text: str) -> bool:
        if self.selected_id is None:
            return False
        self._debouncer.touch(self.selected_id, note=text)
        return True

    def pending_edit(self, task_id: str) -> EditDraft | None:
        return self._debouncer.pending(task_id)

    async def flush_edits(self) -> None:
        self._debouncer.flush_all()
        await self.drain()

    def _on_edit_settled(self, task_id: str, draft: EditDraft) -> None:
        self.spawn(self._commit_draft(task_id, draft))

    async def _commit_draft(self, task_id: str, draft: EditDraft) -> None:
        task = self.get(task_id)
        if task is None:
            return

        fields: dict[str, Any] = {}
        if draft.title is not None:
            title = draft.title.strip()
            if title and title != task.title:
                fields["title"] = title
        if draft.note is not None and draft.note.strip() != task.note.strip():
            fields["note"] = draft.note

        if not fields:
            return

        try:
            await self.patch(task_id, **fields)
        except ValidationError as exc:
            self._report(exc)
