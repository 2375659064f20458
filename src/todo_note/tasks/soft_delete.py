# src/todo_note/tasks/soft_delete.py

"""
Timed soft-delete with undo.

States:
    Active -> PendingDelete -> Deleted
    PendingDelete -> Active (undo)

Only one snapshot exists at a time. A new delete finalizes the pending one
right away (its grace window is skipped) before taking its own snapshot.
Finalize sends the irreversible delete exactly once; the snapshot is gone
before the store call starts, so undo during or after finalize is a no-op.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from ..core.errors import StoreError
from ..core.ports import TaskRepo
from .task_models import DeletedSnapshot, Task

if TYPE_CHECKING:
    from .controller import TaskController

logger = logging.getLogger(__name__)

DEFAULT_GRACE_SECONDS = 5.0


class SoftDeleteManager:
    def __init__(
        self,
        controller: TaskController,
        store: TaskRepo,
        *,
        grace_seconds: float = DEFAULT_GRACE_SECONDS,
    ) -> None:
        self._controller = controller
        self._store = store
        self._grace = max(0.0, float(grace_seconds))
        self._snapshot: DeletedSnapshot | None = None
        self._timer: asyncio.TimerHandle | None = None
        # ids whose delete command is in flight; kept out of refreshed views
        self._finalizing: set[str] = set()

    @property
    def snapshot(self) -> DeletedSnapshot | None:
        return self._snapshot

    @property
    def grace_seconds(self) -> float:
        return self._grace

    def hidden_ids(self) -> set[str]:
        hidden = set(self._finalizing)
        if self._snapshot is not None:
            hidden.add(self._snapshot.task.id)
        return hidden

    def request(self, task_id: str) -> DeletedSnapshot | None:
        """
        Move a task to PendingDelete.

        Returns the new snapshot, or None when the task is not in the view.
        """
        previous = self._take_snapshot()
        if previous is not None:
            logger.info("Delete superseded, finalizing id=%s now", previous.task.id)
            self._controller.spawn(self._finalize(previous))

        detached = self._controller.detach(task_id)
        if detached is None:
            logger.debug("Delete ignored, task not in view id=%s", task_id)
            return None

        task, index = detached
        snapshot = DeletedSnapshot(task=task, original_index=index)
        self._snapshot = snapshot

        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._grace, self._on_grace_expired, snapshot)
        logger.info("Task pending delete id=%s index=%s grace=%.1fs", task.id, index, self._grace)
        return snapshot

    def undo(self) -> Task | None:
        """Restore the pending task. No-op (None) once finalize has happened."""
        snapshot = self._take_snapshot()
        if snapshot is None:
            return None
        self._controller.reattach(snapshot.task, snapshot.original_index)
        logger.info("Delete undone id=%s", snapshot.task.id)
        return snapshot.task

    async def finalize_now(self) -> bool:
        """Skip the grace window of the pending snapshot, if any."""
        snapshot = self._take_snapshot()
        if snapshot is None:
            return False
        await self._finalize(snapshot)
        return True

    def _take_snapshot(self) -> DeletedSnapshot | None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        snapshot = self._snapshot
        self._snapshot = None
        return snapshot

    def _on_grace_expired(self, snapshot: DeletedSnapshot) -> None:
        if self._snapshot is not snapshot:
            return
        self._timer = None
        self._snapshot = None
        self._controller.spawn(self._finalize(snapshot))

    async def _finalize(self, snapshot: DeletedSnapshot) -> None:
        task_id = snapshot.task.id
        self._finalizing.add(task_id)
        try:
            await self._store.delete_task(task_id)
        except StoreError as exc:
            self._finalizing.discard(task_id)
            logger.warning("Delete finalize failed id=%s: %s", task_id, exc)
            await self._controller.recover(exc)
            return
        self._finalizing.discard(task_id)
        self._controller.clear_error()
        logger.info("Task deleted id=%s", task_id)
