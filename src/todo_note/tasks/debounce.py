# src/todo_note/tasks/debounce.py

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from .task_models import EditDraft

logger = logging.getLogger(__name__)

SettleCallback = Callable[[str, EditDraft], None]


class EditDebouncer:
    """
    Settle timers for text edits, one per task id.

    Every touch() restarts the timer for that task. When it fires undisturbed,
    the accumulated draft is handed to `on_settle`. cancel() drops a draft
    without calling back; flush() fires it right away.
    """

    def __init__(self, delay_seconds: float, on_settle: SettleCallback) -> None:
        self._delay = max(0.0, float(delay_seconds))
        self._on_settle = on_settle
        self._drafts: dict[str, EditDraft] = {}
        self._timers: dict[str, asyncio.TimerHandle] = {}

    def pending(self, task_id: str) -> EditDraft | None:
        return self._drafts.get(task_id)

    def touch(self, task_id: str, *, title: str | None = None, note: str | None = None) -> None:
        draft = self._drafts.setdefault(task_id, EditDraft())
        if title is not None:
            draft.title = title
        if note is not None:
            draft.note = note

        timer = self._timers.pop(task_id, None)
        if timer is not None:
            timer.cancel()

        loop = asyncio.get_running_loop()
        self._timers[task_id] = loop.call_later(self._delay, self._fire, task_id)

    def _fire(self, task_id: str) -> None:
        self._timers.pop(task_id, None)
        draft = self._drafts.pop(task_id, None)
        if draft is None:
            return
        self._on_settle(task_id, draft)

    def cancel(self, task_id: str) -> EditDraft | None:
        timer = self._timers.pop(task_id, None)
        if timer is not None:
            timer.cancel()
        draft = self._drafts.pop(task_id, None)
        if draft is not None:
            logger.debug("Dropped unsettled edit task_id=%s", task_id)
        return draft

    def flush(self, task_id: str) -> None:
        timer = self._timers.pop(task_id, None)
        if timer is not None:
            timer.cancel()
        self._fire(task_id)

    def flush_all(self) -> None:
        for task_id in list(self._drafts):
            self.flush(task_id)

    def cancel_all(self) -> None:
        for task_id in list(self._drafts):
            self.cancel(task_id)
