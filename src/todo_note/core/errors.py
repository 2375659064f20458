# src/todo_note/core/errors.py

"""
Error taxonomy shared by the store, the controller and the console.

- ValidationError: rejected locally, never reaches the store.
- StoreError: a dispatched command was rejected or failed.
- StoreUnavailable: the database cannot be opened at all.
- StaleState: in-memory view suspected to have diverged; fixed by a silent resync.
"""

from __future__ import annotations


class TodoNoteError(Exception):
    """Base class for all application errors."""


class ValidationError(TodoNoteError):
    pass


class StoreError(TodoNoteError):
    pass


class TaskNotFound(StoreError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


class StoreUnavailable(StoreError):
    pass


class StaleState(TodoNoteError):
    pass
