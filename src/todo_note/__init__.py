"""Simple Todo Note: local task list with recurrence, notes and undoable deletes."""

__version__ = "0.3.0"
