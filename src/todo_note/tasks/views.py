# src/todo_note/tasks/views.py

from __future__ import annotations

from collections.abc import Iterable

from .task_models import Task, TaskFilter


def filter_tasks(tasks: Iterable[Task], task_filter: TaskFilter = TaskFilter.ALL, search: str = "") -> list[Task]:
    """Filter by completion and a case-insensitive search over title, note and due date."""
    needle = (search or "").strip().lower()
    out: list[Task] = []

    for task in tasks:
        if task_filter == TaskFilter.OPEN and task.completed:
            continue
        if task_filter == TaskFilter.DONE and not task.completed:
            continue
        if needle and not (
            needle in task.title.lower()
            or needle in task.note.lower()
            or needle in (task.due_date or "").lower()
        ):
            continue
        out.append(task)

    return out


def open_count(tasks: Iterable[Task]) -> int:
    return sum(1 for t in tasks if not t.completed)
