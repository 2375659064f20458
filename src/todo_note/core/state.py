# src/todo_note/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..tasks.controller import TaskController
from ..tasks.task_models import TaskFilter
from .ports import TaskRepo


@dataclass
class AppState:
    # Settings object (todo_note.config.Settings or a test stand-in).
    settings: Any

    store: TaskRepo
    controller: TaskController

    # Console view state: the last listing, so commands can refer to rows by number.
    task_filter: TaskFilter = TaskFilter.ALL
    search: str = ""
    listed_ids: list[str] = field(default_factory=list)
