# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from todo_note.cli.bootstrap import create_initial_state
from todo_note.core.state import AppState
from todo_note.tasks.controller import TaskController
from todo_note.tasks.task_store import AsyncTaskStore, TaskStore

from .fakes import FakeTaskRepo, make_task


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="test",
        data_dir=tmp_path,
        db_path=tmp_path / "todo.sqlite3",
        legacy_path=tmp_path / "simple_todo_note.todos.v1.json",
        undo_grace_seconds=0.05,
        edit_debounce_ms=20,
        title_max_length=160,
    )


@pytest.fixture()
def state(settings: SimpleNamespace) -> AppState:
    """AppState wired with a real SQLite store under tmp_path."""
    return create_initial_state(settings=settings)


@pytest.fixture()
def task_store(tmp_path: Path) -> TaskStore:
    return TaskStore(tmp_path / "tasks.sqlite3")


@pytest.fixture()
def async_store(task_store: TaskStore) -> AsyncTaskStore:
    return AsyncTaskStore(task_store)


@pytest.fixture()
def repo() -> FakeTaskRepo:
    return FakeTaskRepo([make_task("a"), make_task("b"), make_task("c")])


@pytest.fixture()
def errors() -> list[str]:
    return []


@pytest.fixture()
def controller(repo: FakeTaskRepo, errors: list[str]) -> TaskController:
    return TaskController(
        repo,
        grace_seconds=0.05,
        debounce_seconds=0.02,
        on_error=errors.append,
    )
