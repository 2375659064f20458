# tests/test_soft_delete.py

from __future__ import annotations

import asyncio

import pytest

from todo_note.core.errors import StoreError
from todo_note.tasks.controller import TaskController

from .fakes import FakeTaskRepo


async def _wait_past_grace(controller: TaskController) -> None:
    await asyncio.sleep(controller.soft_delete.grace_seconds * 3)
    await controller.drain()


def _deleted_ids(repo: FakeTaskRepo) -> list[str]:
    return [args[0] for name, args in repo.calls if name == "delete_task"]


@pytest.mark.asyncio
async def test_delete_hides_immediately_and_finalizes_after_grace(
    controller: TaskController, repo: FakeTaskRepo
) -> None:
    await controller.refresh()
    controller.select("b")

    snapshot = controller.delete("b")

    assert snapshot is not None and snapshot.original_index == 1
    assert [t.id for t in controller.tasks] == ["a", "c"]
    assert controller.selected_id is None
    assert _deleted_ids(repo) == []

    await _wait_past_grace(controller)

    assert _deleted_ids(repo) == ["b"]
    assert controller.soft_delete.snapshot is None
    assert controller.undo() is None
    assert [t.id for t in controller.tasks] == ["a", "c"]


@pytest.mark.asyncio
async def test_undo_before_grace_restores_at_original_index(
    controller: TaskController, repo: FakeTaskRepo
) -> None:
    await controller.refresh()
    original = controller.get("b")

    controller.delete("b")
    restored = controller.undo()

    assert restored == original
    assert [t.id for t in controller.tasks] == ["a", "b", "c"]
    assert controller.selected_id == "b"

    await _wait_past_grace(controller)
    assert _deleted_ids(repo) == []


@pytest.mark.asyncio
async def test_undo_clamps_index_to_current_length(controller: TaskController, repo: FakeTaskRepo) -> None:
    await controller.refresh()
    controller.delete("c")

    repo.tasks = [t for t in repo.tasks if t.id == "c"]
    await controller.refresh()
    assert controller.tasks == []

    controller.undo()
    assert [t.id for t in controller.tasks] == ["c"]


@pytest.mark.asyncio
async def test_new_delete_finalizes_pending_one(controller: TaskController, repo: FakeTaskRepo) -> None:
    await controller.refresh()

    controller.delete("a")
    controller.delete("b")
    await controller.drain()

    assert _deleted_ids(repo) == ["a"]
    snapshot = controller.soft_delete.snapshot
    assert snapshot is not None and snapshot.task.id == "b"

    restored = controller.undo()
    assert restored is not None and restored.id == "b"
    assert controller.get("a") is None
    assert controller.undo() is None

    await _wait_past_grace(controller)
    assert _deleted_ids(repo) == ["a"]


@pytest.mark.asyncio
async def test_superseding_delete_gets_its_own_grace_window(
    controller: TaskController, repo: FakeTaskRepo
) -> None:
    await controller.refresh()

    controller.delete("a")
    controller.delete("b")
    await controller.drain()
    assert _deleted_ids(repo) == ["a"]

    await _wait_past_grace(controller)
    assert _deleted_ids(repo) == ["a", "b"]


@pytest.mark.asyncio
async def test_pending_delete_stays_hidden_across_refresh(controller: TaskController) -> None:
    await controller.refresh()
    controller.delete("a")

    await controller.refresh()

    assert controller.get("a") is None
    assert controller.selected_id == "b"


@pytest.mark.asyncio
async def test_finalize_failure_reports_and_refreshes(
    controller: TaskController, repo: FakeTaskRepo, errors: list[str]
) -> None:
    await controller.refresh()
    repo.fail_next["delete_task"] = StoreError("database is locked")

    controller.delete("a")
    await _wait_past_grace(controller)

    assert errors == ["database is locked"]
    assert controller.soft_delete.snapshot is None
    assert [t.id for t in controller.tasks] == ["a", "b", "c"]
    assert controller.undo() is None


@pytest.mark.asyncio
async def test_finalize_now_skips_grace(controller: TaskController, repo: FakeTaskRepo) -> None:
    await controller.refresh()
    controller.delete("c")

    assert await controller.soft_delete.finalize_now() is True
    assert _deleted_ids(repo) == ["c"]
    assert await controller.soft_delete.finalize_now() is False


@pytest.mark.asyncio
async def test_aclose_finalizes_pending_delete(controller: TaskController, repo: FakeTaskRepo) -> None:
    await controller.refresh()
    controller.delete("a")

    await controller.aclose()

    assert _deleted_ids(repo) == ["a"]


@pytest.mark.asyncio
async def test_delete_unknown_id_is_noop(controller: TaskController) -> None:
    await controller.refresh()
    assert controller.delete("ghost") is None
    assert controller.soft_delete.snapshot is None
