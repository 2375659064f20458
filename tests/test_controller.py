# tests/test_controller.py

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from todo_note.core.errors import StoreError, TaskNotFound, ValidationError
from todo_note.core.state import AppState
from todo_note.tasks.controller import TaskController, is_provisional
from todo_note.tasks.migration import MigrationCoordinator
from todo_note.tasks.task_models import LegacyTask, RecurrenceTag, TaskFilter

from .fakes import FakeLegacySource, FakeTaskRepo, make_task


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_create_toggle_delete_undo_scenario(state: AppState) -> None:
    ctrl = state.controller
    await ctrl.start()

    created = await ctrl.create("Buy milk", due_date="2024-05-01")
    assert created is not None
    assert created.id and not is_provisional(created.id)
    assert created.completed is False
    assert created.recurrence_tag == RecurrenceTag.NONE
    assert created.created_at == created.updated_at
    assert ctrl.selected_id == created.id

    toggled = await ctrl.toggle_completed(created.id)
    assert toggled is not None and toggled.completed is True

    assert ctrl.delete(created.id) is not None
    assert ctrl.get(created.id) is None

    await asyncio.sleep(0.01)
    assert ctrl.undo() == toggled
    assert ctrl.tasks == [toggled]
    assert ctrl.selected_id == created.id

    ctrl.delete(created.id)
    await asyncio.sleep(0.15)
    await ctrl.drain()

    assert ctrl.undo() is None
    assert ctrl.tasks == []
    assert await state.store.list_tasks() == []


@pytest.mark.asyncio
async def test_start_migrates_before_first_list() -> None:
    repo = FakeTaskRepo([make_task("a")])
    source = FakeLegacySource([LegacyTask("l1", "old", "", False, None, "", "")])
    ctrl = TaskController(repo, migration=MigrationCoordinator(repo, source))

    await ctrl.start()

    assert [name for name, _ in repo.calls] == ["migrate_legacy", "list_tasks"]
    assert source.cleared == 1
    assert ctrl.selected_id == "a"


@pytest.mark.asyncio
async def test_start_reports_migration_failure_and_still_loads(errors: list[str]) -> None:
    repo = FakeTaskRepo([make_task("a")])
    repo.fail_next["migrate_legacy"] = StoreError("migration exploded")
    source = FakeLegacySource([LegacyTask("l1", "old", "", False, None, "", "")])
    ctrl = TaskController(repo, migration=MigrationCoordinator(repo, source), on_error=errors.append)

    await ctrl.start()

    assert errors == ["migration exploded"]
    assert source.cleared == 0
    assert [t.id for t in ctrl.tasks] == ["a"]


@pytest.mark.asyncio
async def test_create_is_optimistic_then_replaced(controller: TaskController, repo: FakeTaskRepo) -> None:
    await controller.refresh()
    gate = repo.hold_next("create_task")

    pending = asyncio.create_task(controller.create("  Fresh  "))
    await _settle()

    assert is_provisional(controller.tasks[0].id)
    assert controller.tasks[0].title == "Fresh"
    assert controller.selected_id == controller.tasks[0].id

    gate.set()
    created = await pending

    assert created is not None
    assert controller.tasks[0] == created
    assert controller.selected_id == created.id


@pytest.mark.asyncio
async def test_refresh_during_create_keeps_one_row_per_id(controller: TaskController, repo: FakeTaskRepo) -> None:
    await controller.refresh()
    gate = repo.hold_next("create_task")

    pending = asyncio.create_task(controller.create("Racing"))
    await _settle()
    await controller.refresh()

    gate.set()
    created = await pending

    assert created is not None
    ids = [t.id for t in controller.tasks]
    assert ids.count(created.id) == 1
    assert not any(is_provisional(task_id) for task_id in ids)
    assert ids == [created.id, "a", "b", "c"]
    assert controller.selected_id == created.id


@pytest.mark.asyncio
async def test_create_failure_drops_provisional(
    controller: TaskController, repo: FakeTaskRepo, errors: list[str]
) -> None:
    await controller.refresh()
    repo.fail_next["create_task"] = StoreError("boom")

    assert await controller.create("New") is None

    assert errors == ["boom"]
    assert not any(is_provisional(t.id) for t in controller.tasks)
    assert [t.id for t in controller.tasks] == ["a", "b", "c"]
    assert controller.selected_id == "a"


@pytest.mark.asyncio
@pytest.mark.parametrize("title", ["", "   ", "x" * 161])
async def test_invalid_title_never_reaches_store(
    controller: TaskController, repo: FakeTaskRepo, title: str
) -> None:
    with pytest.raises(ValidationError):
        await controller.create(title)
    with pytest.raises(ValidationError):
        await controller.patch("a", title=title)

    assert repo.count("create_task") == 0
    assert repo.count("update_task") == 0


@pytest.mark.asyncio
async def test_patch_is_optimistic_and_store_value_wins(controller: TaskController, repo: FakeTaskRepo) -> None:
    await controller.refresh()
    gate = repo.hold_next("update_task")

    pending = asyncio.create_task(controller.patch("b", title="Renamed"))
    await _settle()
    optimistic = controller.get("b")
    assert optimistic is not None and optimistic.title == "Renamed"

    gate.set()
    saved = await pending

    assert saved is not None
    assert controller.get("b") == saved
    assert saved.updated_at == repo.tasks[1].updated_at


@pytest.mark.asyncio
async def test_patch_failure_reports_once_and_refreshes(
    controller: TaskController, repo: FakeTaskRepo, errors: list[str]
) -> None:
    await controller.refresh()
    controller.select("b")
    lists_before = repo.count("list_tasks")
    repo.fail_next["update_task"] = StoreError("disk full")

    assert await controller.patch("b", title="Renamed") is None

    assert errors == ["disk full"]
    assert controller.error_message == "disk full"
    assert repo.count("list_tasks") == lists_before + 1
    task_b = controller.get("b")
    assert task_b is not None and task_b.title == "Task b"
    assert controller.selected_id == "b"


@pytest.mark.asyncio
async def test_patch_failure_falls_back_to_first_when_task_gone(
    controller: TaskController, repo: FakeTaskRepo, errors: list[str]
) -> None:
    await controller.refresh()
    controller.select("b")
    repo.tasks = [t for t in repo.tasks if t.id != "b"]

    assert await controller.patch("b", note="x") is None

    assert len(errors) == 1
    assert controller.get("b") is None
    assert controller.selected_id == "a"


@pytest.mark.asyncio
async def test_failure_on_empty_list_selects_nothing(controller: TaskController, repo: FakeTaskRepo) -> None:
    await controller.refresh()
    controller.select("a")
    repo.tasks = []
    repo.fail_next["toggle_completed"] = TaskNotFound("a")

    await controller.toggle_completed("a")

    assert controller.tasks == []
    assert controller.selected_id is None


@pytest.mark.asyncio
async def test_error_message_is_replaced_and_cleared(controller: TaskController, repo: FakeTaskRepo) -> None:
    await controller.refresh()
    repo.fail_next["update_task"] = StoreError("first")
    await controller.patch("a", note="1")
    repo.fail_next["toggle_completed"] = StoreError("second")
    await controller.toggle_completed("a")
    assert controller.error_message == "second"

    await controller.toggle_completed("a")
    assert controller.error_message is None


@pytest.mark.asyncio
async def test_older_response_never_overwrites_newer(controller: TaskController, repo: FakeTaskRepo) -> None:
    await controller.refresh()
    gate = repo.hold_next("update_task")

    first = asyncio.create_task(controller.patch("a", note="one"))
    await _settle()
    second = await controller.patch("a", note="two")
    assert second is not None
    assert controller.get("a") == second

    gate.set()
    stale = await first

    assert stale is not None and stale.note == "one"
    current = controller.get("a")
    assert current is not None and current.note == "two"


@pytest.mark.asyncio
async def test_refresh_keeps_mutation_issued_while_listing(controller: TaskController, repo: FakeTaskRepo) -> None:
    await controller.refresh()
    gate = repo.hold_next("list_tasks")

    refreshing = asyncio.create_task(controller.refresh())
    await _settle()
    await controller.patch("a", note="fresh")
    gate.set()
    assert await refreshing is True

    current = controller.get("a")
    assert current is not None and current.note == "fresh"


@pytest.mark.asyncio
async def test_refresh_failure_is_reported(controller: TaskController, repo: FakeTaskRepo, errors: list[str]) -> None:
    repo.fail_next["list_tasks"] = StoreError("unreachable")
    assert await controller.refresh() is False
    assert errors == ["unreachable"]


@pytest.mark.asyncio
async def test_refresh_prefers_given_id_or_falls_back_to_first(controller: TaskController) -> None:
    await controller.refresh()
    assert controller.selected_id == "a"
    await controller.refresh(preferred_id="c")
    assert controller.selected_id == "c"
    await controller.refresh(preferred_id="zzz")
    assert controller.selected_id == "a"


@pytest.mark.asyncio
async def test_mutation_on_unknown_id_resyncs_silently(
    controller: TaskController, repo: FakeTaskRepo, errors: list[str]
) -> None:
    await controller.refresh()
    lists_before = repo.count("list_tasks")

    assert await controller.toggle_completed("ghost") is None

    assert repo.count("toggle_completed") == 0
    assert repo.count("list_tasks") == lists_before + 1
    assert errors == []


@pytest.mark.asyncio
async def test_mark_done_toggles_completion_for_plain_task(controller: TaskController, repo: FakeTaskRepo) -> None:
    await controller.refresh()
    saved = await controller.mark_done("a")
    assert saved is not None and saved.completed is True
    assert repo.count("toggle_completed") == 1


@pytest.mark.asyncio
async def test_mark_done_checks_cycle_for_recurring_task(errors: list[str]) -> None:
    repo = FakeTaskRepo([make_task("r", recurrence_tag=RecurrenceTag.WEEKLY)])
    ctrl = TaskController(repo, clock=lambda: datetime(2024, 5, 2, tzinfo=timezone.utc))
    await ctrl.refresh()

    checked = await ctrl.mark_done("r")
    assert checked is not None
    assert checked.recurrence_checked_at is not None
    assert checked.completed is False

    unchecked = await ctrl.mark_done("r")
    assert unchecked is not None
    assert unchecked.recurrence_checked_at is None
    assert unchecked.completed is False

    assert [args for name, args in repo.calls if name == "set_cycle_check"] == [("r", True), ("r", False)]
    assert repo.count("toggle_completed") == 0


@pytest.mark.asyncio
async def test_mark_done_on_completed_recurring_task_reopens_it() -> None:
    repo = FakeTaskRepo([make_task("r", recurrence_tag=RecurrenceTag.DAILY, completed=True)])
    ctrl = TaskController(repo)
    await ctrl.refresh()

    saved = await ctrl.mark_done("r")

    assert saved is not None and saved.completed is False
    assert repo.count("set_cycle_check") == 0


@pytest.mark.asyncio
async def test_reorder_applies_locally_and_dispatches(controller: TaskController, repo: FakeTaskRepo) -> None:
    await controller.refresh()
    assert await controller.reorder(["c", "a", "b"]) is True
    assert [t.id for t in controller.tasks] == ["c", "a", "b"]
    assert [t.id for t in repo.tasks] == ["c", "a", "b"]


@pytest.mark.asyncio
async def test_visible_filters_and_searches(controller: TaskController, repo: FakeTaskRepo) -> None:
    repo.tasks[1].completed = True
    repo.tasks[2].note = "buy MILK"
    await controller.refresh()

    assert [t.id for t in controller.visible(TaskFilter.DONE)] == ["b"]
    assert [t.id for t in controller.visible(TaskFilter.OPEN)] == ["a", "c"]
    assert [t.id for t in controller.visible(TaskFilter.ALL, "milk")] == ["c"]


# ---- debounced edits ----


@pytest.mark.asyncio
async def test_title_edits_commit_once_after_settle(controller: TaskController, repo: FakeTaskRepo) -> None:
    await controller.refresh()
    controller.select("a")

    controller.edit_title("Ne")
    controller.edit_title("New ti")
    controller.edit_title("  New title ")
    assert repo.count("update_task") == 0

    await asyncio.sleep(0.08)
    await controller.drain()

    assert repo.count("update_task") == 1
    task_a = controller.get("a")
    assert task_a is not None and task_a.title == "New title"


@pytest.mark.asyncio
async def test_unchanged_or_empty_edit_is_not_committed(controller: TaskController, repo: FakeTaskRepo) -> None:
    await controller.refresh()
    controller.select("a")

    controller.edit_title("  Task a ")
    await asyncio.sleep(0.08)
    await controller.drain()
    controller.edit_title("   ")
    await asyncio.sleep(0.08)
    await controller.drain()

    assert repo.count("update_task") == 0


@pytest.mark.asyncio
async def test_selection_change_drops_unsettled_edit(controller: TaskController, repo: FakeTaskRepo) -> None:
    await controller.refresh()
    controller.select("a")
    controller.edit_note("draft that will be lost")

    controller.select("b")
    await asyncio.sleep(0.08)
    await controller.drain()

    assert repo.count("update_task") == 0
    task_a = controller.get("a")
    assert task_a is not None and task_a.note == ""


@pytest.mark.asyncio
async def test_flush_edits_commits_immediately(controller: TaskController, repo: FakeTaskRepo) -> None:
    await controller.refresh()
    controller.select("a")
    controller.edit_title("Flushed")
    controller.edit_note("kept")

    await controller.flush_edits()

    assert repo.count("update_task") == 1
    task_a = controller.get("a")
    assert task_a is not None
    assert (task_a.title, task_a.note) == ("Flushed", "kept")
    assert controller.pending_edit("a") is None


@pytest.mark.asyncio
async def test_edit_without_selection_is_ignored(controller: TaskController) -> None:
    assert controller.edit_title("x") is False
