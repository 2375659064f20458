# src/todo_note/tasks/recurrence.py

"""
Recurrence evaluation.

Two pure functions:
- is_cycle_satisfied(): is the current cycle of a task already checked off?
- resolve_done_action(): what a "mark done" interaction should do.

Cycles:
- daily     -> same local calendar day (not a rolling 24h window)
- weekly    -> rolling 7 days since the last check
- bi-weekly -> rolling 14 days since the last check
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import StrEnum

from .task_models import RecurrenceTag, Task

ROLLING_WINDOWS: dict[RecurrenceTag, timedelta] = {
    RecurrenceTag.WEEKLY: timedelta(days=7),
    RecurrenceTag.BI_WEEKLY: timedelta(days=14),
}


class DoneAction(StrEnum):
    TOGGLE_COMPLETED = "toggle_completed"
    TOGGLE_CYCLE_CHECK = "toggle_cycle_check"


def parse_timestamp(raw: str | datetime | None) -> datetime | None:
    """Parse an ISO-8601 timestamp; None when missing or unparseable."""
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw
    text = raw.strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _local(dt: datetime) -> datetime:
    # Naive values are taken as local time.
    return dt.astimezone()


def is_cycle_satisfied(task: Task, now: datetime | None = None) -> bool:
    if task.completed:
        return True

    tag = task.recurrence_tag
    if tag == RecurrenceTag.NONE:
        return task.completed

    checked_at = parse_timestamp(task.recurrence_checked_at)
    if checked_at is None:
        return False

    now_local = _local(now if now is not None else datetime.now())
    checked_local = _local(checked_at)

    if tag == RecurrenceTag.DAILY:
        return checked_local.date() == now_local.date()

    window = ROLLING_WINDOWS.get(tag)
    if window is None:
        return False
    return now_local - checked_local < window


def resolve_done_action(
    recurrence_tag: RecurrenceTag,
    completed: bool,
    cycle_satisfied: bool,
) -> DoneAction:
    """
    Decide what "mark done" means for a task.

    Non-recurring or fully completed tasks toggle completion. Recurring open
    tasks toggle the check for the current cycle instead (never `completed`);
    the caller sets the check when `cycle_satisfied` is False and clears it
    otherwise.
    """
    if recurrence_tag == RecurrenceTag.NONE or completed:
        return DoneAction.TOGGLE_COMPLETED
    return DoneAction.TOGGLE_CYCLE_CHECK
