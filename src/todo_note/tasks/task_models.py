# src/todo_note/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Final

TITLE_MAX_LENGTH: Final = 160


class RecurrenceTag(StrEnum):
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    BI_WEEKLY = "bi-weekly"

    @classmethod
    def from_db(cls, raw: str | None) -> RecurrenceTag:
        """Unknown or blank values fall back to NONE."""
        if not raw:
            return cls.NONE
        try:
            return cls(raw.strip())
        except ValueError:
            return cls.NONE


class TaskFilter(StrEnum):
    ALL = "all"
    OPEN = "open"
    DONE = "done"


@dataclass(slots=True)
class Task:
    id: str
    title: str
    note: str
    recurrence_tag: RecurrenceTag
    recurrence_checked_at: str | None
    completed: bool
    due_date: str | None
    created_at: str
    updated_at: str


@dataclass(slots=True, frozen=True)
class DeletedSnapshot:
    task: Task
    original_index: int


@dataclass(slots=True, frozen=True)
class MigrationResult:
    migrated_count: int
    already_migrated: bool


@dataclass(slots=True, frozen=True)
class CreateTaskInput:
    title: str
    recurrence_tag: RecurrenceTag = RecurrenceTag.NONE
    note: str = ""
    due_date: str | None = None


class _Unset:
    __slots__ = ()

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


@dataclass(slots=True, frozen=True)
class TaskPatch:
    """
    Partial field set for an update.

    Fields left as UNSET are not touched. `due_date=None` clears the date.
    """

    title: str = UNSET
    note: str = UNSET
    recurrence_tag: RecurrenceTag = UNSET
    completed: bool = UNSET
    due_date: str | None = UNSET

    def fields(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for name in ("title", "note", "recurrence_tag", "completed", "due_date"):
            value = getattr(self, name)
            if value is not UNSET:
                out[name] = value
        return out


@dataclass(slots=True)
class LegacyTask:
    """Record shape of the deprecated JSON snapshot (pre-SQLite)."""

    id: str
    title: str
    note: str
    completed: bool
    due_date: str | None
    created_at: str
    updated_at: str
    recurrence_tag: RecurrenceTag | None = None
    recurrence_checked_at: str | None = None

    @classmethod
    def from_json(cls, raw: Any) -> LegacyTask | None:
        """Return None for anything that does not look like a legacy task."""
        if not isinstance(raw, dict):
            return None

        for key in ("id", "title", "note", "createdAt", "updatedAt"):
            if not isinstance(raw.get(key), str):
                return None
        if not isinstance(raw.get("completed"), bool):
            return None
        due = raw.get("dueDate")
        if due is not None and not isinstance(due, str):
            return None

        tag_raw = raw.get("recurrenceTag")
        checked_raw = raw.get("recurrenceCheckedAt")

        return cls(
            id=raw["id"],
            title=raw["title"],
            note=raw["note"],
            completed=raw["completed"],
            due_date=due,
            created_at=raw["createdAt"],
            updated_at=raw["updatedAt"],
            recurrence_tag=RecurrenceTag.from_db(tag_raw) if isinstance(tag_raw, str) else None,
            recurrence_checked_at=checked_raw if isinstance(checked_raw, str) else None,
        )


class PanelMode(StrEnum):
    MINI = "mini"
    EXPANDED = "expanded"


class MotionMode(StrEnum):
    BALANCED = "balanced"
    HIGH = "high"
    LOW = "low"


class ReadabilityMode(StrEnum):
    ADAPTIVE = "adaptive"
    PURE = "pure"
    STRONG = "strong"


class ReduceMotionOverride(StrEnum):
    SYSTEM = "system"
    ON = "on"
    OFF = "off"


@dataclass(slots=True)
class WindowPrefs:
    x: float = 80.0
    y: float = 80.0
    width: float = 380.0
    height: float = 520.0
    mode: PanelMode = PanelMode.MINI
    always_on_top: bool = True

    def to_json(self) -> dict[str, Any]:
        return {
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "mode": self.mode.value,
            "alwaysOnTop": self.always_on_top,
        }

    @classmethod
    def from_json(cls, raw: dict[str, Any]) -> WindowPrefs:
        return cls(
            x=float(raw["x"]),
            y=float(raw["y"]),
            width=float(raw["width"]),
            height=float(raw["height"]),
            mode=PanelMode(raw["mode"]),
            always_on_top=bool(raw["alwaysOnTop"]),
        )


@dataclass(slots=True)
class UiPrefs:
    motion_mode: MotionMode = MotionMode.BALANCED
    readability_mode: ReadabilityMode = ReadabilityMode.ADAPTIVE
    reduce_motion_override: ReduceMotionOverride = ReduceMotionOverride.SYSTEM

    def to_json(self) -> dict[str, Any]:
        return {
            "motionMode": self.motion_mode.value,
            "readabilityMode": self.readability_mode.value,
            "reduceMotionOverride": self.reduce_motion_override.value,
        }

    @classmethod
    def from_json(cls, raw: dict[str, Any]) -> UiPrefs:
        return cls(
            motion_mode=MotionMode(raw["motionMode"]),
            readability_mode=ReadabilityMode(raw["readabilityMode"]),
            reduce_motion_override=ReduceMotionOverride(raw["reduceMotionOverride"]),
        )


@dataclass(slots=True)
class EditDraft:
    """Unsettled text edits for one task."""

    title: str | None = None
    note: str | None = None
