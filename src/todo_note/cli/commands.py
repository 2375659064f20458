# src/todo_note/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import cast

from ..core.errors import StoreError, ValidationError
from ..core.state import AppState
from ..tasks.recurrence import is_cycle_satisfied
from ..tasks.task_models import RecurrenceTag, Task, TaskFilter
from ..tasks.views import open_count

CommandEmitter = Callable[[str], None]
CommandResult = str | Awaitable[str]
CommandHandler2 = Callable[[AppState, list[str]], CommandResult]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], CommandResult]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        Handlers may be plain functions or coroutines.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            result = cast(CommandHandler3, handler)(state, args, emit)
        else:
            result = cast(CommandHandler2, handler)(state, args)

        if inspect.isawaitable(result):
            result = await result
        return cast(str, result)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- rendering helpers ----


def _format_row(n: int, task: Task, selected: bool) -> str:
    mark = ">" if selected else " "
    if task.completed:
        box = "[x]"
    elif task.recurrence_tag != RecurrenceTag.NONE and is_cycle_satisfied(task):
        box = "[~]"
    else:
        box = "[ ]"

    extras: list[str] = []
    if task.recurrence_tag != RecurrenceTag.NONE:
        extras.append(task.recurrence_tag.value)
    if task.due_date:
        extras.append(f"due {task.due_date}")
    if task.note:
        extras.append("note")
    suffix = f"  ({', '.join(extras)})" if extras else ""
    return f"{mark}{n:>3}. {box} {task.title}{suffix}"


def render_list(state: AppState) -> str:
    ctrl = state.controller
    rows = ctrl.visible(state.task_filter, state.search)
    state.listed_ids = [t.id for t in rows]

    header = f"{open_count(ctrl.tasks)} open / {len(ctrl.tasks)} total (filter: {state.task_filter.value}"
    header += f", search: {state.search!r})" if state.search else ")"
    lines = [header]

    if ctrl.error_message:
        lines.append(f"! {ctrl.error_message}")
    if not rows:
        lines.append("  (no tasks)")
    for n, task in enumerate(rows, start=1):
        lines.append(_format_row(n, task, task.id == ctrl.selected_id))

    snapshot = ctrl.soft_delete.snapshot
    if snapshot is not None:
        lines.append(f"Deleted {snapshot.task.title!r}. Use /undo within a few seconds.")
    return "\n".join(lines)


def _resolve(state: AppState, args: list[str]) -> str | None:
    """Row number from the last listing, or the current selection when omitted."""
    if not args:
        return state.controller.selected_id
    try:
        n = int(args[0])
    except ValueError:
        return None
    if n < 1 or n > len(state.listed_ids):
        return None
    return state.listed_ids[n - 1]


def _pop_flag(args: list[str], flag: str) -> str | None:
    if flag not in args:
        return None
    i = args.index(flag)
    value = args[i + 1] if i + 1 < len(args) else ""
    del args[i : i + 2]
    return value


# ---- handlers ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_list(state: AppState, args: list[str]) -> str:
    """
    /list                 -> all tasks
    /list open|done|all   -> filter by completion
    /list open milk       -> filter + search
    """
    if args:
        try:
            state.task_filter = TaskFilter(args[0].lower())
            args = args[1:]
        except ValueError:
            pass
        state.search = " ".join(args)
    return render_list(state)


async def cmd_add(state: AppState, args: list[str]) -> str:
    """/add Buy milk --due 2024-05-01 --every weekly"""
    args = list(args)
    due = _pop_flag(args, "--due")
    every = _pop_flag(args, "--every") or RecurrenceTag.NONE.value
    title = " ".join(args)

    try:
        created = await state.controller.create(title, recurrence_tag=every, due_date=due)
    except ValidationError as exc:
        return f"Invalid task: {exc}"

    if created is None:
        return f"Could not add task: {state.controller.error_message}"
    return f"Added {created.title!r}.\n" + render_list(state)


def cmd_select(state: AppState, args: list[str]) -> str:
    task_id = _resolve(state, args) if args else None
    task = state.controller.get(task_id) if task_id is not None else None
    if task is None or not state.controller.select(task.id):
        return "Usage: /sel <n> (row number from /list)."
    note = task.note or "(empty note)"
    return f"Selected {task.title!r}\n{note}"


async def cmd_done(state: AppState, args: list[str]) -> str:
    task_id = _resolve(state, args)
    if task_id is None:
        return "Usage: /done [n]."
    await state.controller.mark_done(task_id)
    return render_list(state)


async def cmd_check(state: AppState, args: list[str]) -> str:
    """/check <n> on|off -> set or clear the current cycle check."""
    if len(args) != 2 or args[1].lower() not in ("on", "off"):
        return "Usage: /check <n> on|off."
    task_id = _resolve(state, args[:1])
    if task_id is None:
        return "Unknown row."
    await state.controller.set_cycle_check(task_id, args[1].lower() == "on")
    return render_list(state)


def cmd_title(state: AppState, args: list[str]) -> str:
    if not state.controller.edit_title(" ".join(args)):
        return "Select a task first (/sel <n>)."
    return "Title edit queued."


def cmd_note(state: AppState, args: list[str]) -> str:
    if not state.controller.edit_note(" ".join(args)):
        return "Select a task first (/sel <n>)."
    return "Note edit queued."


async def cmd_flush(state: AppState, args: list[str]) -> str:
    await state.controller.flush_edits()
    return render_list(state)


async def cmd_due(state: AppState, args: list[str]) -> str:
    """/due <n> YYYY-MM-DD | none"""
    if len(args) != 2:
        return "Usage: /due <n> YYYY-MM-DD|none."
    task_id = _resolve(state, args[:1])
    if task_id is None:
        return "Unknown row."
    due = None if args[1].lower() == "none" else args[1]
    await state.controller.patch(task_id, due_date=due)
    return render_list(state)


async def cmd_every(state: AppState, args: list[str]) -> str:
    """/every <n> none|daily|weekly|bi-weekly"""
    if len(args) != 2:
        return "Usage: /every <n> none|daily|weekly|bi-weekly."
    task_id = _resolve(state, args[:1])
    if task_id is None:
        return "Unknown row."
    try:
        await state.controller.patch(task_id, recurrence_tag=args[1].lower())
    except ValidationError as exc:
        return f"Invalid: {exc}"
    return render_list(state)


def cmd_delete(state: AppState, args: list[str]) -> str:
    task_id = _resolve(state, args)
    if task_id is None or state.controller.delete(task_id) is None:
        return "Usage: /del [n]."
    return render_list(state)


def cmd_undo(state: AppState, args: list[str]) -> str:
    restored = state.controller.undo()
    if restored is None:
        return "Nothing to undo."
    return f"Restored {restored.title!r}.\n" + render_list(state)


async def cmd_move(state: AppState, args: list[str]) -> str:
    """/move <from> <to> -> reorder rows of the last listing."""
    if len(args) != 2:
        return "Usage: /move <from> <to>."
    source = _resolve(state, args[:1])
    target = _resolve(state, args[1:])
    ids = [t.id for t in state.controller.tasks]
    if source is None or target is None or source not in ids or target not in ids:
        return "Unknown row."
    if source == target:
        return render_list(state)
    ids.remove(source)
    ids.insert(ids.index(target) + (1 if int(args[1]) > int(args[0]) else 0), source)
    await state.controller.reorder(ids)
    return render_list(state)


async def cmd_refresh(state: AppState, args: list[str]) -> str:
    await state.controller.refresh()
    return render_list(state)


async def cmd_prefs(state: AppState, args: list[str]) -> str:
    try:
        window = await state.store.get_window_prefs()
        ui = await state.store.get_ui_prefs()
    except StoreError as exc:
        return f"Could not read preferences: {exc}"
    return (
        "Preferences:\n"
        f"  Window: {window.width:.0f}x{window.height:.0f} at ({window.x:.0f}, {window.y:.0f}), "
        f"mode={window.mode.value}, always_on_top={window.always_on_top}\n"
        f"  UI: motion={ui.motion_mode.value}, readability={ui.readability_mode.value}, "
        f"reduce_motion={ui.reduce_motion_override.value}"
    )


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("list", cmd_list, help_text="List tasks: /list [all|open|done] [search].", aliases=["ls"])
registry.register(
    "add", cmd_add, help_text="Add a task: /add <title> [--due YYYY-MM-DD] [--every daily|weekly|bi-weekly]."
)
registry.register("sel", cmd_select, help_text="Select a task: /sel <n>.")
registry.register("done", cmd_done, help_text="Complete a task or check off its current cycle: /done [n].")
registry.register("check", cmd_check, help_text="Set/clear the cycle check: /check <n> on|off.")
registry.register("title", cmd_title, help_text="Edit the selected title (saved after a short pause).")
registry.register("note", cmd_note, help_text="Edit the selected note (saved after a short pause).")
registry.register("flush", cmd_flush, help_text="Save pending title/note edits now.")
registry.register("due", cmd_due, help_text="Set the due date: /due <n> YYYY-MM-DD|none.")
registry.register("every", cmd_every, help_text="Set recurrence: /every <n> none|daily|weekly|bi-weekly.")
registry.register("del", cmd_delete, help_text="Delete a task (undo possible for a few seconds): /del [n].")
registry.register("undo", cmd_undo, help_text="Undo the last delete.")
registry.register("move", cmd_move, help_text="Reorder: /move <from> <to>.")
registry.register("refresh", cmd_refresh, help_text="Reload tasks from the database.")
registry.register("prefs", cmd_prefs, help_text="Show stored window/UI preferences.")
