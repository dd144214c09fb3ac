# src/anytask/cli/commands.py

from __future__ import annotations

import contextlib
import inspect
import logging
from collections.abc import Callable
from datetime import datetime
from typing import cast

from ..core.state import AppState
from ..tasks import task_api
from ..tasks.task_models import RepeatInterval, SectionColor, SectionIcon, Task
from ..widget.consumer import WidgetConsumer

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /add, ...)."""

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

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
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
        except Exception:
            nparams = 3

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return h3(state, args, emit)
            h2 = cast(CommandHandler2, handler)
            return h2(state, args)
        except ValueError as e:
            return f"Error: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- helpers ----


def _fmt_ts(ts: float | None) -> str:
    if ts is None:
        return "-"
    return datetime.fromtimestamp(ts).astimezone().strftime("%Y-%m-%d %H:%M")


def _parse_due(raw: str) -> float | None:
    if raw.lower() in ("none", "off", "clear", "-"):
        return None
    try:
        return datetime.fromisoformat(raw).astimezone().timestamp()
    except ValueError:
        raise ValueError(f"Bad date {raw!r}; use YYYY-MM-DDTHH:MM") from None


def _task_by_number(state: AppState, raw: str) -> Task:
    """Tasks are addressed by their 1-based position in /list output."""
    try:
        n = int(raw)
    except ValueError:
        raise ValueError(f"Not a task number: {raw!r}") from None
    tasks = task_api.list_tasks(state).all
    if n < 1 or n > len(tasks):
        raise ValueError(f"No task #{n} in this section.")
    return tasks[n - 1]


def _section_by_number(state: AppState, raw: str) -> str:
    sections = state.store.fetch_sections()
    try:
        n = int(raw)
    except ValueError:
        for s in sections:
            if s.name.lower() == raw.lower():
                return s.id
        raise ValueError(f"No section named {raw!r}") from None
    if n < 1 or n > len(sections):
        raise ValueError(f"No section #{n}.")
    return sections[n - 1].id


def _render_list(state: AppState) -> str:
    listing = task_api.list_tasks(state)
    lines = [f"[{listing.section.name}]"]
    if not listing.all:
        lines.append("  (no tasks)")
    for i, t in enumerate(listing.all, start=1):
        mark = "x" if t.complete else " "
        due = f"  due {_fmt_ts(t.due_at)}" if t.due_at is not None else ""
        rep = f" ({t.repeat_interval.value})" if t.repeat_interval is not RepeatInterval.NEVER else ""
        lines.append(f"  {i:>2}. [{mark}] {t.text}{due}{rep}")
    return "\n".join(lines)


# ---- commands ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_sections(state: AppState, args: list[str]) -> str:
    selected = state.selected_section_id
    lines = ["Sections:"]
    for i, s in enumerate(state.store.fetch_sections(), start=1):
        cur = "*" if s.id == selected else " "
        lock = "" if s.is_editable else " (locked)"
        lines.append(f" {cur}{i:>2}. {s.name} [{s.color.value}, {s.icon.value}]{lock}")
    return "\n".join(lines)


def cmd_section(state: AppState, args: list[str]) -> str:
    """
    /section add <name> [color] [icon]
    /section edit <n> <name> [color] [icon]
    /section delete <n>
    /section select <n|name>
    /section move <from> <to>
    """
    usage = (
        "Usage:\n"
        "  /section add <name> [color] [icon]\n"
        "  /section edit <n> <name> [color] [icon]\n"
        "  /section delete <n>\n"
        "  /section select <n|name>\n"
        "  /section move <from> <to>\n"
        f"  colors: {', '.join(c.value for c in SectionColor)}\n"
        f"  icons: {', '.join(i.value for i in SectionIcon)}"
    )
    if not args:
        return usage
    sub, rest = args[0].lower(), args[1:]

    if sub == "add" and rest:
        color = rest[1] if len(rest) > 1 else SectionColor.BLUE
        icon = rest[2] if len(rest) > 2 else SectionIcon.LIST
        section = task_api.add_section(state, rest[0], color=color, icon=icon)
        return f"Section {section.name!r} added and selected."

    if sub == "edit" and len(rest) >= 2:
        section_id = _section_by_number(state, rest[0])
        section = task_api.edit_section(
            state,
            section_id,
            name=rest[1],
            color=rest[2] if len(rest) > 2 else None,
            icon=rest[3] if len(rest) > 3 else None,
        )
        return f"Section updated: {section.name}."

    if sub == "delete" and rest:
        section_id = _section_by_number(state, rest[0])
        removed = task_api.delete_section(state, section_id)
        return f"Section deleted ({removed} tasks removed)."

    if sub == "select" and rest:
        section = task_api.select_section(state, _section_by_number(state, " ".join(rest)))
        return f"Selected {section.name}."

    if sub == "move" and len(rest) == 2:
        src, dst = int(rest[0]) - 1, int(rest[1]) - 1
        # Moving down means inserting after the target row.
        task_api.move_sections(state, [src], dst + 1 if dst > src else dst)
        return cmd_sections(state, [])

    return usage


def cmd_list(state: AppState, args: list[str]) -> str:
    return _render_list(state)


def cmd_add(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /add <task text>"
    task = task_api.add_task(state, " ".join(args))
    return f"Added: {task.text}"


def cmd_done(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """Toggle completion after the animate-out delay."""
    if not args:
        return "Usage: /done <n>"
    task = _task_by_number(state, args[0])
    task_api.toggle_task_deferred(state, task.id, threadsafe=True)
    verb = "Reopening" if task.complete else "Completing"
    if emit:
        with contextlib.suppress(Exception):
            emit(f"{verb}: {task.text}")
    return f"{verb} {task.text!r}..."


def cmd_move(state: AppState, args: list[str]) -> str:
    if len(args) != 2:
        return "Usage: /move <from> <to>"
    listing = task_api.list_tasks(state)
    src, dst = int(args[0]) - 1, int(args[1]) - 1
    n = len(listing.incomplete)
    if not (0 <= src < n and 0 <= dst < n):
        return "Only open tasks can be reordered."
    task_api.move_tasks(state, [src], dst + 1 if dst > src else dst)
    return _render_list(state)


def cmd_delete(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /delete <n> [n ...]"
    tasks = [_task_by_number(state, a) for a in args]
    removed = task_api.delete_tasks(state, [t.id for t in tasks])
    return f"Deleted {removed} task(s)."


def cmd_edit(state: AppState, args: list[str]) -> str:
    if len(args) < 2:
        return "Usage: /edit <n> <new text>"
    task = _task_by_number(state, args[0])
    task_api.edit_task_text(state, task.id, " ".join(args[1:]))
    return "Task updated."


def cmd_due(state: AppState, args: list[str]) -> str:
    """
    /due <n> <YYYY-MM-DDTHH:MM|none> [repeat]
    """
    if len(args) < 2:
        repeats = ", ".join(r.value for r in RepeatInterval)
        return f"Usage: /due <n> <YYYY-MM-DDTHH:MM|none> [repeat]\n  repeat: {repeats}"
    task = _task_by_number(state, args[0])
    due_at = _parse_due(args[1])
    repeat = args[2].lower() if len(args) > 2 else None
    task_api.set_due_date(state, task.id, due_at, repeat=repeat)
    if due_at is None:
        return "Due date cleared."
    return f"Due {_fmt_ts(due_at)} ({task.repeat_interval.value})."


def cmd_transfer(state: AppState, args: list[str]) -> str:
    """
    /transfer <n> <section>  -> queue a move into another section
    /transfer commit         -> apply queued moves
    /transfer cancel         -> drop queued moves
    """
    if not args:
        return "Usage: /transfer <n> <section> | /transfer commit | /transfer cancel"
    sub = args[0].lower()

    if sub == "commit":
        if state.transfer is None or not state.transfer.pending:
            return "Nothing to transfer."
        count = len(state.transfer.assignments)
        task_api.commit_transfer_deferred(state, threadsafe=True)
        return f"Moving {count} task(s)..."

    if sub == "cancel":
        state.transfer = None
        return "Transfer cancelled."

    if len(args) < 2:
        return "Usage: /transfer <n> <section>"
    task = _task_by_number(state, args[0])
    section_id = _section_by_number(state, " ".join(args[1:]))
    session = state.transfer or task_api.begin_transfer(state)
    session.assign(task.id, section_id)
    return f"{task.text!r} will move on /transfer commit ({len(session.assignments)} queued)."


def cmd_widget(state: AppState, args: list[str]) -> str:
    """Render what the widget currently sees."""
    consumer = WidgetConsumer(state.defaults, family=state.bridge.family)
    entry = consumer.load_entry()
    lines = [f"Widget: {entry.section_name} [{entry.color.value}, {entry.icon.value}]"]
    if not entry.rows:
        lines.append("  (empty)")
    for row in entry.rows:
        lines.append(f"  {'x' if row.complete else 'o'} {row.text}")
    return "\n".join(lines)


def cmd_sync(state: AppState, args: list[str]) -> str:
    result = state.bridge.reconcile()
    if not result.processed:
        return "Widget: nothing to sync."
    return (
        f"Widget sync: {result.direct_changes + result.queued_changes} change(s), "
        f"{result.skipped} skipped."
    )


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("sections", cmd_sections, help_text="List sections.")
registry.register("section", cmd_section, help_text="Manage sections: add | edit | delete | select | move.")
registry.register("list", cmd_list, help_text="Show tasks in the selected section.", aliases=["ls"])
registry.register("add", cmd_add, help_text="Add a task at the top: /add <text>.", aliases=["a"])
registry.register("done", cmd_done, help_text="Toggle completion: /done <n>.", aliases=["x"])
registry.register("move", cmd_move, help_text="Reorder open tasks: /move <from> <to>.")
registry.register("delete", cmd_delete, help_text="Delete tasks: /delete <n> [n ...].", aliases=["rm"])
registry.register("edit", cmd_edit, help_text="Rename a task: /edit <n> <text>.")
registry.register("due", cmd_due, help_text="Set due date/reminder: /due <n> <when|none> [repeat].")
registry.register("transfer", cmd_transfer, help_text="Move tasks between sections: /transfer <n> <section> | commit.")
registry.register("widget", cmd_widget, help_text="Show the widget's current view.")
registry.register("sync", cmd_sync, help_text="Apply pending widget changes now.")
