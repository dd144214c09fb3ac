# src/anytask/tasks/task_api.py

"""
Use cases on top of the entity store.

Every mutating helper follows the same shape: change the objects in memory,
keep the ordering rules intact, save (best-effort), then republish the widget
projection. Invalid input raises ValueError; a failed save is logged and the
in-memory change stays applied.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field

from ..core.state import AppState
from ..reminders.reminder_models import task_id_from_identifier
from ..widget.projection import KEY_SECTION_TO_SHOW
from . import completion, ordering
from .task_models import RepeatInterval, Section, SectionColor, SectionIcon, Task

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class TaskListing:
    section: Section
    incomplete: list[Task]
    completed: list[Task]

    @property
    def all(self) -> list[Task]:
        return self.incomplete + self.completed


def _new_id() -> str:
    return str(uuid.uuid4())


def _persist(state: AppState, what: str) -> bool:
    ok = state.store.save()
    if not ok:
        logger.warning("Save failed after %s; change kept in memory only", what)
    state.bridge.publish()
    return ok


def _require_section(state: AppState, section_id: str | None) -> Section:
    section = state.store.get_section(section_id or state.bridge.selected_section_id)
    if section is None:
        raise ValueError(f"Unknown section: {section_id!r}")
    return section


def _require_task(state: AppState, task_id: str) -> Task:
    task = state.store.get_task(task_id)
    if task is None:
        raise ValueError(f"Unknown task: {task_id!r}")
    return task


def _app_name(state: AppState) -> str:
    return str(getattr(state.settings, "app_name", "AnyTask") or "AnyTask")


# ---- reminders ----


def sync_reminders(state: AppState, task: Task, *, now: float | None = None) -> None:
    """Schedule reminders for an incomplete task with a due date; cancel otherwise."""
    if state.reminders is None:
        return
    try:
        if task.complete or task.due_at is None:
            state.reminders.cancel_for_task(task.id)
            return
        section = state.store.get_section(task.section_id)
        title = section.name if section else _app_name(state)
        state.reminders.schedule_for_task(task, title=title, now=now)
    except Exception:
        logger.exception("Reminder sync failed task_id=%s", task.id)


def handle_delivered_reminder(state: AppState, identifier: str, *, now: float | None = None) -> Task | None:
    """
    A reminder fired.

    Remember the task's section so the next launch opens it. An incomplete
    repeating task gets its due date moved to now + interval and is scheduled
    again.
    """
    task = state.store.get_task(task_id_from_identifier(identifier))
    if task is None:
        logger.debug("Delivered reminder %s for missing task", identifier)
        return None

    state.defaults.set(KEY_SECTION_TO_SHOW, task.section_id)

    interval = task.repeat_interval.seconds
    if task.complete or interval is None:
        return task

    if now is None:
        now = time.time()
    task.due_at = now + interval
    if not state.store.save():
        logger.warning("Save failed after rescheduling task %s", task.id)
    sync_reminders(state, task, now=now)
    return task


# ---- sections ----


def ensure_default_section(state: AppState) -> Section:
    """
    First launch creates the non-editable catch-all section. Later launches
    restore the last selected section (or fall back to the first one).
    """
    sections = state.store.fetch_sections()
    if not sections:
        name = str(getattr(state.settings, "default_section_name", "General") or "General")
        section = Section(
            id=_new_id(),
            name=name,
            color=SectionColor.GRAY,
            icon=SectionIcon.TRAY,
            is_editable=False,
            order=0,
        )
        state.store.insert(section)
        logger.info("Created default section %s", section.name)
        state.bridge.select(section.id, publish=False)
        _persist(state, "default section bootstrap")
        return section

    return state.bridge.restore_selection() or sections[0]


def select_section(state: AppState, section_id: str) -> Section:
    section = state.bridge.select(section_id)
    if section is None:
        raise ValueError(f"Unknown section: {section_id!r}")
    return section


def selected_section(state: AppState) -> Section | None:
    return state.store.get_section(state.bridge.selected_section_id)


def add_section(
    state: AppState,
    name: str,
    *,
    color: str | SectionColor = SectionColor.BLUE,
    icon: str | SectionIcon = SectionIcon.LIST,
    select: bool = True,
) -> Section:
    name = (name or "").strip()
    if not name:
        raise ValueError("Section name is required")

    section = Section(
        id=_new_id(),
        name=name,
        color=SectionColor.parse(color),
        icon=SectionIcon.parse(icon),
        is_editable=True,
        order=len(state.store.fetch_sections()),
    )
    state.store.insert(section)
    if select:
        state.bridge.select(section.id, publish=False)
    _persist(state, "add section")
    logger.info("Section added id=%s name=%s", section.id, section.name)
    return section


def edit_section(
    state: AppState,
    section_id: str,
    *,
    name: str | None = None,
    color: str | SectionColor | None = None,
    icon: str | SectionIcon | None = None,
) -> Section:
    section = _require_section(state, section_id)
    if not section.is_editable:
        raise ValueError(f"Section {section.name!r} cannot be edited")

    if name is not None:
        name = name.strip()
        if not name:
            raise ValueError("Section name is required")
    new_color = SectionColor.parse(color) if color is not None else None
    new_icon = SectionIcon.parse(icon) if icon is not None else None

    if name is not None:
        section.name = name
    if new_color is not None:
        section.color = new_color
    if new_icon is not None:
        section.icon = new_icon
    _persist(state, "edit section")
    return section


def delete_section(state: AppState, section_id: str) -> int:
    """Delete a section and every task in it. Returns the number of tasks removed."""
    section = _require_section(state, section_id)
    if not section.is_editable:
        raise ValueError(f"Section {section.name!r} cannot be deleted")

    owned = state.store.fetch_tasks(section.id)
    for task in owned:
        if state.reminders is not None:
            state.reminders.cancel_for_task(task.id)
        state.store.delete(task)
    state.store.delete(section)

    ordering.renumber(state.store.fetch_sections())

    if state.bridge.selected_section_id == section.id:
        remaining = state.store.fetch_sections()
        if remaining:
            state.bridge.select(remaining[0].id, publish=False)
        else:
            state.bridge.clear_selection()

    _persist(state, "delete section")
    logger.info("Section deleted id=%s tasks_removed=%s", section.id, len(owned))
    return len(owned)


def move_sections(state: AppState, source: Iterable[int], destination: int) -> list[Section]:
    reordered = ordering.move_items(state.store.fetch_sections(), source, destination)
    ordering.renumber(reordered)
    _persist(state, "move sections")
    return reordered


# ---- tasks ----


def list_tasks(state: AppState, section_id: str | None = None) -> TaskListing:
    """
    Materialize a section's list. Gaps left by deletions or transfers are
    closed here, so the incomplete ranks are dense whenever a list is shown.
    """
    section = _require_section(state, section_id)
    tasks = state.store.fetch_tasks(section.id)
    if ordering.renormalize(tasks):
        logger.debug("Renormalized order in section %s", section.id)
        if not state.store.save():
            logger.warning("Save failed after renormalizing section %s", section.id)
    return TaskListing(
        section=section,
        incomplete=ordering.incomplete_in_order(tasks),
        completed=ordering.completed_in_order(tasks),
    )


def add_task(
    state: AppState,
    text: str,
    *,
    section_id: str | None = None,
    due_at: float | None = None,
    repeat: str | RepeatInterval = RepeatInterval.NEVER,
    now: float | None = None,
) -> Task:
    text = (text or "").strip()
    if not text:
        raise ValueError("Task text is required")
    section = _require_section(state, section_id)
    if now is None:
        now = time.time()

    task = Task(
        id=_new_id(),
        section_id=section.id,
        text=text,
        complete=False,
        created_at=float(now),
        order=0,
        due_at=due_at,
        repeat_interval=RepeatInterval(repeat),
    )
    ordering.insert_at_top(state.store.fetch_tasks(section.id), task)
    state.store.insert(task)
    _persist(state, "add task")
    sync_reminders(state, task, now=now)
    logger.debug("Task added id=%s section=%s", task.id, section.id)
    return task


def edit_task_text(state: AppState, task_id: str, text: str) -> Task:
    text = (text or "").strip()
    if not text:
        raise ValueError("Task text is required")
    task = _require_task(state, task_id)
    task.text = text
    _persist(state, "edit task")
    sync_reminders(state, task)
    return task


def set_due_date(
    state: AppState,
    task_id: str,
    due_at: float | None,
    *,
    repeat: str | RepeatInterval | None = None,
    now: float | None = None,
) -> Task:
    task = _require_task(state, task_id)
    # Validate before touching the task so a bad repeat leaves it as it was.
    interval = task.repeat_interval if repeat is None else RepeatInterval(repeat)
    if due_at is None:
        interval = RepeatInterval.NEVER
    task.due_at = due_at
    task.repeat_interval = interval
    _persist(state, "set due date")
    sync_reminders(state, task, now=now)
    return task


def delete_tasks(state: AppState, task_ids: Iterable[str]) -> int:
    """Remove tasks. Surviving ranks may have gaps until the next list_tasks()."""
    removed = 0
    for task_id in task_ids:
        task = state.store.get_task(task_id)
        if task is None:
            continue
        if state.reminders is not None:
            state.reminders.cancel_for_task(task.id)
        state.store.delete(task)
        removed += 1
    if removed:
        _persist(state, "delete tasks")
    return removed


def move_tasks(state: AppState, source: Iterable[int], destination: int, *, section_id: str | None = None) -> list[Task]:
    section = _require_section(state, section_id)
    reordered = ordering.move(state.store.fetch_tasks(section.id), source, destination)
    _persist(state, "move tasks")
    return reordered


def set_task_complete(state: AppState, task_id: str, complete: bool, *, now: float | None = None) -> Task:
    task = _require_task(state, task_id)
    siblings = state.store.fetch_tasks(task.section_id)
    if completion.set_complete(task, siblings, complete, now=now):
        _persist(state, "completion change")
        sync_reminders(state, task, now=now)
    return task


def toggle_task(state: AppState, task_id: str, *, now: float | None = None) -> Task:
    task = _require_task(state, task_id)
    return set_task_complete(state, task.id, not task.complete, now=now)


def toggle_task_deferred(state: AppState, task_id: str, *, threadsafe: bool = False) -> None:
    """
    Toggle after the animate-out delay; a second toggle before then restarts it.

    Pass threadsafe=True when calling from outside the committer's loop thread.
    """
    _require_task(state, task_id)

    def _commit() -> None:
        with state.lock:
            if state.store.get_task(task_id) is None:
                logger.debug("Deferred toggle dropped; task %s is gone", task_id)
                return
            toggle_task(state, task_id)

    if threadsafe:
        state.committer.schedule_threadsafe(task_id, _commit, label="toggle")
    else:
        state.committer.schedule(task_id, _commit, label="toggle")


# ---- cross-section transfer ----


@dataclass(slots=True)
class SectionTransferSession:
    """
    Edit-mode reassignment of tasks to other sections.

    Assignments accumulate until commit(); ranks in the destination section are
    not recomputed then and settle on the next move, insert or list.
    """

    assignments: dict[str, str] = field(default_factory=dict)

    def assign(self, task_id: str, section_id: str) -> None:
        self.assignments[task_id] = section_id

    def unassign(self, task_id: str) -> None:
        self.assignments.pop(task_id, None)

    def clear(self) -> None:
        self.assignments.clear()

    @property
    def pending(self) -> bool:
        return bool(self.assignments)


def begin_transfer(state: AppState) -> SectionTransferSession:
    state.transfer = SectionTransferSession()
    return state.transfer


def commit_transfer(state: AppState, session: SectionTransferSession | None = None) -> int:
    session = session or state.transfer
    if session is None or not session.pending:
        return 0

    moved = 0
    for task_id, section_id in list(session.assignments.items()):
        task = state.store.get_task(task_id)
        target = state.store.get_section(section_id)
        if task is None or target is None:
            logger.debug("Transfer skipped task=%s section=%s", task_id, section_id)
            continue
        if task.section_id != target.id:
            task.section_id = target.id
            moved += 1

    session.clear()
    if state.transfer is session:
        state.transfer = None
    if moved:
        _persist(state, "section transfer")
    logger.info("Transfer committed moved=%s", moved)
    return moved


def commit_transfer_deferred(
    state: AppState,
    session: SectionTransferSession | None = None,
    *,
    threadsafe: bool = False,
) -> None:
    session = session or state.transfer
    if session is None:
        return

    def _commit() -> None:
        with state.lock:
            commit_transfer(state, session)

    if threadsafe:
        state.committer.schedule_threadsafe("transfer", _commit, label="transfer")
    else:
        state.committer.schedule("transfer", _commit, label="transfer")


# ---- app lifecycle ----


def on_launch(state: AppState) -> Section:
    """Bootstrap, fold in widget writes made while the app was closed, publish."""
    section = ensure_default_section(state)
    state.bridge.reconcile()
    state.bridge.publish()
    return selected_section(state) or section


def on_foreground(state: AppState) -> bool:
    """Returns True if the widget had changed anything."""
    result = state.bridge.reconcile()
    return result.changed
