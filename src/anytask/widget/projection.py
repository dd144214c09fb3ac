# src/anytask/widget/projection.py

"""
Typed boundary between the app and the widget.

The app publishes a ProjectionSnapshot; the widget answers with WidgetIntent
values. Both travel through the shared key-value area, and this module is the
only place that knows the key names and their wire shapes.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..tasks.task_models import SectionColor, SectionIcon
from .shared_defaults import SharedDefaults

logger = logging.getLogger(__name__)

# ---- shared keys ----

KEY_SECTION_ID = "WidgetSectionID"
KEY_SECTION_NAME = "WidgetSectionName"
KEY_SECTION_COLOR = "WidgetSectionColor"
KEY_SECTION_ICON = "WidgetSectionIcon"
KEY_TASK_IDS = "WidgetTaskIDs"
KEY_TASK_TEXTS = "WidgetTaskTexts"
KEY_COMPLETED_DICT = "WidgetCompletedTaskIDsDict"
KEY_LAST_SELECTED = "LastSelectedSectionID"
KEY_DID_UPDATE = "WidgetDidUpdateSectionID"
KEY_DID_SWITCH = "WidgetDidSwitchSectionID"
KEY_TOGGLE_QUEUE = "TasksToToggle"
KEY_AVAILABLE_SECTIONS = "AvailableSections"
KEY_SECTION_TO_SHOW = "SectionToShowOnLaunch"

PLACEHOLDER_SECTION_NAME = "No List"


def all_ids_key(section_id: str) -> str:
    return f"AllSectionTaskIDs_{section_id}"


def all_texts_key(section_id: str) -> str:
    return f"AllSectionTaskTexts_{section_id}"


class WidgetFamily(Enum):
    SMALL = 3
    MEDIUM = 6

    @property
    def visible_count(self) -> int:
        return self.value

    @classmethod
    def parse(cls, raw: str | None) -> WidgetFamily:
        if (raw or "").strip().lower() == "small":
            return cls.SMALL
        return cls.MEDIUM


@dataclass(frozen=True, slots=True)
class AvailableSection:
    id: str
    color: SectionColor
    icon: SectionIcon

    def to_wire(self) -> dict[str, str]:
        return {"id": self.id, "colorName": self.color.value, "iconName": self.icon.value}

    @staticmethod
    def from_wire(raw: Any) -> AvailableSection | None:
        if not isinstance(raw, dict) or not raw.get("id"):
            return None
        return AvailableSection(
            id=str(raw["id"]),
            color=SectionColor.from_db(raw.get("colorName")),
            icon=SectionIcon.from_db(raw.get("iconName")),
        )


@dataclass(frozen=True, slots=True)
class TaskList:
    ids: tuple[str, ...] = ()
    texts: tuple[str, ...] = ()

    def head(self, n: int) -> TaskList:
        return TaskList(ids=self.ids[:n], texts=self.texts[:n])


@dataclass(frozen=True, slots=True)
class ProjectionSnapshot:
    """What the widget is allowed to know about the app's state."""

    section_id: str
    section_name: str
    section_color: SectionColor
    section_icon: SectionIcon
    all_tasks: TaskList
    visible_tasks: TaskList
    completed_ids_by_section: dict[str, tuple[str, ...]] = field(default_factory=dict)
    available_sections: tuple[AvailableSection, ...] = ()
    tasks_by_section: dict[str, TaskList] = field(default_factory=dict)

    @staticmethod
    def placeholder() -> ProjectionSnapshot:
        return ProjectionSnapshot(
            section_id="",
            section_name=PLACEHOLDER_SECTION_NAME,
            section_color=SectionColor.GRAY,
            section_icon=SectionIcon.LIST,
            all_tasks=TaskList(),
            visible_tasks=TaskList(),
        )

    def completed_ids(self, section_id: str | None = None) -> tuple[str, ...]:
        return self.completed_ids_by_section.get(section_id or self.section_id, ())


# ---- intents written by the widget ----


@dataclass(frozen=True, slots=True)
class ToggleTask:
    """Flip membership in the section's completed set and mark the section dirty."""

    section_id: str
    task_id: str


@dataclass(frozen=True, slots=True)
class QueueToggle:
    """Append to the pending-toggle list; the app flips the task on its next pass."""

    task_id: str
    timestamp: float


@dataclass(frozen=True, slots=True)
class SwitchSection:
    section_id: str


WidgetIntent = ToggleTask | QueueToggle | SwitchSection


@dataclass(frozen=True, slots=True)
class InboundWrites:
    """Everything the widget left behind since the last reconciliation."""

    dirty_section_id: str | None = None
    completed_ids: frozenset[str] = frozenset()
    queued_toggles: tuple[QueueToggle, ...] = ()
    switch_section_id: str | None = None
    # Raw queue length at read time, malformed entries included.
    queue_size: int = 0

    @property
    def empty(self) -> bool:
        return (
            self.dirty_section_id is None
            and not self.queue_size
            and self.switch_section_id is None
        )


# ---- codec ----


def _str_tuple(raw: Any) -> tuple[str, ...]:
    if not isinstance(raw, list):
        return ()
    return tuple(str(v) for v in raw if isinstance(v, (str, int)))


def _completed_dict(raw: Any) -> dict[str, tuple[str, ...]]:
    if not isinstance(raw, dict):
        return {}
    return {str(k): _str_tuple(v) for k, v in raw.items()}


def _task_list(ids: Any, texts: Any) -> TaskList:
    id_t = _str_tuple(ids)
    text_t = _str_tuple(texts)
    n = min(len(id_t), len(text_t))
    return TaskList(ids=id_t[:n], texts=text_t[:n])


def encode_snapshot(snapshot: ProjectionSnapshot) -> dict[str, Any]:
    values: dict[str, Any] = {
        KEY_SECTION_ID: snapshot.section_id,
        KEY_SECTION_NAME: snapshot.section_name,
        KEY_SECTION_COLOR: snapshot.section_color.value,
        KEY_SECTION_ICON: snapshot.section_icon.value,
        KEY_TASK_IDS: list(snapshot.visible_tasks.ids),
        KEY_TASK_TEXTS: list(snapshot.visible_tasks.texts),
        KEY_COMPLETED_DICT: {k: list(v) for k, v in snapshot.completed_ids_by_section.items()},
        KEY_AVAILABLE_SECTIONS: [s.to_wire() for s in snapshot.available_sections],
    }
    lists = dict(snapshot.tasks_by_section)
    if snapshot.section_id:
        lists[snapshot.section_id] = snapshot.all_tasks
    for section_id, task_list in lists.items():
        values[all_ids_key(section_id)] = list(task_list.ids)
        values[all_texts_key(section_id)] = list(task_list.texts)
    return values


def decode_snapshot(data: dict[str, Any], family: WidgetFamily = WidgetFamily.MEDIUM) -> ProjectionSnapshot:
    """Read a snapshot back; absent or malformed keys fall back to the placeholder values."""
    section_id = data.get(KEY_SECTION_ID)
    if not isinstance(section_id, str) or not section_id:
        base = ProjectionSnapshot.placeholder()
        return ProjectionSnapshot(
            section_id=base.section_id,
            section_name=base.section_name,
            section_color=base.section_color,
            section_icon=base.section_icon,
            all_tasks=base.all_tasks,
            visible_tasks=base.visible_tasks,
            completed_ids_by_section=_completed_dict(data.get(KEY_COMPLETED_DICT)),
        )

    name = data.get(KEY_SECTION_NAME)
    all_tasks = _task_list(data.get(all_ids_key(section_id)), data.get(all_texts_key(section_id)))
    if not all_tasks.ids:
        all_tasks = _task_list(data.get(KEY_TASK_IDS), data.get(KEY_TASK_TEXTS))

    available: list[AvailableSection] = []
    raw_available = data.get(KEY_AVAILABLE_SECTIONS)
    if isinstance(raw_available, list):
        for raw in raw_available:
            sec = AvailableSection.from_wire(raw)
            if sec is not None:
                available.append(sec)

    tasks_by_section = {
        sec.id: _task_list(data.get(all_ids_key(sec.id)), data.get(all_texts_key(sec.id)))
        for sec in available
    }

    return ProjectionSnapshot(
        section_id=section_id,
        section_name=name if isinstance(name, str) and name else PLACEHOLDER_SECTION_NAME,
        section_color=SectionColor.from_db(data.get(KEY_SECTION_COLOR)),
        section_icon=SectionIcon.from_db(data.get(KEY_SECTION_ICON)),
        all_tasks=all_tasks,
        visible_tasks=all_tasks.head(family.visible_count),
        completed_ids_by_section=_completed_dict(data.get(KEY_COMPLETED_DICT)),
        available_sections=tuple(available),
        tasks_by_section=tasks_by_section,
    )


def write_intent(defaults: SharedDefaults, intent: WidgetIntent) -> None:
    """Widget side: record an intent in the shared area."""
    if isinstance(intent, ToggleTask):
        completed = {k: list(v) for k, v in _completed_dict(defaults.get(KEY_COMPLETED_DICT)).items()}
        ids = completed.get(intent.section_id, [])
        if intent.task_id in ids:
            ids = [i for i in ids if i != intent.task_id]
        else:
            ids = ids + [intent.task_id]
        completed[intent.section_id] = ids
        defaults.update({KEY_COMPLETED_DICT: completed, KEY_DID_UPDATE: intent.section_id})
        return

    if isinstance(intent, QueueToggle):
        queue = defaults.get_list(KEY_TOGGLE_QUEUE)
        queue.append({"id": intent.task_id, "time": float(intent.timestamp)})
        defaults.set(KEY_TOGGLE_QUEUE, queue)
        return

    defaults.set(KEY_DID_SWITCH, intent.section_id)


def queue_toggle(task_id: str, *, now: float | None = None) -> QueueToggle:
    return QueueToggle(task_id=task_id, timestamp=time.time() if now is None else float(now))


def read_inbound(defaults: SharedDefaults) -> InboundWrites:
    """App side: collect pending widget writes without clearing them."""
    data = defaults.snapshot()

    dirty = data.get(KEY_DID_UPDATE)
    dirty_id = dirty if isinstance(dirty, str) and dirty else None
    completed: frozenset[str] = frozenset()
    if dirty_id is not None:
        completed = frozenset(_completed_dict(data.get(KEY_COMPLETED_DICT)).get(dirty_id, ()))

    queued: list[QueueToggle] = []
    raw_queue = data.get(KEY_TOGGLE_QUEUE)
    queue_size = 0
    if isinstance(raw_queue, list):
        queue_size = len(raw_queue)
        for entry in raw_queue:
            if not isinstance(entry, dict) or not entry.get("id"):
                logger.debug("Skipping malformed toggle entry: %r", entry)
                continue
            try:
                ts = float(entry.get("time") or 0.0)
            except (TypeError, ValueError):
                ts = 0.0
            queued.append(QueueToggle(task_id=str(entry["id"]), timestamp=ts))

    switch = data.get(KEY_DID_SWITCH)
    switch_id = switch if isinstance(switch, str) and switch else None

    return InboundWrites(
        dirty_section_id=dirty_id,
        completed_ids=completed,
        queued_toggles=tuple(queued),
        switch_section_id=switch_id,
        queue_size=queue_size,
    )
