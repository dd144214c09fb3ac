# src/anytask/widget/consumer.py

"""
Widget-side half of the boundary.

The widget never touches the entity store. It reads the published projection
on its own cadence and records intents for the app to reconcile later.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from ..tasks.task_models import SectionColor, SectionIcon
from .projection import (
    ProjectionSnapshot,
    SwitchSection,
    ToggleTask,
    WidgetFamily,
    WidgetIntent,
    decode_snapshot,
    queue_toggle,
    write_intent,
)
from .shared_defaults import SharedDefaults

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_SECONDS = 300


@dataclass(slots=True, frozen=True)
class WidgetRow:
    task_id: str
    text: str
    complete: bool


@dataclass(slots=True, frozen=True)
class WidgetEntry:
    date: float
    refresh_after: float
    section_id: str
    section_name: str
    color: SectionColor
    icon: SectionIcon
    rows: tuple[WidgetRow, ...]


class WidgetConsumer:
    def __init__(
        self,
        defaults: SharedDefaults,
        *,
        family: WidgetFamily = WidgetFamily.MEDIUM,
        refresh_seconds: int = DEFAULT_REFRESH_SECONDS,
        direct_writes: bool = True,
    ) -> None:
        self._defaults = defaults
        self._family = family
        self._refresh_seconds = refresh_seconds
        # Without direct writes every toggle goes through the pending queue.
        self._direct_writes = direct_writes

    def snapshot(self) -> ProjectionSnapshot:
        return decode_snapshot(self._defaults.snapshot(), self._family)

    def load_entry(self, *, now: float | None = None) -> WidgetEntry:
        if now is None:
            now = time.time()
        snap = self.snapshot()
        done = set(snap.completed_ids())
        rows = tuple(
            WidgetRow(task_id=tid, text=text, complete=tid in done)
            for tid, text in zip(snap.visible_tasks.ids, snap.visible_tasks.texts)
        )
        return WidgetEntry(
            date=now,
            refresh_after=now + self._refresh_seconds,
            section_id=snap.section_id,
            section_name=snap.section_name,
            color=snap.section_color,
            icon=snap.section_icon,
            rows=rows,
        )

    def _emit(self, intent: WidgetIntent) -> None:
        write_intent(self._defaults, intent)
        logger.debug("Widget intent recorded: %r", intent)

    def toggle(self, task_id: str, *, now: float | None = None) -> WidgetIntent | None:
        snap = self.snapshot()
        if not snap.section_id:
            return None
        intent: WidgetIntent
        if self._direct_writes:
            intent = ToggleTask(section_id=snap.section_id, task_id=task_id)
        else:
            intent = queue_toggle(task_id, now=now)
        self._emit(intent)
        return intent

    def switch_section(self, section_id: str) -> WidgetIntent | None:
        known = {s.id for s in self.snapshot().available_sections}
        if section_id not in known:
            logger.debug("Widget asked for unknown section %s", section_id)
            return None
        intent = SwitchSection(section_id=section_id)
        self._emit(intent)
        return intent
