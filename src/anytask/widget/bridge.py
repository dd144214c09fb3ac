# src/anytask/widget/bridge.py

"""
App-side half of the widget boundary.

publish() writes a ProjectionSnapshot of the selected section into the shared
area. reconcile() folds whatever the widget wrote since the last pass back into
the entity store, clears those writes, and republishes. Running reconcile()
again with nothing new pending touches nothing.
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass

from ..core.ports import EntityRepo
from ..tasks import completion, ordering
from ..tasks.task_models import Section, Task
from .projection import (
    KEY_DID_SWITCH,
    KEY_DID_UPDATE,
    KEY_LAST_SELECTED,
    KEY_TOGGLE_QUEUE,
    AvailableSection,
    InboundWrites,
    ProjectionSnapshot,
    TaskList,
    WidgetFamily,
    encode_snapshot,
    read_inbound,
)
from .shared_defaults import SharedDefaults

logger = logging.getLogger(__name__)

TaskListener = Callable[[Task], None]


@dataclass(slots=True)
class ReconcileResult:
    direct_changes: int = 0
    queued_changes: int = 0
    skipped: int = 0
    switched_to: str | None = None
    processed: bool = False

    @property
    def changed(self) -> bool:
        return bool(self.direct_changes or self.queued_changes or self.switched_to)


class SharedStateBridge:
    def __init__(
        self,
        store: EntityRepo,
        defaults: SharedDefaults,
        *,
        family: WidgetFamily = WidgetFamily.MEDIUM,
        clock: Callable[[], float] = time.time,
        on_task_changed: TaskListener | None = None,
    ) -> None:
        self._store = store
        self._defaults = defaults
        self._family = family
        self._clock = clock
        self._on_task_changed = on_task_changed
        self._selected_section_id: str | None = None

    @property
    def defaults(self) -> SharedDefaults:
        return self._defaults

    @property
    def family(self) -> WidgetFamily:
        return self._family

    @property
    def selected_section_id(self) -> str | None:
        return self._selected_section_id

    def set_task_listener(self, listener: TaskListener | None) -> None:
        self._on_task_changed = listener

    # ---- selection ----

    def select(self, section_id: str | None, *, publish: bool = True) -> Section | None:
        section = self._store.get_section(section_id)
        if section is None:
            return None
        self._selected_section_id = section.id
        self._defaults.set(KEY_LAST_SELECTED, section.id)
        if publish:
            self.publish()
        return section

    def restore_selection(self) -> Section | None:
        """Last selected section if it still exists, else the first one by order."""
        section = self._store.get_section(self._defaults.get_str(KEY_LAST_SELECTED))
        if section is None:
            sections = self._store.fetch_sections()
            section = sections[0] if sections else None
        self._selected_section_id = section.id if section else None
        return section

    def clear_selection(self) -> None:
        self._selected_section_id = None

    # ---- outbound ----

    def _task_list(self, section_id: str) -> TaskList:
        tasks = ordering.display_order(self._store.fetch_tasks(section_id))
        return TaskList(ids=tuple(t.id for t in tasks), texts=tuple(t.text for t in tasks))

    def build_snapshot(self) -> ProjectionSnapshot:
        sections = self._store.fetch_sections()
        selected = self._store.get_section(self._selected_section_id)
        if selected is None:
            return ProjectionSnapshot.placeholder()

        tasks_by_section = {s.id: self._task_list(s.id) for s in sections}
        completed = {
            s.id: tuple(t.id for t in ordering.completed_in_order(self._store.fetch_tasks(s.id)))
            for s in sections
        }
        all_tasks = tasks_by_section.get(selected.id, TaskList())

        return ProjectionSnapshot(
            section_id=selected.id,
            section_name=selected.name,
            section_color=selected.color,
            section_icon=selected.icon,
            all_tasks=all_tasks,
            visible_tasks=all_tasks.head(self._family.visible_count),
            completed_ids_by_section=completed,
            available_sections=tuple(AvailableSection(id=s.id, color=s.color, icon=s.icon) for s in sections),
            tasks_by_section=tasks_by_section,
        )

    def publish(self) -> ProjectionSnapshot:
        snapshot = self.build_snapshot()
        self._defaults.update(encode_snapshot(snapshot))
        logger.debug(
            "Projection published section=%s tasks=%s",
            snapshot.section_id,
            len(snapshot.all_tasks.ids),
        )
        return snapshot

    # ---- inbound ----

    def _notify(self, task: Task) -> None:
        if self._on_task_changed is None:
            return
        try:
            self._on_task_changed(task)
        except Exception:
            logger.exception("Task listener failed task_id=%s", task.id)

    def _apply_completed_set(self, section_id: str, completed_ids: frozenset[str], result: ReconcileResult) -> None:
        section = self._store.get_section(section_id)
        if section is None:
            logger.debug("Dirty section %s no longer exists; skipping", section_id)
            result.skipped += 1
            return

        tasks = self._store.fetch_tasks(section.id)
        now = self._clock()

        to_complete = sorted(
            (t for t in tasks if not t.complete and t.id in completed_ids),
            key=lambda t: t.order,
            reverse=True,
        )
        to_restore = sorted(
            (t for t in tasks if t.complete and t.id not in completed_ids),
            key=lambda t: (t.previous_order is None, t.previous_order or 0),
        )

        for task in to_complete:
            completion.mark_complete(task, tasks, now=now)
            result.direct_changes += 1
            self._notify(task)
        for task in to_restore:
            completion.mark_incomplete(task, tasks)
            result.direct_changes += 1
            self._notify(task)

    def _apply_queue(self, writes: InboundWrites, result: ReconcileResult) -> None:
        # Two toggles of the same task cancel out.
        counts = Counter(entry.task_id for entry in writes.queued_toggles)
        seen: set[str] = set()
        now = self._clock()
        for entry in writes.queued_toggles:
            task_id = entry.task_id
            if task_id in seen:
                continue
            seen.add(task_id)
            if counts[task_id] % 2 == 0:
                continue
            task = self._store.get_task(task_id)
            if task is None:
                logger.debug("Queued toggle for missing task %s; skipping", task_id)
                result.skipped += 1
                continue
            completion.toggle(task, self._store.fetch_tasks(task.section_id), now=now)
            result.queued_changes += 1
            self._notify(task)

    def _clear_processed(self, writes: InboundWrites) -> None:
        """
        Remove exactly what was processed.

        The widget may have written again since read_inbound(); newer flag values
        and queue entries appended after the read are left for the next pass.
        """
        data = self._defaults.snapshot()
        updates: dict[str, object] = {}
        removals: list[str] = []

        if writes.dirty_section_id is not None and data.get(KEY_DID_UPDATE) == writes.dirty_section_id:
            removals.append(KEY_DID_UPDATE)
        if writes.switch_section_id is not None and data.get(KEY_DID_SWITCH) == writes.switch_section_id:
            removals.append(KEY_DID_SWITCH)
        if writes.queue_size:
            queue = data.get(KEY_TOGGLE_QUEUE)
            rest = queue[writes.queue_size:] if isinstance(queue, list) else []
            if rest:
                updates[KEY_TOGGLE_QUEUE] = rest
            else:
                removals.append(KEY_TOGGLE_QUEUE)

        if removals:
            self._defaults.remove(*removals)
        if updates:
            self._defaults.update(updates)

    def reconcile(self) -> ReconcileResult:
        """Apply pending widget writes to the store; no-op when nothing is pending."""
        result = ReconcileResult()
        writes = read_inbound(self._defaults)
        if writes.empty:
            return result
        result.processed = True

        if writes.dirty_section_id is not None:
            self._apply_completed_set(writes.dirty_section_id, writes.completed_ids, result)
        if writes.queued_toggles:
            self._apply_queue(writes, result)

        if result.direct_changes or result.queued_changes:
            if not self._store.save():
                logger.warning("Widget changes applied in memory but not persisted")

        if writes.switch_section_id is not None:
            section = self._store.get_section(writes.switch_section_id)
            if section is None:
                logger.debug("Widget switched to missing section %s; ignoring", writes.switch_section_id)
                result.skipped += 1
            else:
                self._selected_section_id = section.id
                self._defaults.set(KEY_LAST_SELECTED, section.id)
                result.switched_to = section.id

        self._clear_processed(writes)
        self.publish()

        logger.info(
            "Reconciled widget writes direct=%s queued=%s skipped=%s switched_to=%s",
            result.direct_changes,
            result.queued_changes,
            result.skipped,
            result.switched_to,
        )
        return result
