# src/anytask/tasks/completion.py

"""
Incomplete <-> Complete transitions.

Completing a task remembers its rank in `previous_order` and closes the gap it
leaves behind. Un-completing puts it back at that rank (clamped to the end of
the current list) and clears the memory.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable

from .task_models import Task

logger = logging.getLogger(__name__)


def _incomplete_siblings(task: Task, siblings: Iterable[Task]) -> list[Task]:
    return [s for s in siblings if s is not task and s.id != task.id and not s.complete]


def mark_complete(task: Task, siblings: Iterable[Task], *, now: float | None = None) -> bool:
    """Returns False if the task was already complete."""
    if task.complete:
        return False
    if now is None:
        now = time.time()

    previous = task.order
    for other in _incomplete_siblings(task, siblings):
        if other.order > previous:
            other.order -= 1

    task.previous_order = previous
    task.complete = True
    task.completed_at = float(now)
    task.order = 0
    logger.debug("Task %s complete (previous_order=%s)", task.id, previous)
    return True


def mark_incomplete(task: Task, siblings: Iterable[Task]) -> bool:
    """Returns False if the task was already incomplete."""
    if not task.complete:
        return False

    others = _incomplete_siblings(task, siblings)

    if task.previous_order is None:
        # No remembered rank: behave like a fresh insert.
        target = 0
    else:
        target = max(0, min(int(task.previous_order), len(others)))

    for other in others:
        if other.order >= target:
            other.order += 1

    task.complete = False
    task.completed_at = None
    task.order = target
    task.previous_order = None
    logger.debug("Task %s incomplete (order=%s)", task.id, target)
    return True


def set_complete(
    task: Task,
    siblings: Iterable[Task],
    complete: bool,
    *,
    now: float | None = None,
) -> bool:
    if complete:
        return mark_complete(task, siblings, now=now)
    return mark_incomplete(task, siblings)


def toggle(task: Task, siblings: Iterable[Task], *, now: float | None = None) -> bool:
    """Flip completion state. Returns the new `complete` value."""
    set_complete(task, siblings, not task.complete, now=now)
    return task.complete
