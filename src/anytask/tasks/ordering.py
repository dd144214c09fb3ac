# src/anytask/tasks/ordering.py

"""
Ordering rules for tasks within a section.

Incomplete tasks carry a dense zero-based `order` (0..k-1) inside their section.
Completed tasks do not take part in that ranking; they are displayed newest
completion first.

All functions operate on plain lists of Task objects and mutate them in place.
Persisting the result is the caller's job.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import TypeVar

from .task_models import Task

T = TypeVar("T")


def incomplete_in_order(tasks: Iterable[Task]) -> list[Task]:
    """Incomplete tasks by `order`; ties (only possible between operations) by creation time."""
    return sorted(
        (t for t in tasks if not t.complete),
        key=lambda t: (t.order, t.created_at, t.id),
    )


def completed_in_order(tasks: Iterable[Task]) -> list[Task]:
    """
    Completed tasks, most recently completed first.

    A missing completed_at sorts as the earliest possible time.
    Equal timestamps fall back to task id ascending.
    """
    done = sorted((t for t in tasks if t.complete), key=lambda t: t.id)
    # Stable sort keeps the id order inside equal timestamps.
    done.sort(
        key=lambda t: t.completed_at if t.completed_at is not None else float("-inf"),
        reverse=True,
    )
    return done


def display_order(tasks: Iterable[Task]) -> list[Task]:
    """Full list as shown to the user: incomplete by rank, then completed by recency."""
    items = list(tasks)
    return incomplete_in_order(items) + completed_in_order(items)


def renumber(ordered: Sequence[Task]) -> int:
    """Assign order = position. Returns how many tasks actually changed."""
    changed = 0
    for index, task in enumerate(ordered):
        if task.order != index:
            task.order = index
            changed += 1
    return changed


def renormalize(tasks: Iterable[Task]) -> int:
    """Close gaps and duplicates among the incomplete tasks of one section."""
    return renumber(incomplete_in_order(tasks))


def is_dense(tasks: Iterable[Task]) -> bool:
    orders = sorted(t.order for t in tasks if not t.complete)
    return orders == list(range(len(orders)))


def insert_at_top(siblings: Iterable[Task], task: Task) -> None:
    """
    New tasks go first: the newcomer gets 0 and every incomplete sibling moves
    down one. Duplicate or missing ranks (e.g. left by a section transfer) are
    settled first, so the section is dense afterwards.
    """
    others = [s for s in siblings if s is not task and s.id != task.id]
    renormalize(others)
    for other in others:
        if other.complete:
            continue
        other.order += 1
    task.order = 0


def move_items(items: Sequence[T], source: Iterable[int], destination: int) -> list[T]:
    """
    List splice: remove the items at `source` and re-insert them before the
    element that was at `destination` in the original list.

    Multi-item selections keep their relative order. `destination` may equal
    len(items) to move to the end.
    """
    picked = sorted({i for i in source if 0 <= i < len(items)})
    if not picked:
        return list(items)

    destination = max(0, min(int(destination), len(items)))
    picked_set = set(picked)

    moving = [items[i] for i in picked]
    remaining = [item for i, item in enumerate(items) if i not in picked_set]
    insert_at = destination - sum(1 for i in picked if i < destination)

    return remaining[:insert_at] + moving + remaining[insert_at:]


def move(tasks: Iterable[Task], source: Iterable[int], destination: int) -> list[Task]:
    """
    Drag-reorder inside the incomplete list of one section.

    Indices refer to the current incomplete list as displayed. Every item in the
    resulting sequence is renumbered, so repeating a move that leaves the list
    unchanged writes nothing.
    """
    reordered = move_items(incomplete_in_order(tasks), source, destination)
    renumber(reordered)
    return reordered
