# tests/test_ordering.py

from __future__ import annotations

import random

from anytask.tasks import completion, ordering
from anytask.tasks.task_models import Task


def _task(tid: str, order: int, *, complete: bool = False, completed_at: float | None = None) -> Task:
    return Task(
        id=tid,
        section_id="s1",
        text=tid.upper(),
        complete=complete,
        created_at=0.0,
        order=order,
        completed_at=completed_at,
    )


def _ids(tasks: list[Task]) -> list[str]:
    return [t.id for t in tasks]


def test_insert_at_top_shifts_incomplete_only() -> None:
    x = _task("x", 0)
    y = _task("y", 1)
    done = _task("done", 0, complete=True, completed_at=5.0)
    tasks = [x, y, done]

    d = _task("d", 99)
    ordering.insert_at_top(tasks, d)
    tasks.append(d)

    assert (d.order, x.order, y.order) == (0, 1, 2)
    assert done.order == 0
    assert ordering.is_dense(tasks)


def test_move_single_item_down_and_up() -> None:
    a, b, c, d = (_task(t, i) for i, t in enumerate("abcd"))
    tasks = [a, b, c, d]

    # "move a after c": destination is the index after c.
    assert _ids(ordering.move(tasks, [0], 3)) == ["b", "c", "a", "d"]
    assert (b.order, c.order, a.order, d.order) == (0, 1, 2, 3)

    assert _ids(ordering.move(tasks, [3], 0)) == ["d", "b", "c", "a"]
    assert ordering.is_dense(tasks)


def test_move_multiple_keeps_relative_order() -> None:
    tasks = [_task(t, i) for i, t in enumerate("abcde")]
    result = ordering.move(tasks, [3, 0], 5)
    assert _ids(result) == ["b", "c", "e", "a", "d"]
    assert ordering.is_dense(tasks)


def test_move_onto_itself_changes_nothing() -> None:
    tasks = [_task(t, i) for i, t in enumerate("abc")]
    before = [(t.id, t.order) for t in tasks]

    result = ordering.move(tasks, [1], 1)
    assert _ids(result) == ["a", "b", "c"]
    assert ordering.renumber(result) == 0
    assert [(t.id, t.order) for t in tasks] == before


def test_move_items_ignores_out_of_range_sources() -> None:
    assert ordering.move_items(["a", "b", "c"], [7, -1], 0) == ["a", "b", "c"]
    assert ordering.move_items(["a", "b", "c"], [0], 99) == ["b", "c", "a"]


def test_renormalize_closes_gaps_and_is_idempotent() -> None:
    tasks = [_task("a", 0), _task("b", 4), _task("c", 9)]
    assert not ordering.is_dense(tasks)

    assert ordering.renormalize(tasks) == 2
    assert [t.order for t in tasks] == [0, 1, 2]
    assert ordering.renormalize(tasks) == 0


def test_completed_sorted_newest_first_with_id_tiebreak() -> None:
    tasks = [
        _task("z", 0, complete=True, completed_at=10.0),
        _task("a", 0, complete=True, completed_at=10.0),
        _task("m", 0, complete=True, completed_at=20.0),
        _task("old", 0, complete=True, completed_at=None),
        _task("open", 0),
    ]
    assert _ids(ordering.completed_in_order(tasks)) == ["m", "a", "z", "old"]
    assert _ids(ordering.display_order(tasks)) == ["open", "m", "a", "z", "old"]


def test_random_operations_keep_ranks_dense() -> None:
    rng = random.Random(1234)
    tasks: list[Task] = []
    counter = 0

    for step in range(400):
        op = rng.choice(["insert", "move", "toggle", "delete"])
        incomplete = ordering.incomplete_in_order(tasks)

        if op == "insert" or not tasks:
            counter += 1
            task = _task(f"t{counter:03d}", 0)
            ordering.insert_at_top(tasks, task)
            tasks.append(task)
        elif op == "move" and incomplete:
            picks = rng.sample(range(len(incomplete)), k=rng.randint(1, len(incomplete)))
            ordering.move(tasks, picks, rng.randint(0, len(incomplete)))
        elif op == "toggle":
            completion.toggle(rng.choice(tasks), tasks, now=float(step))
        else:
            tasks.remove(rng.choice(tasks))
            # Deletion leaves gaps until the list is shown again.
            ordering.renormalize(tasks)

        assert ordering.is_dense(tasks), f"step {step} ({op}) broke density"


def test_insert_at_top_settles_duplicate_ranks_first() -> None:
    a = _task("a", 0)
    moved_in = _task("x", 0)
    moved_in.created_at = 1.0
    tasks = [a, moved_in]

    d = _task("d", 0)
    ordering.insert_at_top(tasks, d)
    tasks.append(d)

    assert (d.order, a.order, moved_in.order) == (0, 1, 2)
    assert ordering.is_dense(tasks)
