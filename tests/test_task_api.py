# tests/test_task_api.py

from __future__ import annotations

import pytest

from anytask.cli.bootstrap import create_initial_state
from anytask.tasks import ordering, task_api
from anytask.tasks.task_models import RepeatInterval, SectionColor, SectionIcon, Task
from anytask.widget.projection import KEY_LAST_SELECTED, KEY_SECTION_TO_SHOW


def test_first_launch_creates_locked_default_section(state) -> None:
    section = task_api.ensure_default_section(state)

    assert section.name == "General"
    assert section.is_editable is False
    assert section.color is SectionColor.GRAY
    assert section.icon is SectionIcon.TRAY
    assert state.selected_section_id == section.id
    assert state.defaults.get_str(KEY_LAST_SELECTED) == section.id

    # Second call does not create another one.
    assert task_api.ensure_default_section(state).id == section.id
    assert state.store.count_sections() == 1


def test_default_section_cannot_be_edited_or_deleted(state, general) -> None:
    with pytest.raises(ValueError):
        task_api.edit_section(state, general.id, name="Inbox")
    with pytest.raises(ValueError):
        task_api.delete_section(state, general.id)


def test_new_tasks_go_to_the_top(state, general) -> None:
    a = task_api.add_task(state, "A", now=1.0)
    c = task_api.add_task(state, "C", now=2.0)
    # Bring A back above C so the list reads A(0), C(1).
    task_api.move_tasks(state, [1], 0)
    assert (a.order, c.order) == (0, 1)

    d = task_api.add_task(state, "D", now=3.0)

    assert (d.order, a.order, c.order) == (0, 1, 2)
    assert [t.text for t in task_api.list_tasks(state).incomplete] == ["D", "A", "C"]


def test_blank_text_and_unknown_section_are_rejected(state, general) -> None:
    with pytest.raises(ValueError):
        task_api.add_task(state, "   ")
    with pytest.raises(ValueError):
        task_api.add_task(state, "x", section_id="nope")


def test_completion_changes_listing(state, general) -> None:
    c = task_api.add_task(state, "C", now=1.0)
    b = task_api.add_task(state, "B", now=2.0)
    a = task_api.add_task(state, "A", now=3.0)

    task_api.set_task_complete(state, b.id, True, now=50.0)
    listing = task_api.list_tasks(state)

    assert [t.text for t in listing.incomplete] == ["A", "C"]
    assert [t.text for t in listing.completed] == ["B"]
    assert (a.order, c.order) == (0, 1)

    task_api.toggle_task(state, b.id)
    assert [t.text for t in task_api.list_tasks(state).incomplete] == ["A", "B", "C"]


def test_list_closes_gaps_left_by_delete(state, general) -> None:
    tasks = [task_api.add_task(state, f"T{i}", now=float(i)) for i in range(4)]
    task_api.delete_tasks(state, [tasks[1].id, tasks[2].id])

    remaining = state.store.fetch_tasks(general.id)
    assert not ordering.is_dense(remaining)

    listing = task_api.list_tasks(state)
    assert [t.order for t in listing.incomplete] == [0, 1]

    # The renormalized ranks were persisted.
    reopened = create_initial_state(settings=state.settings)
    assert ordering.is_dense(reopened.store.fetch_tasks(general.id))


def test_section_lifecycle_and_cascade_delete(state, general) -> None:
    work = task_api.add_section(state, "Work", color=".red", icon="briefcase")
    assert work.color is SectionColor.RED
    assert work.order == 1
    assert state.selected_section_id == work.id

    task_api.add_task(state, "Report", section_id=work.id)
    task_api.add_task(state, "Email", section_id=work.id)
    task_api.edit_section(state, work.id, name="Office", color="purple")
    assert (work.name, work.color) == ("Office", SectionColor.PURPLE)

    assert task_api.delete_section(state, work.id) == 2
    assert state.store.get_section(work.id) is None
    assert all(t.section_id != work.id for t in state.store.query(Task))
    assert state.selected_section_id == general.id


def test_unknown_color_is_rejected(state, general) -> None:
    with pytest.raises(ValueError):
        task_api.add_section(state, "Odd", color="chartreuse")


def test_move_sections_renumbers(state, general) -> None:
    a = task_api.add_section(state, "A")
    b = task_api.add_section(state, "B")

    task_api.move_sections(state, [2], 0)

    assert [s.name for s in state.store.fetch_sections()] == ["B", "General", "A"]
    assert (b.order, general.order, a.order) == (0, 1, 2)


def test_selection_is_restored_on_next_launch(state, general) -> None:
    work = task_api.add_section(state, "Work")
    task_api.select_section(state, work.id)

    reopened = create_initial_state(settings=state.settings)
    assert task_api.on_launch(reopened).id == work.id


def test_transfer_moves_tasks_between_sections(state, general) -> None:
    task = task_api.add_task(state, "Call plumber")
    home = task_api.add_section(state, "Home", select=False)

    session = task_api.begin_transfer(state)
    session.assign(task.id, home.id)
    session.assign("missing-task", home.id)

    assert task_api.commit_transfer(state) == 1
    assert task.section_id == home.id
    assert state.transfer is None
    assert task_api.list_tasks(state, home.id).incomplete == [task]


def test_due_date_schedules_and_cancels_reminders(state, general) -> None:
    task = task_api.add_task(state, "Water plants", due_at=10_000.0, repeat=RepeatInterval.DAILY, now=1_000.0)

    pending = state.reminders.pending_for_task(task.id)
    assert [r.identifier for r in pending] == [task.id, f"{task.id}_repeat"]
    assert pending[0].title == "General"
    assert pending[1].fire_at == 10_000.0 + 86400.0

    task_api.set_task_complete(state, task.id, True, now=2_000.0)
    assert state.reminders.pending_for_task(task.id) == []

    task_api.set_task_complete(state, task.id, False)
    assert len(state.reminders.pending_for_task(task.id)) == 2

    task_api.set_due_date(state, task.id, None)
    assert task.repeat_interval is RepeatInterval.NEVER
    assert state.reminders.pending_for_task(task.id) == []


def test_delete_task_cancels_reminders(state, general) -> None:
    task = task_api.add_task(state, "Dentist", due_at=5_000.0, now=1_000.0)
    assert state.reminders.count_pending() == 1

    assert task_api.delete_tasks(state, [task.id, "unknown"]) == 1
    assert state.reminders.count_pending() == 0


def test_delivered_repeating_reminder_moves_due_date(state, general) -> None:
    task = task_api.add_task(state, "Stretch", due_at=1_000.0, repeat=RepeatInterval.HOURLY, now=900.0)

    result = task_api.handle_delivered_reminder(state, f"{task.id}_repeat", now=5_000.0)

    assert result is task
    assert task.due_at == 5_000.0 + 3600.0
    assert state.defaults.get_str(KEY_SECTION_TO_SHOW) == general.id
    pending = state.reminders.pending_for_task(task.id)
    assert pending[0].fire_at == 8_600.0


def test_delivered_reminder_for_missing_task_is_ignored(state, general) -> None:
    assert task_api.handle_delivered_reminder(state, "ghost") is None


def test_rejected_repeat_leaves_due_date_untouched(state, general) -> None:
    task = task_api.add_task(state, "Pay rent", due_at=10_000.0, now=1_000.0)
    before = state.reminders.pending_for_task(task.id)

    with pytest.raises(ValueError):
        task_api.set_due_date(state, task.id, 5e9, repeat="fortnightly")

    assert task.due_at == 10_000.0
    assert task.repeat_interval is RepeatInterval.NEVER
    assert state.reminders.pending_for_task(task.id) == before

    reopened = create_initial_state(settings=state.settings)
    assert reopened.store.get_task(task.id).due_at == 10_000.0


def test_insert_after_transfer_leaves_section_dense(state, general) -> None:
    other = task_api.add_section(state, "Other", select=False)
    a = task_api.add_task(state, "A", section_id=other.id, now=1.0)
    x = task_api.add_task(state, "X", now=2.0)

    task_api.begin_transfer(state).assign(x.id, other.id)
    task_api.commit_transfer(state)
    # The transfer does not touch ranks: both tasks now sit at 0.
    assert (a.order, x.order) == (0, 0)

    d = task_api.add_task(state, "D", section_id=other.id, now=3.0)

    assert d.order == 0
    assert ordering.is_dense(state.store.fetch_tasks(other.id))
    assert sorted((a.order, x.order)) == [1, 2]
