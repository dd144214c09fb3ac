# tests/test_reminders.py

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from anytask.reminders.reminder_models import ReminderRequest, task_id_from_identifier
from anytask.reminders.reminder_scheduler import ReminderScheduler, build_requests, run_reminder_loop
from anytask.tasks.task_models import RepeatInterval, Task

from fakes import FakeMessenger


def _task(**kw) -> Task:
    base = dict(id="t1", section_id="s1", text="Pay rent", complete=False, created_at=0.0, order=0)
    base.update(kw)
    return Task(**base)


def test_build_requests_without_due_date_is_empty() -> None:
    assert build_requests(_task(), title="Home", now=0.0) == []


def test_build_requests_for_repeating_task() -> None:
    task = _task(due_at=1_000.0, repeat_interval=RepeatInterval.WEEKLY)
    first, repeat = build_requests(task, title="Home", now=0.0)

    assert first.identifier == "t1"
    assert first.fire_at == 1_000.0
    assert first.body.startswith("Pay rent (@ ")
    assert repeat.identifier == "t1_repeat"
    assert repeat.is_repeat
    assert repeat.fire_at == 1_000.0 + 604800.0
    assert task_id_from_identifier(repeat.identifier) == "t1"


def test_past_due_date_fires_soon() -> None:
    (req,) = build_requests(_task(due_at=10.0), title="Home", now=500.0)
    assert req.fire_at == 501.0


def test_schedule_for_task_replaces_pending(tmp_path: Path) -> None:
    sched = ReminderScheduler(tmp_path / "reminders.sqlite3")
    task = _task(due_at=1_000.0, repeat_interval=RepeatInterval.DAILY)

    sched.schedule_for_task(task, title="Home", now=0.0)
    task.repeat_interval = RepeatInterval.NEVER
    sched.schedule_for_task(task, title="Home", now=0.0)

    assert [r.identifier for r in sched.pending_for_task("t1")] == ["t1"]

    sched.cancel_for_task("t1")
    assert sched.count_pending() == 0


def test_claim_is_exclusive(tmp_path: Path) -> None:
    sched = ReminderScheduler(tmp_path / "reminders.sqlite3")
    sched.schedule(ReminderRequest(identifier="t1", task_id="t1", title="x", body="y", fire_at=1.0))

    assert [r.identifier for r in sched.list_due(now_ts=2.0)] == ["t1"]
    assert sched.list_due(now_ts=0.5) == []
    assert sched.try_claim("t1") is True
    assert sched.try_claim("t1") is False


@pytest.mark.asyncio
async def test_loop_delivers_due_reminder_once(tmp_path: Path) -> None:
    sched = ReminderScheduler(tmp_path / "reminders.sqlite3")
    sched.schedule(ReminderRequest(identifier="t1", task_id="t1", title="Home", body="Pay rent", fire_at=1.0))
    messenger = FakeMessenger()
    delivered: list[str] = []

    runner = asyncio.create_task(
        run_reminder_loop(
            sched,
            messenger,
            on_delivered=delivered.append,
            interval_seconds=0.01,
        )
    )

    await asyncio.sleep(0.05)
    runner.cancel()
    with pytest.raises(asyncio.CancelledError):
        await runner

    assert [m.text for m in messenger.sent] == ["Home: Pay rent"]
    assert delivered == ["t1"]
    assert sched.count_pending() == 0


@pytest.mark.asyncio
async def test_failed_send_is_rescheduled(tmp_path: Path) -> None:
    sched = ReminderScheduler(tmp_path / "reminders.sqlite3")
    sched.schedule(ReminderRequest(identifier="t1", task_id="t1", title="Home", body="Pay rent", fire_at=1.0))
    messenger = FakeMessenger(fail=True)
    delivered: list[str] = []

    runner = asyncio.create_task(
        run_reminder_loop(
            sched,
            messenger,
            on_delivered=delivered.append,
            interval_seconds=0.01,
            retry_delay_seconds=60.0,
        )
    )

    await asyncio.sleep(0.05)
    runner.cancel()
    with pytest.raises(asyncio.CancelledError):
        await runner

    assert delivered == []
    (pending,) = sched.pending_for_task("t1")
    assert pending.fire_at > 1.0
