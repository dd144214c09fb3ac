# src/anytask/reminders/reminder_scheduler.py

"""
Reminder scheduling and delivery.

ReminderScheduler keeps pending one-shot reminders in SQLite (next to the
entity store). run_reminder_loop is a small polling loop that:
- fetches due reminders,
- claims them (best-effort, so a reminder fires once),
- sends them through an injected messenger port,
- reports each delivery back so repeating tasks can be rescheduled.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sqlite3
import time
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from ..core.ports import OutboundMessenger
from ..tasks.task_models import Task
from .reminder_models import MIN_REPEAT_SECONDS, REPEAT_SUFFIX, ReminderRequest

logger = logging.getLogger(__name__)


def format_body(task: Task) -> str:
    """'<text> (@ HH:MM)' using the task's due time in local time."""
    if task.due_at is None:
        return task.text
    hhmm = datetime.fromtimestamp(task.due_at).astimezone().strftime("%H:%M")
    return f"{task.text} (@ {hhmm})"


def build_requests(task: Task, *, title: str, now: float | None = None) -> list[ReminderRequest]:
    """
    Current reminder plus, for repeating tasks, the next one.

    Repeats are two independent one-shots rather than a native repeating
    trigger because the interval is user-adjustable and irregular.
    """
    if task.due_at is None:
        return []
    if now is None:
        now = time.time()

    body = format_body(task)
    out = [
        ReminderRequest(
            identifier=task.id,
            task_id=task.id,
            title=title,
            body=body,
            fire_at=max(float(task.due_at), now + 1.0),
        )
    ]

    interval = task.repeat_interval.seconds
    if interval is not None and interval >= MIN_REPEAT_SECONDS:
        next_at = float(task.due_at) + interval
        out.append(
            ReminderRequest(
                identifier=task.id + REPEAT_SUFFIX,
                task_id=task.id,
                title=title,
                body=body,
                fire_at=max(next_at, now + 1.0),
            )
        )
    return out


class ReminderScheduler:
    """
    SQLite-backed reminder queue.

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "reminders.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("ReminderScheduler ready db=%s pending=%s", self._db_path, self.count_pending())

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS reminders (
                    identifier TEXT PRIMARY KEY,
                    task_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    body TEXT NOT NULL,
                    fire_at REAL NOT NULL
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_reminders_fire_at ON reminders(fire_at)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_reminders_task ON reminders(task_id)")
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_request(row: sqlite3.Row) -> ReminderRequest:
        return ReminderRequest(
            identifier=str(row["identifier"]),
            task_id=str(row["task_id"]),
            title=str(row["title"]),
            body=str(row["body"]),
            fire_at=float(row["fire_at"]),
        )

    # ---- scheduling ----

    def schedule(self, request: ReminderRequest) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT OR REPLACE INTO reminders(identifier, task_id, title, body, fire_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (request.identifier, request.task_id, request.title, request.body, float(request.fire_at)),
            )
            conn.commit()
        finally:
            conn.close()
        logger.debug("Reminder scheduled id=%s fire_at=%s", request.identifier, request.fire_at)

    def schedule_for_task(self, task: Task, *, title: str, now: float | None = None) -> list[ReminderRequest]:
        """Replace whatever is pending for the task with its current reminders."""
        self.cancel_for_task(task.id)
        requests = build_requests(task, title=title, now=now)
        for req in requests:
            self.schedule(req)
        return requests

    def cancel_for_task(self, task_id: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                "DELETE FROM reminders WHERE identifier IN (?, ?)",
                (task_id, task_id + REPEAT_SUFFIX),
            )
            conn.commit()
        finally:
            conn.close()

    # ---- queries ----

    def pending_for_task(self, task_id: str) -> list[ReminderRequest]:
        conn = self._get_conn()
        try:
            cur = conn.execute(
                "SELECT * FROM reminders WHERE task_id = ? ORDER BY fire_at ASC",
                (task_id,),
            )
            return [self._row_to_request(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def list_due(self, *, now_ts: float, limit: int = 32) -> list[ReminderRequest]:
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                SELECT *
                FROM reminders
                WHERE fire_at <= ?
                ORDER BY fire_at ASC
                    LIMIT ?
                """,
                (float(now_ts), int(limit)),
            )
            return [self._row_to_request(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def count_pending(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM reminders").fetchone()
            return int(n)
        finally:
            conn.close()

    def try_claim(self, identifier: str) -> bool:
        """Remove the reminder; True only for the caller that actually removed it."""
        conn = self._get_conn()
        try:
            cur = conn.execute("DELETE FROM reminders WHERE identifier = ?", (identifier,))
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()


async def run_reminder_loop(
        scheduler: ReminderScheduler,
        messenger: OutboundMessenger,
        *,
        on_delivered: Callable[[str], None] | None = None,
        interval_seconds: float = 15.0,
        retry_delay_seconds: float = 60.0,
        batch_limit: int = 32,
) -> None:
    """
    Simple polling loop.

    Every interval_seconds:
    - fetch due reminders
    - claim each one (so a reminder is delivered once)
    - send "<title>: <body>" via messenger.send_text(...)
    - call on_delivered(identifier)
      On send failure the reminder is put back with fire_at pushed forward
      by retry_delay_seconds.

    To stop the loop, cancel the coroutine/task.
    """
    sleep_s = max(0.01, float(interval_seconds))
    retry_s = max(0.01, float(retry_delay_seconds))

    while True:
        now_ts = time.time()

        try:
            due = scheduler.list_due(now_ts=now_ts, limit=int(batch_limit))
        except Exception:
            logger.exception("list_due failed")
            due = []

        for req in due:
            try:
                claimed = scheduler.try_claim(req.identifier)
            except Exception:
                logger.exception("try_claim failed id=%s", req.identifier)
                continue
            if not claimed:
                continue

            try:
                await messenger.send_text(text=f"{req.title}: {req.body}")
                logger.info("Reminder delivered id=%s", req.identifier)
            except Exception:
                logger.exception("Reminder send failed id=%s", req.identifier)
                try:
                    scheduler.schedule(
                        ReminderRequest(
                            identifier=req.identifier,
                            task_id=req.task_id,
                            title=req.title,
                            body=req.body,
                            fire_at=time.time() + retry_s,
                        )
                    )
                except Exception:
                    logger.exception("Reminder reschedule (backoff) failed id=%s", req.identifier)
                continue

            if on_delivered is not None:
                try:
                    on_delivered(req.identifier)
                except Exception:
                    logger.exception("on_delivered failed id=%s", req.identifier)

        await asyncio.sleep(sleep_s)
