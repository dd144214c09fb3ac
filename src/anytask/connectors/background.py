# src/anytask/connectors/background.py

"""
Background event loop for the console app.

The console REPL blocks on input(), so deferred commits and the reminder loop
run on an asyncio loop in a daemon thread. Work scheduled from the console
crosses over with call_soon_threadsafe; anything touching the store takes
state.lock.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from dataclasses import dataclass

from ..core.ports import OutboundMessenger
from ..core.state import AppState
from ..reminders.reminder_scheduler import run_reminder_loop
from ..tasks.task_api import handle_delivered_reminder

logger = logging.getLogger(__name__)


async def _run_background(state: AppState, messenger: OutboundMessenger | None, stop_event: asyncio.Event) -> None:
    reminder_task: asyncio.Task[None] | None = None

    if state.reminders is not None and messenger is not None:

        def on_delivered(identifier: str) -> None:
            with state.lock:
                handle_delivered_reminder(state, identifier)

        reminder_task = asyncio.create_task(
            run_reminder_loop(
                state.reminders,
                messenger,
                on_delivered=on_delivered,
                interval_seconds=float(getattr(state.settings, "reminder_poll_seconds", 15.0)),
            )
        )
        logger.info("Reminder loop started.")

    await stop_event.wait()

    if reminder_task is not None:
        reminder_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await reminder_task

    with state.lock:
        flushed = state.committer.flush()
    if flushed:
        logger.info("Flushed %d pending commits on shutdown.", flushed)

    close = getattr(messenger, "close", None)
    if close is not None:
        with contextlib.suppress(Exception):
            await close()


@dataclass
class BackgroundRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except Exception:
            logger.debug("Failed to signal background stop.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_background(state: AppState, messenger: OutboundMessenger | None) -> BackgroundRunner | None:
    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        state.committer.bind(loop)
        ready.set()

        try:
            loop.run_until_complete(_run_background(state, messenger, stop_event))
        finally:
            with contextlib.suppress(Exception):
                loop.stop()
            with contextlib.suppress(Exception):
                loop.close()

    t = threading.Thread(target=runner, name="anytask-background", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Background thread did not initialize properly.")
        return None

    logger.info("Background thread started.")
    return BackgroundRunner(thread=t, loop=loop, stop_event=stop_event)
