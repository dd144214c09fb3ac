# src/anytask/tasks/deferred.py

"""
Deferred commits.

UI actions such as "complete this task" or "move these tasks to another
section" are applied after a short animate-out delay. Each key (usually a task
id) is either Idle or PendingCommit(deadline). Scheduling again for a key that
is already pending cancels the earlier action and restarts the delay with the
new one, so one key never has two commits queued.

Everything runs on a single asyncio event loop; nothing here is thread-safe
except schedule_threadsafe().
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

CommitAction = Callable[[], None]


class CommitPhase(str, Enum):
    IDLE = "idle"
    PENDING = "pending"


@dataclass(slots=True)
class PendingCommit:
    key: str
    label: str
    deadline: float
    action: CommitAction
    handle: asyncio.TimerHandle | None = None


class DeferredCommitter:
    def __init__(self, *, delay_seconds: float = 0.4, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._delay = max(0.0, float(delay_seconds))
        self._loop = loop
        self._pending: dict[str, PendingCommit] = {}

    @property
    def delay_seconds(self) -> float:
        return self._delay

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        """Attach to a loop owned by another thread (see schedule_threadsafe)."""
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def phase(self, key: str) -> CommitPhase:
        return CommitPhase.PENDING if key in self._pending else CommitPhase.IDLE

    def deadline(self, key: str) -> float | None:
        pending = self._pending.get(key)
        return pending.deadline if pending else None

    def pending_keys(self) -> list[str]:
        return list(self._pending)

    def schedule(self, key: str, action: CommitAction, *, label: str = "commit") -> PendingCommit | None:
        """
        Run `action` after the delay. Returns the pending commit, or None if
        the delay is zero and the action already ran.
        """
        restarted = self.cancel(key)
        if restarted:
            logger.debug("Deferred %s for %s restarted", label, key)

        if self._delay <= 0:
            self._run(key, action, label)
            return None

        loop = self._get_loop()
        pending = PendingCommit(key=key, label=label, deadline=loop.time() + self._delay, action=action)
        pending.handle = loop.call_later(self._delay, self._fire, key, pending)
        self._pending[key] = pending
        return pending

    def schedule_threadsafe(self, key: str, action: CommitAction, *, label: str = "commit") -> None:
        loop = self._get_loop()
        loop.call_soon_threadsafe(lambda: self.schedule(key, action, label=label))

    def cancel(self, key: str) -> bool:
        pending = self._pending.pop(key, None)
        if pending is None:
            return False
        if pending.handle is not None:
            pending.handle.cancel()
        return True

    def flush(self) -> int:
        """Run every pending action now (e.g. on shutdown). Returns how many ran."""
        items = list(self._pending.values())
        self._pending.clear()
        for pending in items:
            if pending.handle is not None:
                pending.handle.cancel()
            self._run(pending.key, pending.action, pending.label)
        return len(items)

    def _fire(self, key: str, pending: PendingCommit) -> None:
        # A restart replaces the entry; a stale timer must not run the new action.
        if self._pending.get(key) is not pending:
            return
        del self._pending[key]
        self._run(key, pending.action, pending.label)

    @staticmethod
    def _run(key: str, action: CommitAction, label: str) -> None:
        try:
            action()
        except Exception:
            logger.exception("Deferred %s failed key=%s", label, key)
