# src/anytask/core/state.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ..reminders.reminder_scheduler import ReminderScheduler
from ..tasks.deferred import DeferredCommitter
from ..tasks.task_store import TaskStore
from ..widget.bridge import SharedStateBridge
from ..widget.shared_defaults import SharedDefaults

if TYPE_CHECKING:
    from ..tasks.task_api import SectionTransferSession


@dataclass
class AppState:
    """
    Everything the foreground app owns.

    The app is the single writer of the entity store. Connectors running on
    other threads must hold `lock` while touching it.
    """

    settings: object
    store: TaskStore
    defaults: SharedDefaults
    bridge: SharedStateBridge
    committer: DeferredCommitter
    reminders: ReminderScheduler | None = None

    transfer: SectionTransferSession | None = None
    lock: threading.RLock = field(default_factory=threading.RLock)

    @property
    def selected_section_id(self) -> str | None:
        return self.bridge.selected_section_id
