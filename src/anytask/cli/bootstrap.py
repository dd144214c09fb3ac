# src/anytask/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures the local (gitignored) app-group directory exists,
- wires the entity store, shared area, bridge, committer and reminders into AppState,
- picks the reminder delivery connector.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.ports import OutboundMessenger
from ..core.state import AppState
from ..reminders.reminder_scheduler import ReminderScheduler
from ..tasks import task_api
from ..tasks.deferred import DeferredCommitter
from ..tasks.task_store import TaskStore
from ..widget.bridge import SharedStateBridge
from ..widget.projection import WidgetFamily
from ..widget.shared_defaults import SharedDefaults

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.store_db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.shared_defaults_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None, with_reminders: bool = True) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = TaskStore(settings.store_db_path)
    defaults = SharedDefaults(settings.shared_defaults_path)
    bridge = SharedStateBridge(
        store,
        defaults,
        family=WidgetFamily.parse(getattr(settings, "widget_family", "medium")),
    )
    reminders = ReminderScheduler(settings.store_db_path.with_name("reminders.sqlite3")) if with_reminders else None

    state = AppState(
        settings=settings,
        store=store,
        defaults=defaults,
        bridge=bridge,
        committer=DeferredCommitter(delay_seconds=float(getattr(settings, "commit_delay_seconds", 0.4))),
        reminders=reminders,
    )
    # Widget-originated completions must also cancel/restore reminders.
    bridge.set_task_listener(lambda task: task_api.sync_reminders(state, task))
    return state


def create_messenger(settings) -> OutboundMessenger:
    if getattr(settings, "matrix_enabled", False):
        from ..connectors.matrix_notifier import MatrixNotifier

        logger.info("Reminders will be delivered to Matrix.")
        return MatrixNotifier(settings)

    from ..connectors.console_connector import ConsoleNotifier

    return ConsoleNotifier()
