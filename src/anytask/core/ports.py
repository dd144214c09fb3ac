# src/anytask/core/ports.py

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps storage/delivery swappable and makes testing easier.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Awaitable, Protocol


class EntityRepo(Protocol):
    """Opaque object store: insert/delete in memory, save() to flush."""

    def insert(self, entity: Any) -> None: ...
    def delete(self, entity: Any) -> None: ...
    def save(self) -> bool: ...
    def query(self, entity_type: type, predicate: Callable[[Any], bool] | None = None) -> list[Any]: ...

    def fetch_sections(self) -> list[Any]: ...
    def fetch_tasks(self, section_id: str) -> list[Any]: ...
    def get_section(self, section_id: str | None) -> Any | None: ...
    def get_task(self, task_id: str | None) -> Any | None: ...


class SharedDefaultsArea(Protocol):
    """Key-value area visible to both the app and the widget process."""

    def snapshot(self) -> dict[str, Any]: ...
    def get(self, key: str, default: Any = None) -> Any: ...
    def get_str(self, key: str) -> str | None: ...
    def get_list(self, key: str) -> list[Any]: ...
    def set(self, key: str, value: Any) -> None: ...
    def update(self, values: dict[str, Any]) -> None: ...
    def remove(self, *keys: str) -> None: ...


class ReminderSink(Protocol):
    """
    Fire-and-forget reminder side effect.

    Implementations replace any reminders already pending for the same task.
    """

    def schedule_for_task(self, task: Any, *, title: str, now: float | None = None) -> list[Any]: ...
    def cancel_for_task(self, task_id: str) -> None: ...


class OutboundMessenger(Protocol):
    """
    Delivery port used by the reminder loop.

    The connector decides how to interpret room_id (can be None, e.g. a default room).
    """

    def send_text(self, *, text: str, room_id: str | None = None) -> Awaitable[None]: ...
