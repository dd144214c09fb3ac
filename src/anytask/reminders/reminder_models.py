# src/anytask/reminders/reminder_models.py

from __future__ import annotations

from dataclasses import dataclass

REPEAT_SUFFIX = "_repeat"

# Shorter repeats are not scheduled as a second reminder.
MIN_REPEAT_SECONDS = 60.0


@dataclass(slots=True, frozen=True)
class ReminderRequest:
    """
    One one-shot reminder.

    A repeating task is represented by two of these: `<task_id>` for the
    current due date and `<task_id>_repeat` for the next one.
    """

    identifier: str
    task_id: str
    title: str
    body: str
    fire_at: float

    @property
    def is_repeat(self) -> bool:
        return self.identifier.endswith(REPEAT_SUFFIX)


def task_id_from_identifier(identifier: str) -> str:
    if identifier.endswith(REPEAT_SUFFIX):
        return identifier[: -len(REPEAT_SUFFIX)]
    return identifier
