# src/anytask/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class RepeatInterval(StrEnum):
    """
    Reminder repeat cadence.

    Month-based values are fixed offsets (a mean month / year), not calendar math.
    """

    NEVER = "never"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    BIMONTHLY = "bimonthly"
    YEARLY = "yearly"

    @property
    def seconds(self) -> float | None:
        return _REPEAT_SECONDS[self]

    @classmethod
    def from_db(cls, raw: str | None) -> RepeatInterval:
        if not raw:
            return cls.NEVER
        try:
            return cls(raw)
        except ValueError:
            return cls.NEVER


_REPEAT_SECONDS: dict[RepeatInterval, float | None] = {
    RepeatInterval.NEVER: None,
    RepeatInterval.HOURLY: 3600.0,
    RepeatInterval.DAILY: 86400.0,
    RepeatInterval.WEEKLY: 604800.0,
    RepeatInterval.BIWEEKLY: 1209600.0,
    RepeatInterval.MONTHLY: 2629800.0,
    RepeatInterval.BIMONTHLY: 5259600.0,
    RepeatInterval.YEARLY: 31557600.0,
}


class SectionColor(StrEnum):
    GRAY = "gray"
    BLUE = "blue"
    RED = "red"
    GREEN = "green"
    YELLOW = "yellow"
    PURPLE = "purple"
    ORANGE = "orange"
    BLACK = "black"
    WHITE = "white"

    @classmethod
    def parse(cls, raw: str) -> SectionColor:
        """Strict parse for user input. Accepts the legacy ".blue" spelling."""
        tag = (raw or "").strip().lower().lstrip(".")
        try:
            return cls(tag)
        except ValueError:
            raise ValueError(f"Unknown color: {raw!r}") from None

    @classmethod
    def from_db(cls, raw: str | None) -> SectionColor:
        try:
            return cls.parse(raw or "")
        except ValueError:
            return cls.GRAY


class SectionIcon(StrEnum):
    TRAY = "tray"
    LIST = "list.bullet"
    CART = "cart"
    HOUSE = "house"
    BRIEFCASE = "briefcase"
    STAR = "star"
    HEART = "heart"
    BOOK = "book"
    BELL = "bell"
    FOLDER = "folder"

    @classmethod
    def parse(cls, raw: str) -> SectionIcon:
        tag = (raw or "").strip().lower()
        try:
            return cls(tag)
        except ValueError:
            raise ValueError(f"Unknown icon: {raw!r}") from None

    @classmethod
    def from_db(cls, raw: str | None) -> SectionIcon:
        try:
            return cls.parse(raw or "")
        except ValueError:
            return cls.LIST


@dataclass(slots=True)
class Section:
    id: str
    name: str
    color: SectionColor
    icon: SectionIcon
    is_editable: bool
    order: int


@dataclass(slots=True)
class Task:
    """
    A single task.

    `order` ranks the task among the incomplete tasks of its section only.
    Completed tasks are displayed by `completed_at` (newest first).
    """

    id: str
    section_id: str
    text: str
    complete: bool
    created_at: float
    order: int

    due_at: float | None = None
    previous_order: int | None = None
    completed_at: float | None = None
    repeat_interval: RepeatInterval = RepeatInterval.NEVER
