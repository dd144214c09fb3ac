# src/anytask/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

from .task_models import RepeatInterval, Section, SectionColor, SectionIcon, Task

logger = logging.getLogger(__name__)

E = TypeVar("E", Section, Task)


class TaskStore:
    """
    SQLite-backed object store for sections and tasks.

    All rows are loaded into an identity map at startup. Callers mutate the
    returned objects in place and call save() to flush; save() writes the whole
    in-memory state in one transaction, so it either lands completely or not at
    all. A failed save leaves the in-memory objects as they are.

    The schema is migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed
    """

    def __init__(self, db_path: str | Path = "default.store.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        self._sections: dict[str, Section] = {}
        self._tasks: dict[str, Task] = {}
        self._deleted_section_ids: set[str] = set()
        self._deleted_task_ids: set[str] = set()

        self._ensure_schema()
        self.reload()
        logger.info(
            "TaskStore ready db=%s sections=%s tasks=%s",
            self._db_path,
            len(self._sections),
            len(self._tasks),
        )

    @property
    def db_path(self) -> Path:
        return self._db_path

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS sections (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    color TEXT NOT NULL DEFAULT 'gray',
                    icon TEXT NOT NULL DEFAULT 'list.bullet',
                    is_editable INTEGER NOT NULL DEFAULT 1,
                    position INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    section_id TEXT NOT NULL,
                    text TEXT NOT NULL,
                    complete INTEGER NOT NULL DEFAULT 0,
                    created_at REAL NOT NULL,
                    position INTEGER NOT NULL DEFAULT 0
                )
                """
            )

            def add_col(table: str, name: str, decl: str) -> None:
                cur.execute(f"PRAGMA table_info({table})")
                cols = {row["name"] for row in cur.fetchall()}
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE {table} ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s.%s", table, name)

            # Columns introduced after the first release.
            add_col("sections", "icon", "TEXT NOT NULL DEFAULT 'list.bullet'")
            add_col("tasks", "due_at", "REAL")
            add_col("tasks", "previous_position", "INTEGER")
            add_col("tasks", "completed_at", "REAL")
            add_col("tasks", "repeat_interval", "TEXT NOT NULL DEFAULT 'never'")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_section ON tasks(section_id, complete)")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_section(row: sqlite3.Row) -> Section:
        return Section(
            id=str(row["id"]),
            name=str(row["name"] or ""),
            color=SectionColor.from_db(row["color"]),
            icon=SectionIcon.from_db(row["icon"]),
            is_editable=bool(row["is_editable"]),
            order=int(row["position"] or 0),
        )

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        complete = bool(row["complete"])
        completed_at = float(row["completed_at"]) if row["completed_at"] is not None else None
        if complete and completed_at is None:
            # Rows written before completed_at existed.
            completed_at = 0.0
        return Task(
            id=str(row["id"]),
            section_id=str(row["section_id"]),
            text=str(row["text"] or ""),
            complete=complete,
            created_at=float(row["created_at"] or 0.0),
            order=int(row["position"] or 0),
            due_at=float(row["due_at"]) if row["due_at"] is not None else None,
            previous_order=int(row["previous_position"]) if row["previous_position"] is not None else None,
            completed_at=completed_at if complete else None,
            repeat_interval=RepeatInterval.from_db(row["repeat_interval"]),
        )

    # ---- public API ----

    def reload(self) -> None:
        """Discard in-memory state and re-read everything from disk."""
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM sections")
            sections = {s.id: s for s in (self._row_to_section(r) for r in cur.fetchall())}
            cur.execute("SELECT * FROM tasks")
            tasks: dict[str, Task] = {}
            for r in cur.fetchall():
                task = self._row_to_task(r)
                if task.section_id not in sections:
                    logger.warning("Dropping orphan task id=%s section_id=%s", task.id, task.section_id)
                    continue
                tasks[task.id] = task
        finally:
            conn.close()

        self._sections = sections
        self._tasks = tasks
        self._deleted_section_ids.clear()
        self._deleted_task_ids.clear()

    def insert(self, entity: Section | Task) -> None:
        if isinstance(entity, Section):
            if entity.id in self._sections:
                raise ValueError(f"Section {entity.id} already exists")
            self._sections[entity.id] = entity
            self._deleted_section_ids.discard(entity.id)
            logger.debug("Section inserted id=%s name=%s", entity.id, entity.name)
            return

        if entity.id in self._tasks:
            raise ValueError(f"Task {entity.id} already exists")
        if entity.section_id not in self._sections:
            raise ValueError(f"Task {entity.id} references unknown section {entity.section_id}")
        self._tasks[entity.id] = entity
        self._deleted_task_ids.discard(entity.id)
        logger.debug("Task inserted id=%s section_id=%s", entity.id, entity.section_id)

    def delete(self, entity: Section | Task) -> None:
        if isinstance(entity, Section):
            if any(t.section_id == entity.id for t in self._tasks.values()):
                raise ValueError(f"Section {entity.id} still owns tasks; delete them first")
            if self._sections.pop(entity.id, None) is not None:
                self._deleted_section_ids.add(entity.id)
                logger.debug("Section deleted id=%s", entity.id)
            return

        if self._tasks.pop(entity.id, None) is not None:
            self._deleted_task_ids.add(entity.id)
            logger.debug("Task deleted id=%s", entity.id)

    def save(self) -> bool:
        """
        Flush the in-memory state in a single transaction.

        Returns False (and logs) if SQLite rejects it; nothing is rolled back in memory.
        """
        conn = self._get_conn()
        try:
            with conn:
                if self._deleted_task_ids:
                    conn.executemany(
                        "DELETE FROM tasks WHERE id = ?",
                        [(tid,) for tid in self._deleted_task_ids],
                    )
                if self._deleted_section_ids:
                    conn.executemany(
                        "DELETE FROM sections WHERE id = ?",
                        [(sid,) for sid in self._deleted_section_ids],
                    )
                conn.executemany(
                    """
                    INSERT OR REPLACE INTO sections(id, name, color, icon, is_editable, position)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (s.id, s.name, s.color.value, s.icon.value, int(s.is_editable), int(s.order))
                        for s in self._sections.values()
                    ],
                )
                conn.executemany(
                    """
                    INSERT OR REPLACE INTO tasks(
                        id, section_id, text, complete, created_at, position,
                        due_at, previous_position, completed_at, repeat_interval
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (
                            t.id,
                            t.section_id,
                            t.text,
                            int(t.complete),
                            float(t.created_at),
                            int(t.order),
                            t.due_at,
                            t.previous_order,
                            t.completed_at,
                            t.repeat_interval.value,
                        )
                        for t in self._tasks.values()
                    ],
                )
        except sqlite3.Error:
            logger.exception("TaskStore save failed db=%s; keeping in-memory changes", self._db_path)
            return False
        finally:
            conn.close()

        self._deleted_task_ids.clear()
        self._deleted_section_ids.clear()
        return True

    def query(self, entity_type: type[E], predicate: Callable[[E], bool] | None = None) -> list[E]:
        """Return matching entities in unspecified order; callers sort by `order`."""
        source = self._sections if entity_type is Section else self._tasks
        items = list(source.values())
        if predicate is None:
            return items  # type: ignore[return-value]
        return [e for e in items if predicate(e)]  # type: ignore[arg-type]

    def fetch_sections(self) -> list[Section]:
        return sorted(self._sections.values(), key=lambda s: (s.order, s.name, s.id))

    def fetch_tasks(self, section_id: str) -> list[Task]:
        return self.query(Task, lambda t: t.section_id == section_id)

    def get_section(self, section_id: str | None) -> Section | None:
        if not section_id:
            return None
        return self._sections.get(section_id)

    def get_task(self, task_id: str | None) -> Task | None:
        if not task_id:
            return None
        return self._tasks.get(task_id)

    def count_tasks(self) -> int:
        return len(self._tasks)

    def count_sections(self) -> int:
        return len(self._sections)
