# tests/test_task_store.py

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from anytask.tasks.task_models import RepeatInterval, Section, SectionColor, SectionIcon, Task
from anytask.tasks.task_store import TaskStore


def _section(sid: str = "s1", name: str = "Groceries") -> Section:
    return Section(id=sid, name=name, color=SectionColor.GREEN, icon=SectionIcon.CART, is_editable=True, order=0)


def _task(tid: str, section_id: str = "s1", order: int = 0) -> Task:
    return Task(id=tid, section_id=section_id, text=f"task {tid}", complete=False, created_at=100.0, order=order)


def test_save_and_reload_round_trip(tmp_path: Path) -> None:
    db = tmp_path / "store.sqlite3"
    store = TaskStore(db)
    store.insert(_section())
    t = _task("t1")
    t.due_at = 2000.0
    t.repeat_interval = RepeatInterval.WEEKLY
    store.insert(t)
    done = _task("t2", order=0)
    done.complete = True
    done.completed_at = 150.0
    done.previous_order = 1
    store.insert(done)
    assert store.save()

    again = TaskStore(db)
    assert again.count_sections() == 1
    assert again.count_tasks() == 2

    section = again.get_section("s1")
    assert section is not None
    assert (section.name, section.color, section.icon) == ("Groceries", SectionColor.GREEN, SectionIcon.CART)

    loaded = again.get_task("t1")
    assert loaded is not None
    assert loaded.due_at == 2000.0
    assert loaded.repeat_interval is RepeatInterval.WEEKLY

    loaded_done = again.get_task("t2")
    assert loaded_done is not None
    assert loaded_done.complete is True
    assert loaded_done.completed_at == 150.0
    assert loaded_done.previous_order == 1


def test_identity_map_returns_same_object(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "store.sqlite3")
    store.insert(_section())
    store.insert(_task("t1"))
    assert store.get_task("t1") is store.fetch_tasks("s1")[0]


def test_insert_task_with_unknown_section_is_rejected(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "store.sqlite3")
    with pytest.raises(ValueError):
        store.insert(_task("t1", section_id="missing"))


def test_insert_duplicate_id_is_rejected(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "store.sqlite3")
    store.insert(_section())
    with pytest.raises(ValueError):
        store.insert(_section())


def test_delete_section_with_tasks_is_rejected(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "store.sqlite3")
    section = _section()
    store.insert(section)
    task = _task("t1")
    store.insert(task)

    with pytest.raises(ValueError):
        store.delete(section)

    store.delete(task)
    store.delete(section)
    assert store.save()
    assert TaskStore(tmp_path / "store.sqlite3").count_sections() == 0


def test_failed_save_returns_false_and_keeps_memory(tmp_path: Path, monkeypatch) -> None:
    store = TaskStore(tmp_path / "store.sqlite3")
    store.insert(_section())

    # A fresh in-memory database has no tables, so the flush fails.
    monkeypatch.setattr(store, "_get_conn", lambda: sqlite3.connect(":memory:"))

    assert store.save() is False
    assert store.get_section("s1") is not None


def test_query_with_predicate(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "store.sqlite3")
    store.insert(_section())
    store.insert(_task("t1"))
    store.insert(_task("t2"))
    assert [t.id for t in store.query(Task, lambda t: t.id == "t2")] == ["t2"]
    assert len(store.query(Section)) == 1


def test_migrates_old_schema_and_legacy_color_tags(tmp_path: Path) -> None:
    db = tmp_path / "old.sqlite3"
    conn = sqlite3.connect(db)
    conn.execute(
        """
        CREATE TABLE sections (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            color TEXT NOT NULL,
            is_editable INTEGER NOT NULL,
            position INTEGER NOT NULL
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE tasks (
            id TEXT PRIMARY KEY,
            section_id TEXT NOT NULL,
            text TEXT NOT NULL,
            complete INTEGER NOT NULL,
            created_at REAL NOT NULL,
            position INTEGER NOT NULL
        )
        """
    )
    conn.execute("INSERT INTO sections VALUES ('s1', 'Work', '.blue', 1, 0)")
    conn.execute("INSERT INTO tasks VALUES ('t1', 's1', 'Report', 1, 10.0, 0)")
    conn.execute("INSERT INTO tasks VALUES ('orphan', 'gone', 'Lost', 0, 10.0, 0)")
    conn.commit()
    conn.close()

    store = TaskStore(db)

    section = store.get_section("s1")
    assert section is not None
    assert section.color is SectionColor.BLUE
    assert section.icon is SectionIcon.LIST

    task = store.get_task("t1")
    assert task is not None
    assert task.complete is True
    assert task.completed_at == 0.0
    assert task.repeat_interval is RepeatInterval.NEVER

    assert store.get_task("orphan") is None
