# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from anytask.cli.bootstrap import create_initial_state
from anytask.core.state import AppState
from anytask.tasks import task_api
from anytask.tasks.task_models import Section


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="AnyTask",
        log_level="DEBUG",
        data_dir=tmp_path,
        store_db_path=tmp_path / "default.store.sqlite3",
        shared_defaults_path=tmp_path / "group.defaults.json",
        default_section_name="General",
        widget_family="small",
        widget_refresh_seconds=300,
        commit_delay_seconds=0.02,
        reminder_poll_seconds=0.01,
        matrix_enabled=False,
    )


@pytest.fixture()
def state(settings: SimpleNamespace) -> AppState:
    """
    AppState wired through the real composition root.

    Real SQLite and a real shared JSON file are used because their behaviour
    is part of what we want to test.
    """
    return create_initial_state(settings=settings)


@pytest.fixture()
def general(state: AppState) -> Section:
    return task_api.ensure_default_section(state)
