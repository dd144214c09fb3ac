# tests/test_config.py

from __future__ import annotations

from pathlib import Path

from anytask.config import Settings


def test_settings_from_env_overrides(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("ANYTASK_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("ANYTASK_WIDGET_FAMILY", "SMALL")
    monkeypatch.setenv("ANYTASK_COMMIT_DELAY_SECONDS", "-3")
    monkeypatch.setenv("ANYTASK_WIDGET_REFRESH_SECONDS", "not a number")
    monkeypatch.setenv("ANYTASK_MATRIX_ENABLED", "yes")

    s = Settings.from_env()

    assert s.data_dir == tmp_path
    assert s.store_db_path == tmp_path / "default.store.sqlite3"
    assert s.shared_defaults_path == tmp_path / "group.defaults.json"
    assert s.widget_family == "small"
    assert s.commit_delay_seconds == 0.0
    assert s.widget_refresh_seconds == 300
    assert s.matrix_enabled is True


def test_unknown_widget_family_falls_back_to_medium(monkeypatch) -> None:
    monkeypatch.setenv("ANYTASK_WIDGET_FAMILY", "huge")
    monkeypatch.delenv("ANYTASK_DEFAULT_SECTION_NAME", raising=False)

    s = Settings.from_env()

    assert s.widget_family == "medium"
    assert s.default_section_name == "General"
