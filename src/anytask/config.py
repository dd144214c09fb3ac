# src/anytask/config.py

"""
Settings for the app and the widget process.

Both read the same ANYTASK_* environment (a local .env is loaded first without
overriding real variables), and everything on disk lives under one "app group"
directory so the two processes see the same store and shared area.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TypeVar

from dotenv import load_dotenv

ENV_PREFIX = "ANYTASK"
_TRUTHY = frozenset({"1", "true", "yes", "y", "on"})

V = TypeVar("V")

load_dotenv(override=False)


def _k(suffix: str) -> str:
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_parsed(name: str, default: V, parse: Callable[[str], V]) -> V:
    """Unset, blank or unparsable values all mean `default`."""
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return parse(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    return _env_parsed(name, default, lambda raw: raw.lower() in _TRUTHY)


def _env_int(name: str, default: int) -> int:
    return _env_parsed(name, default, int)


def _env_float(name: str, default: float) -> float:
    return _env_parsed(name, default, float)


def _env_path(name: str, default: Path) -> Path:
    return _env_parsed(name, default, lambda raw: Path(raw).expanduser())


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (the shared "app group" container) ----
    data_dir: Path
    store_db_path: Path
    shared_defaults_path: Path

    # ---- Behaviour ----
    default_section_name: str
    widget_family: str
    widget_refresh_seconds: int
    commit_delay_seconds: float
    reminder_poll_seconds: float

    # ---- Matrix reminder delivery ----
    matrix_enabled: bool
    matrix_homeserver: str
    matrix_user_id: str
    matrix_password: str
    matrix_room_id: str
    matrix_store_path: Path

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "AnyTask") or "AnyTask"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/anytask"))
        store_db_path = _env_path(_k("STORE_DB_PATH"), data_dir / "default.store.sqlite3")
        shared_defaults_path = _env_path(_k("SHARED_DEFAULTS_PATH"), data_dir / "group.defaults.json")

        default_section_name = _env(_k("DEFAULT_SECTION_NAME"), "General").strip() or "General"

        widget_family = _env(_k("WIDGET_FAMILY"), "medium").strip().lower()
        if widget_family not in ("small", "medium"):
            widget_family = "medium"
        widget_refresh_seconds = max(1, _env_int(_k("WIDGET_REFRESH_SECONDS"), 300))

        commit_delay_seconds = max(0.0, _env_float(_k("COMMIT_DELAY_SECONDS"), 0.4))
        reminder_poll_seconds = max(0.5, _env_float(_k("REMINDER_POLL_SECONDS"), 15.0))

        matrix_enabled = _env_bool(_k("MATRIX_ENABLED"), False)
        matrix_homeserver = _env(_k("MATRIX_HOMESERVER"), "").strip()
        matrix_user_id = _env(_k("MATRIX_USER_ID"), "").strip()
        matrix_password = _env(_k("MATRIX_PASSWORD"), "").strip()
        matrix_room_id = _env(_k("MATRIX_ROOM_ID"), "").strip()
        matrix_store_path = _env_path(_k("MATRIX_STORE_PATH"), data_dir / "matrix_store")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            store_db_path=store_db_path,
            shared_defaults_path=shared_defaults_path,
            default_section_name=default_section_name,
            widget_family=widget_family,
            widget_refresh_seconds=widget_refresh_seconds,
            commit_delay_seconds=commit_delay_seconds,
            reminder_poll_seconds=reminder_poll_seconds,
            matrix_enabled=matrix_enabled,
            matrix_homeserver=matrix_homeserver,
            matrix_user_id=matrix_user_id,
            matrix_password=matrix_password,
            matrix_room_id=matrix_room_id,
            matrix_store_path=matrix_store_path,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
