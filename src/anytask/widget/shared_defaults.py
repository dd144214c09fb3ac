# src/anytask/widget/shared_defaults.py

"""
Process-shared key-value area (the "app group" defaults).

Both the app and the widget process open the same JSON file. Every read goes
to disk so each side sees the other's latest writes; every write is a
read-modify-replace of the whole file, so the area is last-writer-wins per key
and there is no multi-key transaction across processes.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def atomic_write_json(path: Path, data: dict[str, Any]) -> None:
    """Write via a uniquely named temp file so concurrent writers never share one."""
    with tempfile.NamedTemporaryFile(
        "w",
        encoding="utf-8",
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
    ) as fh:
        json.dump(data, fh, ensure_ascii=False, indent=2)
        tmp = Path(fh.name)
    try:
        os.replace(tmp, path)
    except OSError:
        with contextlib.suppress(OSError):
            tmp.unlink()
        raise
    with contextlib.suppress(Exception):
        os.chmod(path, 0o600)


class SharedDefaults:
    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            val = json.loads(self._path.read_text("utf-8"))
        except (OSError, ValueError):
            logger.warning("Shared defaults unreadable at %s; treating as empty", self._path, exc_info=True)
            return {}
        if not isinstance(val, dict):
            logger.warning("Shared defaults at %s is not an object; treating as empty", self._path)
            return {}
        return val

    def snapshot(self) -> dict[str, Any]:
        return self._load()

    def get(self, key: str, default: Any = None) -> Any:
        return self._load().get(key, default)

    def get_str(self, key: str) -> str | None:
        val = self._load().get(key)
        return val if isinstance(val, str) and val else None

    def get_str_list(self, key: str) -> list[str]:
        val = self._load().get(key)
        if not isinstance(val, list):
            return []
        return [str(v) for v in val if isinstance(v, (str, int))]

    def get_dict(self, key: str) -> dict[str, Any]:
        val = self._load().get(key)
        return val if isinstance(val, dict) else {}

    def get_list(self, key: str) -> list[Any]:
        val = self._load().get(key)
        return val if isinstance(val, list) else []

    def set(self, key: str, value: Any) -> None:
        self.update({key: value})

    def update(self, values: Mapping[str, Any]) -> None:
        data = self._load()
        data.update(values)
        atomic_write_json(self._path, data)

    def remove(self, *keys: str) -> None:
        data = self._load()
        removed = False
        for key in keys:
            if key in data:
                del data[key]
                removed = True
        if removed:
            atomic_write_json(self._path, data)
