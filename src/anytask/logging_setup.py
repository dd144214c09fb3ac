# src/anytask/logging_setup.py

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from pathlib import Path

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Chatty at INFO: every poll and every delivery would land between REPL prompts.
QUIET_PREFIXES = (
    "anytask.connectors.matrix_",
    "anytask.reminders.",
)


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the REPL readable.

    Own records pass, except the reminder/delivery side which only shows
    WARNING+. Everything else (nio, aiohttp, py.warnings) needs ERROR+.
    """

    def __init__(self, quiet_prefixes: Iterable[str] = QUIET_PREFIXES) -> None:
        super().__init__()
        self._quiet = tuple(quiet_prefixes)

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if not name.startswith("anytask."):
            return record.levelno >= logging.ERROR
        if name.startswith(self._quiet):
            return record.levelno >= logging.WARNING
        return True


def _reset_root(level: int) -> logging.Logger:
    root = logging.getLogger()
    root.setLevel(level)
    for h in list(root.handlers):
        root.removeHandler(h)
    return root


def _file_handler(log_dir: str | Path, log_name: str, level: int, fmt: logging.Formatter) -> logging.Handler:
    path = Path(log_dir)
    path.mkdir(parents=True, exist_ok=True)
    fh = logging.FileHandler(str(path / log_name), encoding="utf-8")
    fh.setLevel(level)
    fh.setFormatter(fmt)
    return fh


def setup_logging(
    *,
    log_dir: str | Path = ".local/anytask",
    log_name: str = "anytask.log",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> None:
    """
    Root configuration for the `anytask` app process.

    Console (stderr) is filtered for interactive use; the file under the data
    dir gets everything. Call once, before the first log record.
    """
    root = _reset_root(logging.DEBUG)
    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    root.addHandler(_file_handler(log_dir, log_name, file_level, fmt))

    logging.captureWarnings(True)
    logging.getLogger("nio").setLevel(logging.INFO)


def setup_widget_logging(*, log_dir: str | Path = ".local/anytask", verbose: bool = False) -> None:
    """
    The widget is a short-lived process whose stdout is its rendering, so it
    only writes warnings to stderr and keeps its own log file next to the app's.
    """
    root = _reset_root(logging.DEBUG if verbose else logging.INFO)
    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(logging.DEBUG if verbose else logging.WARNING)
    ch.setFormatter(fmt)
    root.addHandler(ch)

    root.addHandler(_file_handler(log_dir, "widget.log", logging.DEBUG, fmt))
