# src/anytask/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, reconciles widget writes made while the
app was closed, then runs:
- the background loop (deferred commits + reminders) in a daemon thread,
- the console REPL in the main thread.
"""

from __future__ import annotations

import logging

from ..cli.bootstrap import create_initial_state, create_messenger
from ..config import get_settings
from ..connectors.background import start_background
from ..connectors.console_connector import run_console_loop
from ..logging_setup import setup_logging
from ..tasks import task_api

logger = logging.getLogger(__name__)


def _shutdown(state) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        with state.lock:
            if not state.store.save():
                logger.warning("Final save failed.")
            state.bridge.publish()
    except Exception:
        logger.exception("Failed to publish widget projection on shutdown.")

    try:
        state.store.close()
    except Exception:
        logger.debug("Store close failed.", exc_info=True)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)

    state = create_initial_state(settings=settings)
    with state.lock:
        section = task_api.on_launch(state)
    logger.info("Selected section: %s", section.name)

    runner = start_background(state, create_messenger(settings))

    try:
        run_console_loop(state)
    finally:
        if runner is not None:
            runner.stop()
            runner.join(timeout=10.0)

        _shutdown(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
