# src/anytask/connectors/console_connector.py

from __future__ import annotations

import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState
from ..tasks import task_api

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


class ConsoleNotifier:
    """OutboundMessenger that prints reminders to the terminal."""

    async def send_text(self, *, text: str, room_id: str | None = None) -> None:
        print(f"\n[{_ts_local()}] (reminder) {text}", flush=True)


def run_console_loop(state: AppState) -> None:
    """
    Interactive front end. Every line of input counts as the app coming to the
    foreground, so widget writes are folded in before the command runs.
    """
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Type /help for commands, plain text to add a task, /exit to quit.\n")

    def emit(text: str) -> None:
        print(f"[{_ts_local()}] {text}", flush=True)

    with state.lock:
        print(command_registry.handle(state, "/list"))

    while True:
        try:
            user_input = input(">>> ").strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        # Plain text is shorthand for /add.
        line = user_input if user_input.startswith("/") else f"/add {user_input}"

        try:
            with state.lock:
                if task_api.on_foreground(state):
                    emit("[WIDGET] Picked up changes made in the widget.")
                response = command_registry.handle(state, line, emit=emit)
        except Exception:
            logger.exception("Command handler crashed.")
            response = "Internal error while handling a command."

        if response is not None:
            print(f"[{_ts_local()}] {response}")

    logger.info("Console connector finished.")
