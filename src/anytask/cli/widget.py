# src/anytask/cli/widget.py

"""
`anytask-widget`: stand-in for the home-screen widget process.

It only reads the shared area and writes intents into it; the app picks the
intents up the next time it comes to the foreground.
"""

from __future__ import annotations

import argparse
import logging
from datetime import datetime
from pathlib import Path

from ..config import get_settings
from ..logging_setup import setup_widget_logging
from ..widget.consumer import WidgetConsumer
from ..widget.projection import WidgetFamily
from ..widget.shared_defaults import SharedDefaults

logger = logging.getLogger(__name__)


def _render(consumer: WidgetConsumer) -> str:
    entry = consumer.load_entry()
    lines = [f"{entry.section_name}"]
    if not entry.rows:
        lines.append("  (no tasks)")
    for row in entry.rows:
        lines.append(f"  {'x' if row.complete else 'o'} {row.text}  [{row.task_id}]")
    refresh = datetime.fromtimestamp(entry.refresh_after).astimezone().strftime("%H:%M:%S")
    lines.append(f"(next refresh after {refresh})")
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> int:
    settings = get_settings()

    parser = argparse.ArgumentParser(description="AnyTask widget (reads the shared projection)")
    parser.add_argument(
        "--defaults",
        type=Path,
        default=settings.shared_defaults_path,
        help="Path to the shared defaults file",
    )
    parser.add_argument(
        "--family",
        choices=["small", "medium"],
        default=settings.widget_family,
        help="Widget size (small shows 3 tasks, medium 6)",
    )
    parser.add_argument(
        "--queue",
        action="store_true",
        help="Record toggles in the pending queue instead of the completed set",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output to stderr")
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("show", help="Render the widget")
    p_toggle = sub.add_parser("toggle", help="Toggle a task by id")
    p_toggle.add_argument("task_id")
    p_switch = sub.add_parser("switch", help="Ask the app to show another section")
    p_switch.add_argument("section_id")
    sub.add_parser("sections", help="List sections the widget can switch to")

    args = parser.parse_args(argv)
    setup_widget_logging(log_dir=settings.data_dir, verbose=args.verbose)
    logger.debug("Widget command=%s family=%s", args.command or "show", args.family)

    consumer = WidgetConsumer(
        SharedDefaults(args.defaults),
        family=WidgetFamily.parse(args.family),
        refresh_seconds=settings.widget_refresh_seconds,
        direct_writes=not args.queue,
    )

    if args.command == "toggle":
        if consumer.toggle(args.task_id) is None:
            print("Nothing published yet; open the app first.")
            return 1
    elif args.command == "switch":
        if consumer.switch_section(args.section_id) is None:
            print(f"Unknown section: {args.section_id}")
            return 1
    elif args.command == "sections":
        for s in consumer.snapshot().available_sections:
            print(f"{s.id}  {s.color.value}  {s.icon.value}")
        return 0

    print(_render(consumer))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
