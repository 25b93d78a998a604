"""Maintenance entry point: inspect and flush the outbox from the command line."""

import argparse
import asyncio
from pathlib import Path

from dotenv import load_dotenv

from bugreport.events.outbox import Outbox
from bugreport.factory import build_outbox, build_reporters
from bugreport.formatting import relative_time
from bugreport.logging_config import setup_logging
from bugreport.reporters.composite import CompositeReporter
from bugreport.settings import load_settings, reload_settings

_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m bugreport", description="Inspect or flush the bug report outbox."
    )
    parser.add_argument(
        "command", nargs="?", default="pending", choices=("pending", "flush"),
        help="pending: list queued events (default); flush: redeliver them",
    )
    parser.add_argument(
        "--root", type=Path, default=_PROJECT_ROOT,
        help="project root holding config/ and data/ (default: package parent)",
    )
    return parser


async def _close(outbox: Outbox) -> None:
    close = getattr(outbox, "close", None)
    if close is not None:
        await close()


async def main_async(command: str, project_root: Path) -> int:
    """Run one command; return 0 when the outbox is empty afterwards, else 1."""
    reload_settings()
    settings = load_settings(project_root / "config")
    setup_logging(project_root, settings)
    outbox = build_outbox(settings, project_root)
    try:
        if command == "flush":
            pipeline = CompositeReporter(build_reporters(settings, project_root))
            result = await outbox.flush_with(pipeline)
            print(
                f"delivered={result.delivered} failed={result.failed} "
                f"remaining={result.remaining}"
            )
            return 0 if result.remaining == 0 else 1
        events = await outbox.pending()
        for event in events:
            print(
                f"{event.id}  {event.exception.type:<24} {event.severity.value:<8} "
                f"{relative_time(event.timestamp)}"
            )
        print(f"{len(events)} pending")
        return 0 if not events else 1
    finally:
        await _close(outbox)


def main(argv: list[str] | None = None) -> int:
    """Synchronous entry for the maintenance CLI."""
    args = _build_parser().parse_args(argv)
    root = args.root.resolve()
    load_dotenv(root / ".env")
    try:
        return asyncio.run(main_async(args.command, root))
    except KeyboardInterrupt:
        return 130


__all__ = ["main", "main_async"]
