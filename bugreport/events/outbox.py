"""Durable outbox: at-least-once storage for events that could not be delivered."""

import asyncio
import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from bugreport.events.models import ReportEvent

logger = logging.getLogger(__name__)

__all__ = ["FileOutbox", "FlushResult", "Outbox", "Sender", "flush_outbox"]


class Sender(Protocol):
    """Anything with an async send(event) -> bool (a reporter)."""

    async def send(self, event: ReportEvent) -> bool: ...


@dataclass(frozen=True)
class FlushResult:
    """Outcome of one outbox flush."""

    delivered: int = 0
    failed: int = 0
    remaining: int = 0


@runtime_checkable
class Outbox(Protocol):
    """Durable queue keyed by event id."""

    async def enqueue(self, event: ReportEvent) -> bool: ...

    async def pending(self) -> list[ReportEvent]: ...

    async def ack(self, event_id: str) -> None: ...

    async def flush_with(self, reporter: Sender) -> FlushResult: ...


async def flush_outbox(outbox: Outbox, reporter: Sender) -> FlushResult:
    """Replay pending events in order; ack each one the reporter accepts."""
    delivered = failed = 0
    for event in await outbox.pending():
        try:
            ok = await reporter.send(event)
        except Exception:
            logger.exception("Outbox replay of %s raised", event.id)
            ok = False
        if ok:
            await outbox.ack(event.id)
            delivered += 1
        else:
            failed += 1
    result = FlushResult(delivered=delivered, failed=failed, remaining=failed)
    if delivered or failed:
        logger.info(
            "Outbox flush: %d delivered, %d still pending", result.delivered, result.remaining
        )
    return result


def _valid_id(event_id: str) -> bool:
    if not event_id or event_id in (".", ".."):
        return False
    return "/" not in event_id and os.sep not in event_id


class FileOutbox:
    """One `<event-id>.json` file per pending event.

    Writes go through a temporary file that is fsynced and atomically renamed,
    so a record is either complete or absent. File I/O runs in a worker thread.
    """

    suffix = ".json"

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    def _path(self, event_id: str) -> Path:
        return self.directory / f"{event_id}{self.suffix}"

    async def enqueue(self, event: ReportEvent) -> bool:
        """Persist the event's payload. Returns False (and logs) on storage errors."""
        if not _valid_id(event.id):
            logger.warning("Refusing to enqueue event with unsafe id %r", event.id)
            return False
        try:
            body = json.dumps(event.to_dict(), ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            logger.exception("Event %s is not serializable; dropped", event.id)
            return False
        try:
            await asyncio.to_thread(self._write_atomic, self._path(event.id), body)
        except OSError as e:
            logger.warning("Outbox enqueue failed for %s: %s", event.id, e)
            return False
        logger.debug("Outbox enqueued %s", event.id)
        return True

    def _write_atomic(self, path: Path, body: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.directory, prefix=".tmp-", suffix=self.suffix)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(body)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, path)
        except BaseException:
            try:
                os.unlink(tmp)
            except OSError:
                pass
            raise

    async def pending(self) -> list[ReportEvent]:
        """Stored events in id order. Unreadable records are deleted as a side effect."""
        return await asyncio.to_thread(self._read_all)

    def _read_all(self) -> list[ReportEvent]:
        try:
            if not self.directory.is_dir():
                return []
            paths = sorted(
                p for p in self.directory.iterdir()
                if p.suffix == self.suffix and not p.name.startswith(".")
            )
        except OSError as e:
            logger.warning("Outbox read failed: %s", e)
            return []
        events: list[ReportEvent] = []
        for path in paths:
            event = self._read_one(path)
            if event is not None:
                events.append(event)
        return events

    def _read_one(self, path: Path) -> ReportEvent | None:
        try:
            return ReportEvent.from_json(path.read_text(encoding="utf-8"), path.stem)
        except FileNotFoundError:
            return None
        except (OSError, ValueError, TypeError, KeyError) as e:
            logger.warning("Deleting corrupt outbox record %s: %s", path.name, e)
            try:
                path.unlink(missing_ok=True)
            except OSError as unlink_error:
                logger.warning("Could not delete %s: %s", path.name, unlink_error)
            return None

    async def ack(self, event_id: str) -> None:
        if not _valid_id(event_id):
            return
        try:
            await asyncio.to_thread(self._path(event_id).unlink, missing_ok=True)
        except OSError as e:
            logger.warning("Outbox ack failed for %s: %s", event_id, e)

    async def flush_with(self, reporter: Sender) -> FlushResult:
        return await flush_outbox(self, reporter)

    async def size(self) -> int:
        return len(await self.pending())

    def __repr__(self) -> str:
        return f"FileOutbox({str(self.directory)!r})"
