"""Reporter that writes each event payload to a JSON file."""

import asyncio
import json
import logging
from pathlib import Path

from bugreport.events.models import ReportEvent
from bugreport.reporters.base import BaseReporter

logger = logging.getLogger(__name__)


class FileReporter(BaseReporter):
    """Writes `bug_report_<id>.json` into directory.

    share() produces the same file for user-initiated export; the path of the
    last written file is kept in last_path.
    """

    def __init__(self, directory: Path | str, *, indent: int | None = 2) -> None:
        self.directory = Path(directory)
        self.indent = indent
        self.last_path: Path | None = None

    async def send(self, event: ReportEvent) -> bool:
        return await self._write(event)

    async def share(self, event: ReportEvent) -> bool:
        return await self._write(event)

    async def _write(self, event: ReportEvent) -> bool:
        path = self.directory / self.default_file_name(event)
        body = json.dumps(event.to_dict(), ensure_ascii=False, indent=self.indent, default=str)
        try:
            await asyncio.to_thread(self._write_sync, path, body)
        except OSError as e:
            logger.warning("Could not write report file %s: %s", path, e)
            return False
        self.last_path = path
        logger.debug("Report %s written to %s", event.id, path)
        return True

    def _write_sync(self, path: Path, body: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path.write_text(body, encoding="utf-8")
