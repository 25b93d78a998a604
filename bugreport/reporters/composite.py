"""Fan-out over several reporters; any success counts as delivered."""

import asyncio
import logging
from typing import Iterable

from bugreport.events.models import ReportEvent
from bugreport.reporters.base import BaseReporter, Reporter

logger = logging.getLogger(__name__)


class CompositeReporter(BaseReporter):
    """Calls reporters in order and returns True if at least one succeeded.

    A failing or raising reporter never stops the others. With
    concurrent=True all reporters are dispatched at once via asyncio.gather;
    aggregation and isolation stay the same.
    """

    def __init__(self, reporters: Iterable[Reporter], *, concurrent: bool = False) -> None:
        self.reporters = list(reporters)
        self.concurrent = concurrent

    async def send(self, event: ReportEvent) -> bool:
        return await self._fan_out("send", event)

    async def share(self, event: ReportEvent) -> bool:
        return await self._fan_out("share", event)

    async def _fan_out(self, method: str, event: ReportEvent) -> bool:
        if self.concurrent:
            results = await asyncio.gather(
                *(self._call(r, method, event) for r in self.reporters)
            )
            return any(results)
        any_success = False
        for r in self.reporters:
            ok = await self._call(r, method, event)
            any_success = any_success or ok
        return any_success

    @staticmethod
    async def _call(reporter: Reporter, method: str, event: ReportEvent) -> bool:
        try:
            return bool(await getattr(reporter, method)(event))
        except Exception:
            logger.exception(
                "Reporter %s.%s failed for event %s", type(reporter).__name__, method, event.id
            )
            return False
