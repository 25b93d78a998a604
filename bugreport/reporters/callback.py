"""Reporter adapting a plain callable."""

import inspect
from typing import Any, Callable

from bugreport.events.models import ReportEvent
from bugreport.reporters.base import BaseReporter


class CallbackReporter(BaseReporter):
    """Calls fn(event) (sync or async). A None result counts as success."""

    def __init__(
        self,
        fn: Callable[[ReportEvent], Any],
        *,
        share_fn: Callable[[ReportEvent], Any] | None = None,
    ) -> None:
        self._fn = fn
        self._share_fn = share_fn

    async def send(self, event: ReportEvent) -> bool:
        return await self._invoke(self._fn, event)

    async def share(self, event: ReportEvent) -> bool:
        if self._share_fn is None:
            return False
        return await self._invoke(self._share_fn, event)

    @staticmethod
    async def _invoke(fn: Callable[[ReportEvent], Any], event: ReportEvent) -> bool:
        result = fn(event)
        if inspect.isawaitable(result):
            result = await result
        return True if result is None else bool(result)
