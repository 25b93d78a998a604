"""Development reporter that writes a compact event summary to the log."""

import logging
from typing import Any

from bugreport.events.models import ReportEvent
from bugreport.formatting import format_bytes, truncate
from bugreport.reporters.base import BaseReporter

logger = logging.getLogger(__name__)

_RULE = "-" * 56


def _section(payload: dict[str, Any], key: str) -> dict[str, Any]:
    value = payload.get(key)
    return value if isinstance(value, dict) else {}


class ConsoleReporter(BaseReporter):
    """Logs the sanitized payload summary. Returns True on send when enabled.

    Reads only the serialized (sanitized) payload, never the raw exception.
    """

    def __init__(
        self,
        *,
        enabled: bool = True,
        full_json: bool = False,
        max_context_keys: int = 12,
        max_message_length: int = 240,
        stack_lines: int = 6,
        log: logging.Logger | None = None,
    ) -> None:
        self.enabled = enabled
        self.full_json = full_json
        self.max_context_keys = max_context_keys
        self.max_message_length = max_message_length
        self.stack_lines = stack_lines
        self._log = log or logger

    async def send(self, event: ReportEvent) -> bool:
        if not self.enabled:
            return False
        for line in self.render(event):
            self._log.info("%s", line)
        return True

    def render(self, event: ReportEvent) -> list[str]:
        payload = event.to_dict()
        body = event.to_json()
        exc = _section(payload, "exception")
        ctx = _section(payload, "context")

        lines = [
            _RULE,
            f"[BugReport] id={payload.get('id', event.id)} ts={payload.get('timestamp', '')} "
            f"size={format_bytes(len(body.encode('utf-8')))}",
            f"type={exc.get('type', '?')} severity={exc.get('severity', '?')}",
            f"userMessage: {truncate(str(exc.get('userMessage', '')), self.max_message_length)}",
            f"devMessage : {truncate(str(exc.get('devMessage', '')), self.max_message_length)}",
        ]
        keys = list(ctx)[: self.max_context_keys]
        more = ", ..." if len(ctx) > self.max_context_keys else ""
        lines.append(f"context    : {{{', '.join(map(str, keys))}{more}}} (total: {len(ctx)})")
        stack = exc.get("stack")
        if isinstance(stack, str) and stack:
            lines.append("stack:")
            lines.extend(stack.splitlines()[: self.stack_lines])
        if self.full_json:
            lines.append(f"json: {body}")
        lines.append(_RULE)
        return lines
