"""Reporter contract: delivery sinks for sanitized events."""

from typing import Protocol, runtime_checkable

from bugreport.events.models import ReportEvent


@runtime_checkable
class Reporter(Protocol):
    """A delivery sink.

    send() is automatic delivery, share() a user-initiated export. Both
    return True on success; implementations should not raise, but callers
    isolate them anyway.
    """

    async def send(self, event: ReportEvent) -> bool: ...

    async def share(self, event: ReportEvent) -> bool: ...


class BaseReporter:
    """Convenience base: share() is unsupported unless overridden."""

    async def send(self, event: ReportEvent) -> bool:
        raise NotImplementedError

    async def share(self, event: ReportEvent) -> bool:
        return False

    @staticmethod
    def default_file_name(event: ReportEvent) -> str:
        return f"bug_report_{event.id}.json"
