"""Report events and their durable outbox."""

from bugreport.events.journal import SqliteOutbox
from bugreport.events.models import (
    Attachment,
    Breadcrumb,
    ExceptionSnapshot,
    ReportEvent,
    generate_event_id,
)
from bugreport.events.outbox import FileOutbox, FlushResult, Outbox

__all__ = [
    "Attachment",
    "Breadcrumb",
    "ExceptionSnapshot",
    "FileOutbox",
    "FlushResult",
    "Outbox",
    "ReportEvent",
    "SqliteOutbox",
    "generate_event_id",
]
