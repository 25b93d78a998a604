"""Error-event pipeline: sanitize, gate, deliver and durably queue bug reports."""

from bugreport.client import BugReportClient, ClientConfig
from bugreport.errors import ErrorKind, ReportableError, Severity, normalize_error
from bugreport.events import FileOutbox, FlushResult, ReportEvent, SqliteOutbox
from bugreport.guard import Err, Ok, guard, guard_sync, parse_with
from bugreport.policy import Policy

__all__ = [
    "BugReportClient",
    "ClientConfig",
    "Err",
    "ErrorKind",
    "FileOutbox",
    "FlushResult",
    "Ok",
    "Policy",
    "ReportEvent",
    "ReportableError",
    "Severity",
    "SqliteOutbox",
    "guard",
    "guard_sync",
    "normalize_error",
    "parse_with",
]
