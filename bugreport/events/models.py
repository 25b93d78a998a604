"""Report event model: exception snapshot, breadcrumbs, attachments, event."""

import json
import threading
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Mapping

from bugreport.errors import ReportableError, Severity

__all__ = [
    "Attachment",
    "Breadcrumb",
    "ExceptionSnapshot",
    "ReportEvent",
    "generate_event_id",
]

_ID_WIDTH = 12  # base36 micros; fixed width keeps lexicographic == chronological
_id_lock = threading.Lock()
_last_micros = 0


def _to_base36(n: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    out = ""
    while n:
        n, r = divmod(n, 36)
        out = digits[r] + out
    return out or "0"


def generate_event_id() -> str:
    """Return a time-derived id, strictly increasing within the process."""
    global _last_micros
    with _id_lock:
        micros = time.time_ns() // 1000
        if micros <= _last_micros:
            micros = _last_micros + 1
        _last_micros = micros
    return "r_" + _to_base36(micros).rjust(_ID_WIDTH, "0")


def _parse_ts(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    try:
        ts = datetime.fromisoformat(str(value))
    except (TypeError, ValueError):
        return datetime.now(timezone.utc)
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def _as_dict(value: Any) -> dict[str, Any]:
    return dict(value) if isinstance(value, Mapping) else {}


@dataclass(frozen=True)
class ExceptionSnapshot:
    """Immutable, serializable view of the triggering error."""

    type: str
    user_message: str
    dev_message: str
    severity: Severity = Severity.ERROR
    reportable: bool = True
    cause: str | None = None
    stack: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_error(cls, error: ReportableError) -> "ExceptionSnapshot":
        cause = error.cause
        if isinstance(cause, BaseException):
            cause = f"{type(cause).__name__}: {cause}"
        return cls(
            type=error.type_name,
            user_message=error.user_message,
            dev_message=error.dev_message,
            severity=error.severity,
            reportable=error.reportable,
            cause=cause,
            stack=error.stack,
            metadata=dict(error.metadata),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ExceptionSnapshot":
        cause = data.get("cause")
        stack = data.get("stack")
        return cls(
            type=str(data.get("type") or "SerializedError"),
            user_message=str(data.get("userMessage") or "An error occurred"),
            dev_message=str(data.get("devMessage") or "Unknown error"),
            severity=Severity.parse(data.get("severity")),
            reportable=bool(data.get("reportable", True)),
            cause=str(cause) if cause is not None else None,
            stack=str(stack) if stack is not None else None,
            metadata=_as_dict(data.get("metadata")),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "type": self.type,
            "userMessage": self.user_message,
            "devMessage": self.dev_message,
            "severity": self.severity.value,
            "metadata": dict(self.metadata),
        }
        if self.cause is not None:
            out["cause"] = self.cause
        if self.stack is not None:
            out["stack"] = self.stack
        return out


@dataclass(frozen=True)
class Breadcrumb:
    """A small trail entry recorded before an error."""

    timestamp: datetime
    message: str
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Breadcrumb":
        return cls(
            timestamp=_parse_ts(data.get("ts")),
            message=str(data.get("message", "")),
            data=_as_dict(data.get("data")),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"ts": self.timestamp.isoformat(), "message": self.message}
        if self.data:
            out["data"] = dict(self.data)
        return out


@dataclass(frozen=True)
class Attachment:
    """Attachment descriptor; content sourcing is up to the reporter."""

    name: str
    content_type: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Attachment":
        return cls(name=str(data.get("name", "")), content_type=str(data.get("contentType", "")))

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "contentType": self.content_type}


@dataclass(frozen=True)
class ReportEvent:
    """Immutable error event. An attached payload is authoritative for serialization."""

    id: str
    exception: ExceptionSnapshot
    context: dict[str, Any]
    timestamp: datetime
    fingerprints: tuple[str, ...] = ()
    breadcrumbs: tuple[Breadcrumb, ...] = ()
    attachments: tuple[Attachment, ...] = ()
    handled: bool = True
    payload: dict[str, Any] | None = field(default=None, compare=False, repr=False)

    @property
    def primary_fingerprint(self) -> str | None:
        return self.fingerprints[0] if self.fingerprints else None

    @property
    def severity(self) -> Severity:
        return self.exception.severity

    def to_dict(self) -> dict[str, Any]:
        if self.payload is not None:
            return self.payload
        out: dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "handled": self.handled,
            "exception": self.exception.to_dict(),
            "context": dict(self.context),
        }
        if self.fingerprints:
            out["fingerprints"] = list(self.fingerprints)
        if self.breadcrumbs:
            out["breadcrumbs"] = [b.to_dict() for b in self.breadcrumbs]
        if self.attachments:
            out["attachments"] = [a.to_dict() for a in self.attachments]
        return out

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)

    def with_payload(self, payload: dict[str, Any]) -> "ReportEvent":
        """Copy of this event with a pre-sanitized payload embedded."""
        return replace(self, payload=payload)

    def replace(self, **changes: Any) -> "ReportEvent":
        """Copy of this event with fields changed. An embedded payload is kept as-is."""
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], event_id: str | None = None) -> "ReportEvent":
        """Rehydrate an event; the given map becomes its payload.

        event_id, when given, is the durable storage key and overrides the
        payload's own "id". Raises KeyError/TypeError when the map has no usable id.
        """
        stored_id = data["id"]
        if not isinstance(stored_id, str) or not stored_id:
            raise TypeError("event id must be a non-empty string")
        event_id = event_id or stored_id
        payload = dict(data)
        payload["id"] = event_id
        exc = data.get("exception")
        snapshot = (
            ExceptionSnapshot.from_dict(exc)
            if isinstance(exc, Mapping)
            else ExceptionSnapshot(
                type="SerializedError", user_message="Unknown error", dev_message="Unknown error"
            )
        )
        fingerprints = data.get("fingerprints")
        breadcrumbs = data.get("breadcrumbs")
        attachments = data.get("attachments")
        return cls(
            id=event_id,
            exception=snapshot,
            context=_as_dict(data.get("context")),
            timestamp=_parse_ts(data.get("timestamp")),
            fingerprints=tuple(str(f) for f in fingerprints) if isinstance(fingerprints, list) else (),
            breadcrumbs=tuple(
                Breadcrumb.from_dict(b) for b in breadcrumbs if isinstance(b, Mapping)
            )
            if isinstance(breadcrumbs, list)
            else (),
            attachments=tuple(
                Attachment.from_dict(a) for a in attachments if isinstance(a, Mapping)
            )
            if isinstance(attachments, list)
            else (),
            handled=bool(data.get("handled", True)),
            payload=payload,
        )

    @classmethod
    def from_json(cls, text: str, event_id: str | None = None) -> "ReportEvent":
        data = json.loads(text)
        if not isinstance(data, dict):
            raise TypeError("event JSON must be an object")
        return cls.from_dict(data, event_id)
