"""Error taxonomy: severity levels and the tagged ReportableError variant."""

import json
import traceback
from enum import Enum
from types import MappingProxyType, TracebackType
from typing import Any, Mapping

__all__ = [
    "ErrorKind",
    "ReportableError",
    "Severity",
    "api_error",
    "auth_error",
    "cache_error",
    "data_error",
    "format_stack",
    "initialization_error",
    "normalize_error",
    "parsing_error",
    "permission_error",
    "storage_error",
    "token_error",
    "unexpected_error",
    "validation_error",
]


class Severity(str, Enum):
    """Ordered severity. Lower rank = more severe."""

    CRITICAL = "critical"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"

    @property
    def rank(self) -> int:
        return _SEVERITY_ORDER.index(self)

    def meets(self, threshold: "Severity") -> bool:
        """True if this severity is at least as severe as threshold."""
        return self.rank <= threshold.rank

    @classmethod
    def parse(cls, value: Any, default: "Severity | None" = None) -> "Severity":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return default or cls.ERROR


_SEVERITY_ORDER = [Severity.CRITICAL, Severity.ERROR, Severity.WARNING, Severity.INFO]


class ErrorKind(str, Enum):
    """Variant tag of a ReportableError."""

    API = "api"
    AUTH = "auth"
    TOKEN = "token"
    VALIDATION = "validation"
    STORAGE = "storage"
    CACHE = "cache"
    DATA = "data"
    PARSING = "parsing"
    PERMISSION = "permission"
    PLATFORM = "platform"
    INITIALIZATION = "initialization"
    UNEXPECTED = "unexpected"

    @property
    def type_name(self) -> str:
        """Concrete type identifier used in payloads and fingerprints."""
        return _TYPE_NAMES[self]


_TYPE_NAMES = {
    ErrorKind.API: "ApiError",
    ErrorKind.AUTH: "AuthError",
    ErrorKind.TOKEN: "TokenError",
    ErrorKind.VALIDATION: "ValidationError",
    ErrorKind.STORAGE: "StorageError",
    ErrorKind.CACHE: "CacheError",
    ErrorKind.DATA: "DataProcessingError",
    ErrorKind.PARSING: "ParsingError",
    ErrorKind.PERMISSION: "PermissionDeniedError",
    ErrorKind.PLATFORM: "PlatformError",
    ErrorKind.INITIALIZATION: "InitializationError",
    ErrorKind.UNEXPECTED: "UnexpectedError",
}


class ReportableError(Exception):
    """Domain error carrying everything needed to build a report.

    One class for all kinds; the kind tag plus metadata replace a subclass
    per error family. Use the factory helpers below for the common kinds.
    """

    def __init__(
        self,
        kind: ErrorKind,
        user_message: str,
        dev_message: str,
        *,
        severity: Severity = Severity.ERROR,
        reportable: bool = True,
        cause: BaseException | str | None = None,
        stack: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(dev_message)
        self.kind = kind
        self.user_message = user_message
        self.dev_message = dev_message
        self.severity = severity
        self.reportable = reportable
        self.cause = cause
        self.stack = stack
        self.metadata: Mapping[str, Any] = MappingProxyType(dict(metadata or {}))

    @property
    def type_name(self) -> str:
        return self.kind.type_name

    def with_stack(self, stack: str | None) -> "ReportableError":
        """Return a copy of this error carrying the given stack text."""
        return ReportableError(
            self.kind,
            self.user_message,
            self.dev_message,
            severity=self.severity,
            reportable=self.reportable,
            cause=self.cause,
            stack=stack,
            metadata=self.metadata,
        )

    def __repr__(self) -> str:
        return (
            f"ReportableError(kind={self.kind.value!r}, severity={self.severity.value!r}, "
            f"dev_message={self.dev_message!r})"
        )


def format_stack(tb: TracebackType | None) -> str | None:
    """Render a traceback innermost frame first, one line per frame."""
    if tb is None:
        return None
    frames = traceback.extract_tb(tb)
    if not frames:
        return None
    lines = [f"at {f.name} ({f.filename}:{f.lineno})" for f in reversed(frames)]
    return "\n".join(lines)


# --- factories ---


def api_error(
    status_code: int,
    *,
    user_message: str | None = None,
    dev_message: str | None = None,
    url: str | None = None,
    method: str | None = None,
    severity: Severity = Severity.ERROR,
    cause: BaseException | str | None = None,
    metadata: Mapping[str, Any] | None = None,
) -> ReportableError:
    meta: dict[str, Any] = {"statusCode": status_code}
    if url:
        meta["url"] = url
    if method:
        meta["method"] = method
    meta.update(metadata or {})
    return ReportableError(
        ErrorKind.API,
        user_message or _status_user_message(status_code),
        dev_message or f"HTTP {status_code}" + (f" for {method or 'GET'} {url}" if url else ""),
        severity=severity,
        cause=cause,
        metadata=meta,
    )


def _status_user_message(status_code: int) -> str:
    if status_code in (401, 403):
        return "You are not allowed to perform this action."
    if status_code == 404:
        return "The requested resource was not found."
    if status_code == 429:
        return "Too many requests. Please try again later."
    if status_code >= 500:
        return "The server encountered a problem. Please try again later."
    return "The request could not be completed."


def auth_error(
    user_message: str,
    *,
    dev_message: str | None = None,
    error_code: str | None = None,
    provider: str | None = None,
    severity: Severity = Severity.ERROR,
    cause: BaseException | str | None = None,
    metadata: Mapping[str, Any] | None = None,
) -> ReportableError:
    meta: dict[str, Any] = {}
    if error_code is not None:
        meta["errorCode"] = error_code
    if provider is not None:
        meta["provider"] = provider
    meta.update(metadata or {})
    return ReportableError(
        ErrorKind.AUTH,
        user_message,
        dev_message or user_message,
        severity=severity,
        cause=cause,
        metadata=meta,
    )


def token_error(
    dev_message: str,
    *,
    user_message: str | None = None,
    provider: str | None = None,
    cause: BaseException | str | None = None,
) -> ReportableError:
    meta = {"provider": provider} if provider else {}
    return ReportableError(
        ErrorKind.TOKEN,
        user_message or "Your session has expired. Please sign in again.",
        dev_message,
        cause=cause,
        metadata=meta,
    )


def validation_error(
    user_message: str,
    *,
    dev_message: str | None = None,
    validation_errors: Mapping[str, Any] | None = None,
    severity: Severity = Severity.WARNING,
    reportable: bool = False,
) -> ReportableError:
    meta = {"validationErrors": dict(validation_errors)} if validation_errors else {}
    return ReportableError(
        ErrorKind.VALIDATION,
        user_message,
        dev_message or "Validation failed.",
        severity=severity,
        reportable=reportable,
        metadata=meta,
    )


def storage_error(
    operation: str,
    *,
    key: str | None = None,
    storage_type: str | None = None,
    user_message: str = "Failed to access stored data.",
    dev_message: str | None = None,
    cause: BaseException | str | None = None,
    metadata: Mapping[str, Any] | None = None,
) -> ReportableError:
    meta: dict[str, Any] = {"operation": operation}
    if key is not None:
        meta["key"] = key
    if storage_type is not None:
        meta["storageType"] = storage_type
    meta.update(metadata or {})
    return ReportableError(
        ErrorKind.STORAGE,
        user_message,
        dev_message or f"Storage operation failed: {operation}",
        cause=cause,
        metadata=meta,
    )


def cache_error(
    key: str, operation: str, *, cause: BaseException | str | None = None
) -> ReportableError:
    return ReportableError(
        ErrorKind.CACHE,
        "Failed to access cached data.",
        f"Cache operation failed: {operation} for key: {key}",
        cause=cause,
        metadata={"operation": operation, "key": key, "storageType": "cache"},
    )


def data_error(
    user_message: str,
    dev_message: str,
    *,
    operation: str | None = None,
    data: Any = None,
    severity: Severity = Severity.ERROR,
    cause: BaseException | str | None = None,
) -> ReportableError:
    meta: dict[str, Any] = {}
    if operation is not None:
        meta["operation"] = operation
    if data is not None:
        meta["rawData"] = data
    return ReportableError(
        ErrorKind.DATA, user_message, dev_message, severity=severity, cause=cause, metadata=meta
    )


def parsing_error(
    raw_data: Any, target_type: str, *, cause: BaseException | str | None = None
) -> ReportableError:
    meta: dict[str, Any] = {"operation": "parsing", "targetType": target_type}
    if raw_data is not None:
        meta["rawData"] = raw_data
    return ReportableError(
        ErrorKind.PARSING,
        "Unable to process data.",
        f"Failed to parse {target_type}",
        cause=cause,
        metadata=meta,
    )


def permission_error(
    permission: str,
    *,
    user_message: str | None = None,
    severity: Severity = Severity.WARNING,
    cause: BaseException | str | None = None,
) -> ReportableError:
    return ReportableError(
        ErrorKind.PERMISSION,
        user_message or "Permission is required to continue.",
        f"Permission denied: {permission}",
        severity=severity,
        cause=cause,
        metadata={"permission": permission},
    )


def initialization_error(
    component: str, *, cause: BaseException | str | None = None
) -> ReportableError:
    return ReportableError(
        ErrorKind.INITIALIZATION,
        "The application failed to start correctly.",
        f"Failed to initialize {component}",
        severity=Severity.CRITICAL,
        cause=cause,
        metadata={"component": component},
    )


def unexpected_error(
    cause: BaseException | None = None,
    *,
    source: str | None = None,
    severity: Severity = Severity.ERROR,
    stack: str | None = None,
) -> ReportableError:
    meta: dict[str, Any] = {
        "errorType": type(cause).__name__ if cause is not None else None,
        "originalError": str(cause) if cause is not None else None,
    }
    if source:
        meta["source"] = source
    return ReportableError(
        ErrorKind.UNEXPECTED,
        "An unexpected error occurred.",
        f"Unexpected error in {source}" if source else "Unexpected error.",
        severity=severity,
        cause=cause,
        stack=stack,
        metadata=meta,
    )


def normalize_error(
    error: BaseException,
    *,
    source: str | None = None,
    default_severity: Severity = Severity.ERROR,
) -> ReportableError:
    """Map any exception into a ReportableError.

    ReportableError passes through (gaining a stack if it had none),
    decode errors become parsing errors, PermissionError and other OSError
    map to permission/storage, everything else is unexpected.
    """
    stack = format_stack(error.__traceback__)
    if isinstance(error, ReportableError):
        return error if error.stack or not stack else error.with_stack(stack)
    if isinstance(error, (json.JSONDecodeError, UnicodeDecodeError)):
        return parsing_error(None, "unknown", cause=error).with_stack(stack)
    if isinstance(error, PermissionError):
        return permission_error(source or "unknown", cause=error).with_stack(stack)
    if isinstance(error, OSError):
        return storage_error(
            source or "unknown", dev_message=f"{type(error).__name__}: {error}", cause=error
        ).with_stack(stack)
    return unexpected_error(error, source=source, severity=default_severity, stack=stack)
