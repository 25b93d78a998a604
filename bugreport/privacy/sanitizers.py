"""Sanitization pipeline for privacy and size control.

Sanitizers take a JSON-like map and return a new one; the input is never
mutated. They are applied in order by SanitizerChain before delivery and
before an event is written to the outbox.
"""

import json
import logging
import re
from datetime import date, datetime
from enum import Enum
from typing import Any, Iterable, Mapping, Pattern, Protocol, runtime_checkable

from bugreport.events.models import ReportEvent
from bugreport.privacy.filters import DataFilter

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_SENSITIVE_KEYS",
    "DefaultSanitizer",
    "FilterSanitizer",
    "MaskingStrategy",
    "MaxDepthSanitizer",
    "RegexValueSanitizer",
    "Sanitizer",
    "SanitizerChain",
    "SensitiveFieldMatcher",
    "SizeBudgetSanitizer",
    "TruncatingSanitizer",
    "looks_like_card_number",
    "looks_like_secret",
    "payload_size",
    "sanitize_event",
]


@runtime_checkable
class Sanitizer(Protocol):
    """Returns a new sanitized map. The input is never mutated."""

    def sanitize(self, data: Mapping[str, Any]) -> dict[str, Any]: ...


class SanitizerChain:
    """Applies sanitizers strictly in order.

    A stage that fails unexpectedly is logged and replaced by a stringified
    copy of its input, so the chain itself never raises.
    """

    def __init__(self, sanitizers: Iterable[Sanitizer]) -> None:
        self.sanitizers = list(sanitizers)

    def sanitize(self, data: Mapping[str, Any]) -> dict[str, Any]:
        out = _coerce_map(data)
        for s in self.sanitizers:
            try:
                result = s.sanitize(out)
            except Exception:
                logger.exception("Sanitizer %s failed; degrading to stringified payload", type(s).__name__)
                result = {str(k): _stringify(v) for k, v in out.items()}
            out = result if isinstance(result, dict) else _coerce_map(result)
        return out


class FilterSanitizer:
    """Runs a DataFilter as a pipeline stage."""

    def __init__(self, data_filter: DataFilter) -> None:
        self.filter = data_filter

    def sanitize(self, data: Mapping[str, Any]) -> dict[str, Any]:
        return self.filter.apply(data)


def sanitize_event(sanitizer: Sanitizer, event: ReportEvent) -> ReportEvent:
    """Return a copy of event with the sanitized payload embedded."""
    return event.with_payload(sanitizer.sanitize(event.to_dict()))


# --- masking ---


class MaskingStrategy:
    """Masks the interior of a string, keeping a few characters at each end."""

    def __init__(
        self,
        *,
        mask_char: str = "*",
        keep_start: int = 1,
        keep_end: int = 1,
        min_masked: int = 2,
    ) -> None:
        if keep_start < 0 or keep_end < 0 or min_masked < 0:
            raise ValueError("keep_start, keep_end and min_masked must be non-negative")
        self.mask_char = mask_char
        self.keep_start = keep_start
        self.keep_end = keep_end
        self.min_masked = min_masked

    def mask(self, value: str) -> str:
        if not value:
            return ""
        total = len(value)
        masked = min(max(total - self.keep_start - self.keep_end, self.min_masked), total)
        if masked <= 0:
            return self.mask_char * total
        start = value[: min(self.keep_start, total)]
        end = value[total - min(self.keep_end, total) :]
        return f"{start}{self.mask_char * masked}{end}"

    def mask_card(self, value: str) -> str:
        """Mask all but the last four digits; separators are dropped."""
        digits = re.sub(r"\D", "", value)
        if len(digits) < 8:
            return self.mask(value)
        return self.mask_char * (len(digits) - 4) + digits[-4:]


# Case-insensitive; matched both as-is and with `-`, `_` and whitespace stripped.
DEFAULT_SENSITIVE_KEYS = frozenset(
    {
        # auth
        "authorization", "auth", "bearer", "basic", "apikey", "api_key", "api-key",
        "token", "access_token", "refresh_token", "id_token", "session_token",
        "client_secret", "clientsecret", "secret", "private_key", "public_key",
        "cookie", "set-cookie",
        # credentials
        "password", "passwd", "pwd", "passphrase",
        # financial
        "card", "cardnumber", "card_number", "cvv", "cvc", "iban", "swift", "bic",
        # pii
        "email", "phone", "phone_number", "mobile", "ssn", "tax_id", "passport",
        "drivers_license",
        # device/location
        "device_id", "imei", "mac", "geolocation", "coordinates",
        # generic flags
        "private", "sensitive", "confidential", "secretkey", "secure", "encrypted",
    }
)

_KEY_SEPARATORS = re.compile(r"[-_\s]")


class SensitiveFieldMatcher:
    """Matches sensitive keys and key paths."""

    def __init__(self, extra_keys: Iterable[str] | None = None) -> None:
        keys = set(DEFAULT_SENSITIVE_KEYS)
        keys.update(k.lower().strip() for k in extra_keys or ())
        self.keys = frozenset(keys | {_KEY_SEPARATORS.sub("", k) for k in keys})

    def matches(self, key: Any) -> bool:
        k = str(key).lower().strip()
        return k in self.keys or _KEY_SEPARATORS.sub("", k) in self.keys

    def matches_any(self, path: Iterable[Any]) -> bool:
        return any(self.matches(seg) for seg in path)


_JWT_RE = re.compile(r"^eyJ[A-Za-z0-9_-]*\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]*$")
_AWS_KEY_ID_RE = re.compile(r"^(AKIA|ASIA)[0-9A-Z]{16}$")
_LONG_TOKEN_RE = re.compile(r"^[A-Za-z0-9\-_.]{24,}$")
_BEARER_RE = re.compile(r"^\s*Bearer\s+.+", re.IGNORECASE)
_CARD_RE = re.compile(r"^[\d\s-]+$")


def looks_like_secret(value: str) -> bool:
    """JWT, AWS access key id, long opaque token or Bearer header."""
    return bool(
        _JWT_RE.match(value)
        or _AWS_KEY_ID_RE.match(value)
        or _LONG_TOKEN_RE.match(value)
        or _BEARER_RE.match(value)
    )


def looks_like_card_number(value: str) -> bool:
    """A run of 13-19 digits, optionally grouped by spaces or dashes."""
    if not _CARD_RE.match(value):
        return False
    digits = sum(ch.isdigit() for ch in value)
    return 13 <= digits <= 19


class DefaultSanitizer:
    """Masks values under sensitive keys and values that look like secrets."""

    def __init__(
        self,
        *,
        matcher: SensitiveFieldMatcher | None = None,
        field_mask: MaskingStrategy | None = None,
        content_mask: MaskingStrategy | None = None,
        content_detection: bool = True,
    ) -> None:
        self._matcher = matcher or SensitiveFieldMatcher()
        self._field_mask = field_mask or MaskingStrategy()
        self._content_mask = content_mask or MaskingStrategy(keep_start=2, keep_end=2)
        self.content_detection = content_detection

    def sanitize(self, data: Mapping[str, Any]) -> dict[str, Any]:
        return self._walk_map(data, ())

    def _walk(self, value: Any, path: tuple[str, ...]) -> Any:
        if isinstance(value, Mapping):
            return self._walk_map(value, path)
        if isinstance(value, (list, tuple)):
            return [self._walk(v, path) for v in value]
        if value is None:
            value = ""
        if isinstance(value, str):
            return self._mask_string(value, path)
        return _coerce_scalar(value)

    def _walk_map(self, data: Mapping[str, Any], path: tuple[str, ...]) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for key, value in data.items():
            key = str(key)
            if self._matcher.matches(key):
                out[key] = self._field_mask.mask(_stringify(value))
            else:
                out[key] = self._walk(value, (*path, key.lower()))
        return out

    def _mask_string(self, value: str, path: tuple[str, ...]) -> str:
        if self._matcher.matches_any(path):
            return self._field_mask.mask(value)
        if self.content_detection and looks_like_secret(value):
            return self._content_mask.mask(value)
        if looks_like_card_number(value):
            return self._content_mask.mask_card(value)
        return value


class RegexValueSanitizer:
    """Rewrites every string leaf with ordered pattern -> replacement rules."""

    def __init__(
        self, rules: Mapping[str | Pattern[str], str] | Iterable[tuple[str | Pattern[str], str]]
    ) -> None:
        items = rules.items() if isinstance(rules, Mapping) else rules
        self.rules = [(re.compile(p) if isinstance(p, str) else p, r) for p, r in items]

    def sanitize(self, data: Mapping[str, Any]) -> dict[str, Any]:
        return self._walk(data)

    def _walk(self, value: Any) -> Any:
        if isinstance(value, Mapping):
            return {str(k): self._walk(v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [self._walk(v) for v in value]
        if value is None:
            return ""
        if isinstance(value, str):
            for pattern, replacement in self.rules:
                value = pattern.sub(replacement, value)
            return value
        return _coerce_scalar(value)


class MaxDepthSanitizer:
    """Replaces everything at or beyond max_depth with a marker."""

    def __init__(self, max_depth: int = 8, redaction_marker: str = "<redacted:depth>") -> None:
        self.max_depth = max_depth
        self.redaction_marker = redaction_marker

    def sanitize(self, data: Mapping[str, Any]) -> dict[str, Any]:
        return {str(k): self._walk(v, 1) for k, v in data.items()}

    def _walk(self, value: Any, depth: int) -> Any:
        if depth >= self.max_depth:
            return self.redaction_marker
        if isinstance(value, Mapping):
            return {str(k): self._walk(v, depth + 1) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [self._walk(v, depth + 1) for v in value]
        return "" if value is None else _coerce_scalar(value)


class TruncatingSanitizer:
    """Caps string length, list length and map entry count."""

    def __init__(
        self,
        *,
        max_string: int = 1000,
        max_list: int = 200,
        max_map_entries: int = 200,
        overflow_marker: str = "…",
    ) -> None:
        self.max_string = max_string
        self.max_list = max_list
        self.max_map_entries = max_map_entries
        self.overflow_marker = overflow_marker

    def sanitize(self, data: Mapping[str, Any]) -> dict[str, Any]:
        return self._walk_map(data)

    def _walk(self, value: Any) -> Any:
        if isinstance(value, Mapping):
            return self._walk_map(value)
        if isinstance(value, (list, tuple)):
            if len(value) > self.max_list:
                head = [self._walk(v) for v in value[: self.max_list]]
                head.append(f"[{self.overflow_marker} {len(value) - self.max_list} more items]")
                return head
            return [self._walk(v) for v in value]
        if value is None:
            return ""
        if isinstance(value, str):
            if len(value) > self.max_string:
                return value[: self.max_string] + self.overflow_marker
            return value
        return _coerce_scalar(value)

    def _walk_map(self, data: Mapping[str, Any]) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for i, (key, value) in enumerate(data.items()):
            if i >= self.max_map_entries:
                omitted = len(data) - self.max_map_entries
                out["__truncated__"] = f"{omitted} more entries {self.overflow_marker}"
                break
            out[str(key)] = self._walk(value)
        return out


class SizeBudgetSanitizer:
    """Keeps the serialized payload under max_bytes.

    Over budget, top-level entries are replaced by a marker, largest
    non-pinned first; pinned keys go last, only when nothing else is left.
    """

    def __init__(
        self,
        max_bytes: int,
        *,
        pinned_keys: Iterable[str] = ("exception", "timestamp", "fingerprints"),
        overflow_marker: str = "<redacted:size>",
    ) -> None:
        if max_bytes <= 0:
            raise ValueError("max_bytes must be greater than zero")
        self.max_bytes = max_bytes
        self.pinned_keys = frozenset(pinned_keys)
        self.overflow_marker = overflow_marker

    def sanitize(self, data: Mapping[str, Any]) -> dict[str, Any]:
        out = {str(k): v for k, v in data.items()}
        if payload_size(out) <= self.max_bytes:
            return out

        # Non-pinned first, then by descending approximate size.
        order = sorted(
            out,
            key=lambda k: (k in self.pinned_keys, -_approx_size(out[k])),
        )
        for key in order:
            out[key] = self.overflow_marker
            if payload_size(out) <= self.max_bytes:
                return out
        logger.debug("Payload still exceeds %d bytes after redacting all entries", self.max_bytes)
        return out


def payload_size(data: Mapping[str, Any]) -> int:
    """UTF-8 byte length of the JSON serialization."""
    return len(json.dumps(data, default=str).encode("utf-8"))


def _approx_size(value: Any) -> int:
    if isinstance(value, str):
        return len(value)
    if isinstance(value, (list, tuple, Mapping)):
        return len(value)
    return 8


# --- coercion helpers ---


def _coerce_scalar(value: Any) -> Any:
    if isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _coerce_map(data: Any) -> dict[str, Any]:
    if isinstance(data, Mapping):
        return {str(k): v for k, v in data.items()}
    return {"value": _stringify(data)}


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(value)
