"""Human-friendly formatting for console and CLI output.

Thin facade over the `humanize` library.
"""

from datetime import datetime, timezone

import humanize


def relative_time(ts: datetime | None, now: datetime | None = None) -> str:
    """Relative English string for a timestamp, e.g. '3 minutes ago'. Empty for None."""
    if ts is None:
        return ""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return humanize.naturaltime(now - ts)


def format_bytes(n: int | float) -> str:
    """Format byte count as human-readable string, e.g. '1.5 KiB'."""
    if n <= 0:
        return "0 Bytes"
    return humanize.naturalsize(n, binary=True)


def truncate(text: str, max_len: int) -> str:
    """Cut text to max_len characters, ending with an ellipsis when cut."""
    if len(text) <= max_len:
        return text
    return text[: max(0, max_len - 1)] + "…"
