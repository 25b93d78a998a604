"""Grouping fingerprints derived from an exception snapshot."""

from bugreport.events.models import ExceptionSnapshot

_MASK64 = (1 << 64) - 1
_SEED = 1125899906842597
_MULTIPLIER = 1315423911


def message_hash(text: str) -> str:
    """Order-sensitive 64-bit rolling hash, hex encoded. Not for security."""
    h = _SEED
    for ch in text:
        h = ((h * _MULTIPLIER) & _MASK64) ^ ord(ch)
    return format(h, "x")


def top_stack_frame(stack: str | None) -> str | None:
    """First non-empty line of the stack text."""
    if not stack:
        return None
    for line in stack.splitlines():
        line = line.strip()
        if line:
            return line
    return None


def compute_fingerprints(snapshot: ExceptionSnapshot) -> list[str]:
    """Return [type, src:?, frame:?, msg:<hash>]. The first entry is the primary key."""
    fingerprints = [snapshot.type or "UnknownError"]
    source = snapshot.metadata.get("source")
    if source is not None and str(source):
        fingerprints.append(f"src:{source}")
    frame = top_stack_frame(snapshot.stack)
    if frame is not None:
        fingerprints.append(f"frame:{frame}")
    fingerprints.append(f"msg:{message_hash(snapshot.dev_message or '')}")
    return fingerprints
