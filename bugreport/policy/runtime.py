"""Runtime policy controls: rate limiter, dedupe index and the combined decision engine."""

import logging
import random
import threading
import time
from collections import Counter
from enum import Enum
from typing import Callable

from bugreport.events.models import ReportEvent
from bugreport.policy.models import Policy

logger = logging.getLogger(__name__)

Clock = Callable[[], float]

# Dedupe index size above which stale entries are purged on access.
_DEDUPE_CLEANUP_THRESHOLD = 512


class Decision(str, Enum):
    """Outcome of PolicyEngine.evaluate()."""

    SEND = "send"
    GATED = "gated"  # stateless gate rejected; hard drop
    SAMPLED = "sampled"  # lost the sampling draw; hard drop
    DUPLICATE = "duplicate"  # same primary fingerprint within window; hard drop
    RATE_LIMITED = "rate_limited"  # window saturated; goes to the outbox


class RateLimiter:
    """Fixed-size rolling window. Not thread-safe on its own; PolicyEngine serializes access."""

    def __init__(self, max_events: int, window: float, clock: Clock = time.monotonic) -> None:
        self.max_events = max_events
        self.window = window
        self._clock = clock
        self._count = 0
        self._window_start: float | None = None

    def allow(self) -> bool:
        now = self._clock()
        if self._window_start is None or now - self._window_start > self.window:
            self._window_start = now
            self._count = 0
        if self._count >= self.max_events:
            return False
        self._count += 1
        return True

    @property
    def count(self) -> int:
        return self._count


class DedupeIndex:
    """Fingerprint -> last accepted instant, self-trimming past a size threshold."""

    def __init__(
        self,
        window: float,
        clock: Clock = time.monotonic,
        cleanup_threshold: int = _DEDUPE_CLEANUP_THRESHOLD,
    ) -> None:
        self.window = window
        self._clock = clock
        self._cleanup_threshold = cleanup_threshold
        self._last_seen: dict[str, float] = {}

    def is_duplicate(self, key: str) -> bool:
        """True if key was accepted within the window; otherwise records it and returns False."""
        now = self._clock()
        self._cleanup(now)
        last = self._last_seen.get(key)
        if last is not None and now - last <= self.window:
            return True
        self._last_seen[key] = now
        return False

    def _cleanup(self, now: float) -> None:
        if len(self._last_seen) < self._cleanup_threshold:
            return
        cutoff = now - self.window
        stale = [k for k, ts in self._last_seen.items() if ts <= cutoff]
        for k in stale:
            del self._last_seen[k]
        if stale:
            logger.debug("Dedupe index trimmed %d stale fingerprints", len(stale))

    def __len__(self) -> int:
        return len(self._last_seen)


class PolicyEngine:
    """Gate -> sampling -> dedupe -> rate limit, evaluated atomically under one lock.

    Callers deliver after evaluate() returns, never while the lock is held.
    """

    def __init__(
        self,
        policy: Policy,
        environment: str,
        *,
        rng: random.Random | None = None,
        clock: Clock = time.monotonic,
    ) -> None:
        self.policy = policy
        self.environment = environment
        self._rng = rng or random.Random()
        self._lock = threading.Lock()
        self._rate_limiter = RateLimiter(
            policy.rate_limit.max_events, policy.rate_limit.window, clock
        )
        self._dedupe = DedupeIndex(policy.dedupe.window, clock)
        self._stats: Counter[str] = Counter()

    def evaluate(self, event: ReportEvent) -> Decision:
        with self._lock:
            decision = self._evaluate_locked(event)
            self._stats[decision.value] += 1
        logger.debug("Policy decision for %s: %s", event.id, decision.value)
        return decision

    def _evaluate_locked(self, event: ReportEvent) -> Decision:
        if not self.policy.should_send(event, self.environment):
            return Decision.GATED
        sampling = self.policy.sampling
        if sampling < 1.0 and self._rng.random() > sampling:
            return Decision.SAMPLED
        primary = event.primary_fingerprint
        if primary is not None and self._dedupe.is_duplicate(primary):
            return Decision.DUPLICATE
        if not self._rate_limiter.allow():
            return Decision.RATE_LIMITED
        return Decision.SEND

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {d.value: self._stats.get(d.value, 0) for d in Decision}
