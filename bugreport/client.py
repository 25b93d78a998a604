"""Bug report client: builds sanitized events, applies policy, delivers or stores them."""

import logging
import random
import time
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping

from bugreport.context.provider import ContextProvider, collect_context
from bugreport.errors import normalize_error
from bugreport.events.models import (
    Attachment,
    Breadcrumb,
    ExceptionSnapshot,
    ReportEvent,
    generate_event_id,
)
from bugreport.events.outbox import FileOutbox, FlushResult, Outbox
from bugreport.fingerprint import compute_fingerprints
from bugreport.policy.models import Policy
from bugreport.policy.runtime import Clock, Decision, PolicyEngine
from bugreport.privacy.sanitizers import Sanitizer, SanitizerChain
from bugreport.reporters.base import Reporter
from bugreport.reporters.composite import CompositeReporter

logger = logging.getLogger(__name__)

EventTransform = Callable[[ReportEvent], ReportEvent]

DEFAULT_OUTBOX_DIR = Path("data/bugreport/outbox")


@dataclass
class ClientConfig:
    """Everything a BugReportClient needs. Owned by the host application."""

    environment: str = "production"
    base_providers: list[ContextProvider] = field(default_factory=list)
    additional_providers: list[ContextProvider] = field(default_factory=list)
    sanitizers: list[Sanitizer] = field(default_factory=list)
    transforms: list[EventTransform] = field(default_factory=list)
    policy: Policy = field(default_factory=Policy)
    reporters: list[Reporter] = field(default_factory=list)
    outbox: Outbox = field(default_factory=lambda: FileOutbox(DEFAULT_OUTBOX_DIR))
    max_breadcrumbs: int = 100
    provider_timeout: float | None = 5.0
    concurrent_delivery: bool = False

    def build_pipeline(self) -> CompositeReporter:
        return CompositeReporter(self.reporters, concurrent=self.concurrent_delivery)

    def apply_transforms(self, event: ReportEvent) -> ReportEvent:
        """Run transforms in order. A transform that raises or returns a non-event is skipped."""
        out = event
        for t in self.transforms:
            try:
                result = t(out)
            except Exception:
                logger.exception("Event transform %r failed; skipped", t)
                continue
            if isinstance(result, ReportEvent):
                out = result
            else:
                logger.warning("Event transform %r returned %s; ignored", t, type(result).__name__)
        return out

    def sanitize(self, event: ReportEvent) -> dict[str, Any]:
        """Serialized event passed through every sanitizer, in order.

        The id is the outbox key and is restored after the chain runs.
        """
        payload = SanitizerChain(self.sanitizers).sanitize(event.to_dict())
        payload["id"] = event.id
        return payload


class BugReportClient:
    """Orchestrates context collection, sanitization, policy and delivery.

    An explicit instance owned by the host; there is no global client. No
    public coroutine raises into the caller: failures are logged and surface
    as False or an empty FlushResult.
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        rng: random.Random | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.config = config
        self._pipeline = config.build_pipeline()
        self._engine = PolicyEngine(
            config.policy, config.environment, rng=rng, clock=clock or time.monotonic
        )
        self._providers: list[ContextProvider] = []
        self._breadcrumbs: deque[Breadcrumb] = deque(maxlen=max(config.max_breadcrumbs, 0))
        self._delivery: Counter[str] = Counter()

    @property
    def environment(self) -> str:
        return self.config.environment

    @property
    def outbox(self) -> Outbox:
        return self.config.outbox

    # ---- context providers ----

    def add_context_provider(self, provider: ContextProvider) -> None:
        if any(p is provider for p in self._providers):
            return
        self._providers.append(provider)

    def remove_context_provider(self, provider: ContextProvider) -> None:
        self._providers = [p for p in self._providers if p is not provider]

    def clear_context_providers(self) -> None:
        self._providers.clear()

    # ---- breadcrumbs ----

    def add_breadcrumb(
        self,
        message: str,
        data: Mapping[str, Any] | None = None,
        *,
        timestamp: datetime | None = None,
    ) -> None:
        """Record a breadcrumb; the oldest is evicted past max_breadcrumbs."""
        self._breadcrumbs.append(
            Breadcrumb(
                timestamp=timestamp or datetime.now(timezone.utc),
                message=message,
                data=dict(data or {}),
            )
        )

    def clear_breadcrumbs(self) -> None:
        self._breadcrumbs.clear()

    @property
    def breadcrumbs(self) -> tuple[Breadcrumb, ...]:
        return tuple(self._breadcrumbs)

    # ---- events ----

    async def create_event(
        self,
        error: BaseException,
        *,
        additional_context: Mapping[str, Any] | None = None,
        manual: bool = False,
        handled: bool = True,
        source: str | None = None,
        attachments: Iterable[Attachment] = (),
    ) -> ReportEvent:
        """Build a sanitized event from an error.

        Context is environment and handled flag, then provider data, then
        additional_context (later keys win). Transforms run before
        sanitizers; the sanitized payload is embedded in the result.
        """
        normalized = normalize_error(error, source=source)
        snapshot = ExceptionSnapshot.from_error(normalized)
        cfg = self.config
        collected = await collect_context(
            [*cfg.base_providers, *cfg.additional_providers, *self._providers],
            include_manual_only=manual,
            timeout=cfg.provider_timeout,
        )
        context: dict[str, Any] = {
            "environment": cfg.environment,
            "handled": handled,
            **collected,
            **dict(additional_context or {}),
        }
        raw = ReportEvent(
            id=generate_event_id(),
            exception=snapshot,
            context=context,
            timestamp=datetime.now(timezone.utc),
            fingerprints=tuple(compute_fingerprints(snapshot)),
            breadcrumbs=tuple(self._breadcrumbs),
            attachments=tuple(attachments),
            handled=handled,
        )
        transformed = cfg.apply_transforms(raw)
        return transformed.with_payload(cfg.sanitize(transformed))

    async def report(self, event: ReportEvent) -> bool:
        """Apply policy and deliver. True if at least one reporter accepted the event.

        Rate-limited events and failed deliveries go to the outbox; gated,
        sampled and duplicate events are dropped.
        """
        try:
            decision = self._engine.evaluate(event)
        except Exception:
            logger.exception("Policy evaluation failed for %s", event.id)
            return False
        if decision is Decision.RATE_LIMITED:
            logger.info("Event %s rate limited; stored for later delivery", event.id)
            await self._persist(event)
            return False
        if decision is not Decision.SEND:
            return False

        try:
            ok = await self._pipeline.send(event)
        except Exception:
            logger.exception("Delivery pipeline raised for %s", event.id)
            ok = False
        if ok:
            self._delivery["delivered"] += 1
        else:
            self._delivery["failed"] += 1
            logger.warning("Delivery failed for %s; storing in outbox", event.id)
            await self._persist(event)
        return ok

    async def capture(
        self,
        error: BaseException,
        *,
        additional_context: Mapping[str, Any] | None = None,
        manual: bool = False,
        handled: bool = True,
        source: str | None = None,
    ) -> ReportEvent:
        """create_event() followed by report(). Returns the event either way."""
        event = await self.create_event(
            error,
            additional_context=additional_context,
            manual=manual,
            handled=handled,
            source=source,
        )
        await self.report(event)
        return event

    async def share(self, event: ReportEvent) -> bool:
        """User-initiated export through every reporter. Policy does not apply."""
        try:
            return await self._pipeline.share(event)
        except Exception:
            logger.exception("Share failed for %s", event.id)
            return False

    async def flush(self) -> FlushResult:
        """Replay the outbox through the reporter pipeline."""
        try:
            return await self.outbox.flush_with(self._pipeline)
        except Exception:
            logger.exception("Outbox flush failed")
            return FlushResult()

    async def pending(self) -> list[ReportEvent]:
        try:
            return await self.outbox.pending()
        except Exception:
            logger.exception("Outbox listing failed")
            return []

    def stats(self) -> dict[str, Any]:
        """Policy decision counts plus delivery and outbox counters."""
        return {
            "decisions": self._engine.stats(),
            "delivered": self._delivery["delivered"],
            "failed": self._delivery["failed"],
            "stored": self._delivery["stored"],
            "dropped": self._delivery["dropped"],
        }

    async def close(self) -> None:
        close = getattr(self.outbox, "close", None)
        if close is not None:
            await close()

    async def _persist(self, event: ReportEvent) -> None:
        try:
            stored = await self.outbox.enqueue(event)
        except Exception:
            logger.exception("Outbox enqueue raised for %s", event.id)
            stored = False
        if stored:
            self._delivery["stored"] += 1
        else:
            self._delivery["dropped"] += 1
            logger.warning("Event %s could not be stored and is dropped", event.id)
