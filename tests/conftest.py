"""Shared fixtures: controllable clock and event builder."""

from datetime import datetime, timezone
from typing import Any, Callable

import pytest

from bugreport.errors import Severity
from bugreport.events.models import ExceptionSnapshot, ReportEvent, generate_event_id
from bugreport.settings import reload_settings


class FakeClock:
    """Monotonic clock stand-in advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_event() -> Callable[..., ReportEvent]:
    def _make(
        *,
        severity: Severity = Severity.ERROR,
        handled: bool = True,
        type_name: str = "ApiError",
        dev_message: str = "boom",
        reportable: bool = True,
        fingerprints: tuple[str, ...] | None = None,
        context: dict[str, Any] | None = None,
        event_id: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> ReportEvent:
        snapshot = ExceptionSnapshot(
            type=type_name,
            user_message="Something went wrong",
            dev_message=dev_message,
            severity=severity,
            reportable=reportable,
        )
        event = ReportEvent(
            id=event_id or generate_event_id(),
            exception=snapshot,
            context=context if context is not None else {"environment": "test"},
            timestamp=datetime.now(timezone.utc),
            fingerprints=fingerprints if fingerprints is not None else (type_name,),
            handled=handled,
        )
        return event.with_payload(payload if payload is not None else event.to_dict())

    return _make


@pytest.fixture(autouse=True)
def _fresh_settings() -> None:
    reload_settings()
    yield
    reload_settings()
