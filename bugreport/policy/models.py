"""Policy configuration: Pydantic models and the stateless send gate."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bugreport.errors import Severity
from bugreport.events.models import ReportEvent


class RateLimit(BaseModel):
    """At most max_events per rolling window (seconds)."""

    model_config = ConfigDict(frozen=True)

    max_events: int = Field(default=10, ge=0)
    window: float = Field(default=60.0, gt=0)


class DedupeStrategy(BaseModel):
    """Events sharing a primary fingerprint within window (seconds) are dropped."""

    model_config = ConfigDict(frozen=True)

    window: float = Field(default=60.0, ge=0)


class Policy(BaseModel):
    """Which events qualify for delivery.

    should_send() is the stateless part (environment, severity, handled,
    reportable). Sampling, dedupe and rate limiting run in PolicyEngine.
    """

    model_config = ConfigDict(frozen=True)

    min_severity: Severity = Severity.ERROR
    report_handled: bool = True
    environments: frozenset[str] = Field(default_factory=frozenset)  # empty = any
    sampling: float = Field(default=1.0, ge=0.0, le=1.0)
    rate_limit: RateLimit = Field(default_factory=RateLimit)
    dedupe: DedupeStrategy = Field(default_factory=DedupeStrategy)
    skip_unreportable: bool = True

    @field_validator("min_severity", mode="before")
    @classmethod
    def _parse_severity(cls, value: Any) -> Severity:
        return Severity.parse(value)

    def should_send(self, event: ReportEvent, environment: str) -> bool:
        if self.environments and environment not in self.environments:
            return False
        if not event.exception.severity.meets(self.min_severity):
            return False
        if event.handled and not self.report_handled:
            return False
        if self.skip_unreportable and not event.exception.reportable:
            return False
        return True

    @classmethod
    def from_settings(cls, section: dict[str, Any] | None) -> "Policy":
        """Build from the `policy` settings section. Raises pydantic.ValidationError on bad values."""
        section = dict(section or {})
        environments = section.get("environments") or []
        if isinstance(environments, str):
            environments = [environments]
        section["environments"] = frozenset(str(e) for e in environments)
        return cls.model_validate(section)
