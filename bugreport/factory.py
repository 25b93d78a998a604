"""Build client components from the settings dict."""

import logging
from pathlib import Path
from typing import Any

from bugreport.client import ClientConfig
from bugreport.events.journal import SqliteOutbox
from bugreport.events.outbox import FileOutbox, Outbox
from bugreport.policy.models import Policy
from bugreport.privacy.filters import DenyListFilter
from bugreport.privacy.sanitizers import (
    DefaultSanitizer,
    FilterSanitizer,
    MaxDepthSanitizer,
    Sanitizer,
    SensitiveFieldMatcher,
    SizeBudgetSanitizer,
    TruncatingSanitizer,
)
from bugreport.reporters.base import Reporter
from bugreport.reporters.console import ConsoleReporter
from bugreport.reporters.file import FileReporter
from bugreport.reporters.webhook import WebhookReporter
from bugreport.settings import get_setting

logger = logging.getLogger(__name__)


def build_sanitizers(settings: dict[str, Any]) -> list[Sanitizer]:
    """Default chain: deny paths, masking, depth limit, truncation, size budget."""
    cfg = settings.get("sanitizers", {})
    chain: list[Sanitizer] = []
    deny_paths = cfg.get("deny_paths") or []
    if deny_paths:
        chain.append(FilterSanitizer(DenyListFilter(deny_paths)))
    chain.append(
        DefaultSanitizer(matcher=SensitiveFieldMatcher(cfg.get("extra_sensitive_keys") or []))
    )
    chain.append(MaxDepthSanitizer(int(cfg.get("max_depth", 8))))
    chain.append(
        TruncatingSanitizer(
            max_string=int(cfg.get("max_string", 1000)),
            max_list=int(cfg.get("max_list", 200)),
            max_map_entries=int(cfg.get("max_map_entries", 200)),
        )
    )
    max_bytes = int(cfg.get("max_bytes", 0) or 0)
    if max_bytes > 0:
        chain.append(SizeBudgetSanitizer(max_bytes))
    return chain


def build_outbox(settings: dict[str, Any], project_root: Path) -> Outbox:
    cfg = settings.get("outbox", {})
    backend = str(cfg.get("backend", "file")).lower()
    if backend == "sqlite":
        return SqliteOutbox(project_root / cfg.get("db_path", "data/bugreport/outbox.db"))
    if backend != "file":
        logger.warning("Unknown outbox backend %r; using file", backend)
    return FileOutbox(project_root / cfg.get("directory", "data/bugreport/outbox"))


def build_reporters(settings: dict[str, Any], project_root: Path) -> list[Reporter]:
    """Console first, then file, then webhook; disabled entries are skipped."""
    reporters: list[Reporter] = []
    if get_setting(settings, "reporters.console.enabled", True):
        reporters.append(
            ConsoleReporter(full_json=bool(get_setting(settings, "reporters.console.full_json")))
        )
    directory = get_setting(settings, "reporters.file.directory", "")
    if directory:
        reporters.append(FileReporter(project_root / directory))
    url = get_setting(settings, "reporters.webhook.url", "")
    if url:
        reporters.append(
            WebhookReporter(
                url,
                headers=get_setting(settings, "reporters.webhook.headers") or {},
                timeout=float(get_setting(settings, "reporters.webhook.timeout", 10.0)),
            )
        )
    return reporters


def build_client_config(
    settings: dict[str, Any], project_root: Path, **overrides: Any
) -> ClientConfig:
    """ClientConfig from settings; keyword overrides win (providers, transforms, ...).

    Raises pydantic.ValidationError for an invalid policy section.
    """
    fields: dict[str, Any] = {
        "environment": str(settings.get("environment", "production")),
        "policy": Policy.from_settings(settings.get("policy")),
        "sanitizers": build_sanitizers(settings),
        "reporters": build_reporters(settings, project_root),
        "outbox": build_outbox(settings, project_root),
        "max_breadcrumbs": int(get_setting(settings, "context.max_breadcrumbs", 100)),
        "provider_timeout": get_setting(settings, "context.provider_timeout", 5.0),
    }
    fields.update(overrides)
    return ClientConfig(**fields)
