"""Centralized logging configuration for bug report tooling."""

import logging
import logging.handlers
import re
from pathlib import Path
from typing import Any, Pattern

from bugreport.privacy.sanitizers import MaskingStrategy, looks_like_card_number

_KEY_VALUE_RE = re.compile(
    r"(?i)\b(api[_-]?key|token|secret|password|passwd|authorization|cookie|"
    r"access_token|refresh_token|private_key|client_secret)"
    r"(\s*[:=]\s*)"
    r"(['\"]?)([^\s'\",;]{4,})\3"
)

# Word-level patterns; each match is masked in place.
_TOKEN_PATTERNS: list[Pattern[str]] = [
    re.compile(r"(?<=Bearer )[A-Za-z0-9\-._~+/]+=*", re.IGNORECASE),
    re.compile(r"\beyJ[A-Za-z0-9_-]*\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]*"),
    re.compile(r"\b(?:AKIA|ASIA)[0-9A-Z]{16}\b"),
]

_CARD_RE = re.compile(r"\b\d[\d -]{11,21}\d\b")

_MASK = MaskingStrategy(keep_start=2, keep_end=2)


def scrub_secrets(text: str) -> str:
    """Mask credentials, JWTs, AWS key ids and card numbers inside free text."""
    text = _KEY_VALUE_RE.sub(lambda m: f"{m[1]}{m[2]}{m[3]}{_MASK.mask(m[4])}{m[3]}", text)
    for pattern in _TOKEN_PATTERNS:
        text = pattern.sub(lambda m: _MASK.mask(m[0]), text)
    return _CARD_RE.sub(
        lambda m: _MASK.mask_card(m[0]) if looks_like_card_number(m[0]) else m[0], text
    )


class SecretScrubFilter(logging.Filter):
    """Logging filter that masks secrets in the formatted message.

    Installed on every handler created by setup_logging.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        msg = record.getMessage()
        scrubbed = scrub_secrets(msg)
        if scrubbed != msg:
            record.msg = scrubbed
            record.args = None
        return True


def _file_handler(project_root: Path, cfg: dict[str, Any], level: int) -> logging.Handler:
    log_file = cfg.get("file", "data/logs/bugreport.log")
    max_bytes = int(cfg.get("max_bytes", 10 * 1024 * 1024))
    backup_count = int(cfg.get("backup_count", 3))
    log_path = project_root / log_file
    log_path.parent.mkdir(parents=True, exist_ok=True)
    h = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    h.setLevel(level)
    return h


def _console_handler(level: int) -> logging.Handler:
    h = logging.StreamHandler()
    h.setLevel(level)
    return h


def setup_logging(project_root: Path, settings: dict[str, Any]) -> None:
    """Configure the root logger: file handler with optional console output.

    Reads config from settings.get("logging", {}). Creates the log directory
    if needed. Every handler gets a SecretScrubFilter.
    """
    cfg = settings.get("logging", {})
    level_name = str(cfg.get("level", "INFO")).upper()
    log_to_console = cfg.get("log_to_console", False)
    level = getattr(logging, level_name, logging.INFO)
    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    root = logging.getLogger()
    root.setLevel(level)
    for h in root.handlers[:]:
        root.removeHandler(h)
    handlers = [_file_handler(project_root, cfg, level)]
    if log_to_console:
        handlers.append(_console_handler(level))
    scrubber = SecretScrubFilter()
    for h in handlers:
        h.setFormatter(formatter)
        h.addFilter(scrubber)
        root.addHandler(h)
