"""Tests for the maintenance CLI (python -m bugreport)."""

import asyncio
import logging
from pathlib import Path

import pytest

from bugreport.events.outbox import FileOutbox
from bugreport.runner import main
from bugreport.settings import ENVIRONMENT_VAR


@pytest.fixture(autouse=True)
def _isolate(monkeypatch):
    monkeypatch.delenv(ENVIRONMENT_VAR, raising=False)
    root = logging.getLogger()
    before, level = set(root.handlers), root.level
    yield
    for h in root.handlers[:]:
        if h not in before:
            root.removeHandler(h)
            h.close()
    root.setLevel(level)


def _seed(project_root: Path, event) -> None:
    asyncio.run(FileOutbox(project_root / "data" / "bugreport" / "outbox").enqueue(event))


def test_pending_empty(tmp_path: Path, capsys) -> None:
    """An empty outbox prints a zero count and exits 0."""
    assert main(["pending", "--root", str(tmp_path)]) == 0
    assert "0 pending" in capsys.readouterr().out
    assert (tmp_path / "data" / "logs" / "bugreport.log").exists()


def test_pending_lists_events(tmp_path: Path, capsys, make_event) -> None:
    """Queued events are listed and the exit code is 1."""
    event = make_event()
    _seed(tmp_path, event)
    assert main(["--root", str(tmp_path)]) == 1
    out = capsys.readouterr().out
    assert event.id in out
    assert "ApiError" in out
    assert "1 pending" in out


def test_flush_delivers_through_console(tmp_path: Path, capsys, make_event) -> None:
    """Default settings deliver through the console reporter and drain the outbox."""
    _seed(tmp_path, make_event())
    assert main(["flush", "--root", str(tmp_path)]) == 0
    assert "delivered=1 failed=0 remaining=0" in capsys.readouterr().out
    assert main(["pending", "--root", str(tmp_path)]) == 0


def test_flush_without_reporters_keeps_events(tmp_path: Path, capsys, make_event) -> None:
    """With every reporter disabled nothing is delivered and the exit code is 1."""
    (tmp_path / "config").mkdir()
    (tmp_path / "config" / "settings.yaml").write_text(
        "reporters:\n  console:\n    enabled: false\n", encoding="utf-8"
    )
    _seed(tmp_path, make_event())
    assert main(["flush", "--root", str(tmp_path)]) == 1
    assert "remaining=1" in capsys.readouterr().out


def test_sqlite_backend(tmp_path: Path, capsys) -> None:
    """The sqlite outbox backend is selectable from settings."""
    (tmp_path / "config").mkdir()
    (tmp_path / "config" / "settings.yaml").write_text(
        "outbox:\n  backend: sqlite\n", encoding="utf-8"
    )
    assert main(["pending", "--root", str(tmp_path)]) == 0
    assert (tmp_path / "data" / "bugreport" / "outbox.db").exists()
    assert "0 pending" in capsys.readouterr().out
