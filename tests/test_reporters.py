"""Tests for reporters: composite fan-out, console, file, webhook, callback."""

import asyncio
import json
import logging
from pathlib import Path

import httpx
import pytest

from bugreport.events.models import ReportEvent
from bugreport.reporters import (
    BaseReporter,
    CallbackReporter,
    CompositeReporter,
    ConsoleReporter,
    FileReporter,
    Reporter,
    WebhookReporter,
)


class _Recording(BaseReporter):
    def __init__(self, result: bool = True, *, share_result: bool = False) -> None:
        self.result = result
        self.share_result = share_result
        self.sent: list[str] = []

    async def send(self, event: ReportEvent) -> bool:
        self.sent.append(event.id)
        return self.result

    async def share(self, event: ReportEvent) -> bool:
        return self.share_result


class _Raising(BaseReporter):
    async def send(self, event: ReportEvent) -> bool:
        raise RuntimeError("sink exploded")


class TestCompositeReporter:
    """Any-success aggregation and isolation."""

    @pytest.mark.asyncio
    async def test_any_success_counts(self, make_event) -> None:
        failing, ok = _Recording(False), _Recording(True)
        assert await CompositeReporter([failing, ok]).send(make_event()) is True

    @pytest.mark.asyncio
    async def test_all_fail(self, make_event) -> None:
        assert await CompositeReporter([_Recording(False), _Recording(False)]).send(make_event()) is False

    @pytest.mark.asyncio
    async def test_empty_is_failure(self, make_event) -> None:
        assert await CompositeReporter([]).send(make_event()) is False

    @pytest.mark.asyncio
    async def test_raising_reporter_isolated(self, make_event, caplog) -> None:
        after = _Recording(True)
        event = make_event()
        with caplog.at_level(logging.ERROR):
            assert await CompositeReporter([_Raising(), after]).send(event) is True
        assert after.sent == [event.id]
        assert "sink exploded" in caplog.text

    @pytest.mark.asyncio
    async def test_sequential_order(self, make_event) -> None:
        order: list[str] = []
        a = CallbackReporter(lambda e: order.append("a"))
        b = CallbackReporter(lambda e: order.append("b"))
        await CompositeReporter([a, b]).send(make_event())
        assert order == ["a", "b"]

    @pytest.mark.asyncio
    async def test_concurrent_dispatch(self, make_event) -> None:
        started: list[str] = []
        gate = asyncio.Event()

        async def slow(e: ReportEvent) -> bool:
            started.append("slow")
            await gate.wait()
            return False

        async def fast(e: ReportEvent) -> bool:
            started.append("fast")
            gate.set()
            return True

        composite = CompositeReporter(
            [CallbackReporter(slow), CallbackReporter(fast), _Raising()], concurrent=True
        )
        assert await asyncio.wait_for(composite.send(make_event()), 1.0) is True
        assert sorted(started) == ["fast", "slow"]

    @pytest.mark.asyncio
    async def test_share_fans_out(self, make_event) -> None:
        composite = CompositeReporter([_Recording(share_result=False), _Recording(share_result=True)])
        assert await composite.share(make_event()) is True

    def test_protocol_conformance(self) -> None:
        assert isinstance(CompositeReporter([]), Reporter)
        assert isinstance(ConsoleReporter(), Reporter)


class TestConsoleReporter:
    """Log summary from the sanitized payload."""

    @pytest.mark.asyncio
    async def test_logs_summary(self, make_event, caplog) -> None:
        event = make_event(context={"environment": "test", "password": "p*****d"})
        with caplog.at_level(logging.INFO, logger="bugreport.reporters.console"):
            assert await ConsoleReporter().send(event) is True
        assert f"id={event.id}" in caplog.text
        assert "type=ApiError severity=error" in caplog.text
        assert "(total: 2)" in caplog.text

    @pytest.mark.asyncio
    async def test_disabled_reports_failure(self, make_event, caplog) -> None:
        with caplog.at_level(logging.INFO):
            assert await ConsoleReporter(enabled=False).send(make_event()) is False
        assert "[BugReport]" not in caplog.text

    def test_render_uses_payload_only(self, make_event) -> None:
        event = make_event(payload={"id": "r_x", "exception": {"type": "Masked", "devMessage": "***"}})
        lines = ConsoleReporter().render(event)
        text = "\n".join(lines)
        assert "type=Masked" in text
        assert "boom" not in text

    def test_truncates_and_limits(self, make_event) -> None:
        ctx = {f"k{i}": i for i in range(20)}
        event = make_event(dev_message="x" * 500, context=ctx)
        reporter = ConsoleReporter(max_message_length=10, max_context_keys=3, full_json=True)
        text = "\n".join(reporter.render(event))
        assert f"devMessage : {'x' * 9}…" in text
        assert "{k0, k1, k2, ...} (total: 20)" in text
        assert "json: {" in text

    def test_stack_lines_capped(self, make_event) -> None:
        stack = "\n".join(f"at f{i} (a.py:{i})" for i in range(10))
        event = make_event(payload={"id": "r_x", "exception": {"stack": stack}})
        lines = ConsoleReporter(stack_lines=2).render(event)
        assert "at f1 (a.py:1)" in lines
        assert "at f2 (a.py:2)" not in lines


class TestFileReporter:
    """JSON file per event."""

    @pytest.mark.asyncio
    async def test_send_writes_payload(self, tmp_path: Path, make_event) -> None:
        reporter = FileReporter(tmp_path / "reports")
        event = make_event()
        assert await reporter.send(event) is True
        path = tmp_path / "reports" / f"bug_report_{event.id}.json"
        assert reporter.last_path == path
        assert json.loads(path.read_text(encoding="utf-8")) == event.to_dict()

    @pytest.mark.asyncio
    async def test_share_writes_same_file(self, tmp_path: Path, make_event) -> None:
        reporter = FileReporter(tmp_path)
        event = make_event()
        assert await reporter.share(event) is True
        assert reporter.last_path is not None
        assert reporter.last_path.name == BaseReporter.default_file_name(event)

    @pytest.mark.asyncio
    async def test_unwritable_directory(self, tmp_path: Path, make_event) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("x", encoding="utf-8")
        assert await FileReporter(blocker).send(make_event()) is False


class TestWebhookReporter:
    """HTTP POST via httpx, exercised with MockTransport."""

    @pytest.mark.asyncio
    async def test_posts_json(self, make_event) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(202)

        reporter = WebhookReporter(
            "https://hooks.example/bugs",
            headers={"X-Api-Key": "k"},
            transport=httpx.MockTransport(handler),
        )
        event = make_event()
        assert await reporter.send(event) is True
        assert len(seen) == 1
        assert seen[0].method == "POST"
        assert seen[0].headers["content-type"] == "application/json"
        assert seen[0].headers["x-api-key"] == "k"
        assert json.loads(seen[0].content) == event.to_dict()

    @pytest.mark.asyncio
    async def test_error_status_is_failure(self, make_event) -> None:
        transport = httpx.MockTransport(lambda r: httpx.Response(500))
        reporter = WebhookReporter("https://hooks.example/bugs", transport=transport)
        assert await reporter.send(make_event()) is False

    @pytest.mark.asyncio
    async def test_transport_error_is_failure(self, make_event) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        reporter = WebhookReporter("https://hooks.example/bugs", transport=httpx.MockTransport(handler))
        assert await reporter.send(make_event()) is False

    @pytest.mark.asyncio
    async def test_share_unsupported(self, make_event) -> None:
        assert await WebhookReporter("https://hooks.example/bugs").share(make_event()) is False


class TestCallbackReporter:
    """Sync and async callables."""

    @pytest.mark.asyncio
    async def test_sync_none_is_success(self, make_event) -> None:
        got: list[ReportEvent] = []
        assert await CallbackReporter(got.append).send(make_event()) is True
        assert len(got) == 1

    @pytest.mark.asyncio
    async def test_async_false_is_failure(self, make_event) -> None:
        async def reject(e: ReportEvent) -> bool:
            return False

        assert await CallbackReporter(reject).send(make_event()) is False

    @pytest.mark.asyncio
    async def test_share_fn(self, make_event) -> None:
        assert await CallbackReporter(lambda e: True).share(make_event()) is False
        reporter = CallbackReporter(lambda e: True, share_fn=lambda e: True)
        assert await reporter.share(make_event()) is True
