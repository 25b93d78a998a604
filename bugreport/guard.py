"""Guards: run an action, normalize and report its failure, return a result value."""

import asyncio
import inspect
import logging
import threading
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Mapping, TypeVar

from bugreport.client import BugReportClient
from bugreport.errors import ReportableError, format_stack, normalize_error, parsing_error

logger = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")

# Strong references to fire-and-forget report tasks until they finish.
_background: set[asyncio.Task[Any]] = set()


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def is_ok(self) -> bool:
        return True

    @property
    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, fallback: T) -> T:
        return self.value

    def map(self, fn: Callable[[T], U]) -> "Ok[U]":
        return Ok(fn(self.value))


@dataclass(frozen=True)
class Err:
    error: ReportableError

    @property
    def is_ok(self) -> bool:
        return False

    @property
    def is_err(self) -> bool:
        return True

    def unwrap(self) -> Any:
        raise RuntimeError(f"Tried to unwrap Err: {self.error.dev_message}") from self.error

    def unwrap_or(self, fallback: T) -> T:
        return fallback

    def map(self, fn: Callable[[Any], Any]) -> "Err":
        return self


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


async def _run_callback(fn: Callable[[Any], Any] | None, arg: Any, name: str) -> None:
    if fn is None:
        return
    try:
        await _maybe_await(fn(arg))
    except Exception:
        logger.exception("Guard %s callback failed", name)


async def guard(
    client: BugReportClient,
    action: Callable[[], Awaitable[T]],
    *,
    source: str | None = None,
    on_success: Callable[[T], Any] | None = None,
    on_error: Callable[[ReportableError], Any] | None = None,
    manual: bool = False,
    additional_context: Mapping[str, Any] | None = None,
) -> "Ok[T] | Err":
    """Await action(); on failure normalize, call on_error, report, return Err."""
    try:
        value = await action()
    except Exception as e:
        normalized = normalize_error(e, source=source)
        await _run_callback(on_error, normalized, "on_error")
        await client.capture(
            normalized, manual=manual, additional_context=additional_context, source=source
        )
        return Err(normalized)
    await _run_callback(on_success, value, "on_success")
    return Ok(value)


def guard_sync(
    client: BugReportClient,
    compute: Callable[[], T],
    *,
    source: str | None = None,
    on_success: Callable[[T], Any] | None = None,
    on_error: Callable[[ReportableError], Any] | None = None,
    manual: bool = False,
    additional_context: Mapping[str, Any] | None = None,
) -> "Ok[T] | Err":
    """Synchronous guard. Reporting is fire-and-forget.

    Inside a running loop the report is a detached task; otherwise it runs on
    a daemon thread with its own loop. The caller never observes delivery.
    """
    try:
        value = compute()
    except Exception as e:
        normalized = normalize_error(e, source=source)
        if on_error is not None:
            try:
                on_error(normalized)
            except Exception:
                logger.exception("Guard on_error callback failed")
        _report_detached(
            client.capture(
                normalized, manual=manual, additional_context=additional_context, source=source
            )
        )
        return Err(normalized)
    if on_success is not None:
        try:
            on_success(value)
        except Exception:
            logger.exception("Guard on_success callback failed")
    return Ok(value)


def _report_detached(coro: Awaitable[Any]) -> None:
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None
    if loop is not None:
        task = loop.create_task(coro)
        _background.add(task)
        task.add_done_callback(_background.discard)
        return
    thread = threading.Thread(
        target=_run_in_thread, args=(coro,), name="bugreport-guard", daemon=True
    )
    thread.start()


def _run_in_thread(coro: Awaitable[Any]) -> None:
    try:
        asyncio.run(coro)
    except Exception:
        logger.exception("Background report failed")


def parse_with(build: Callable[[], T], data: Any, *, target_type: str | None = None) -> T:
    """Run a model constructor; construction failures become parsing errors.

    ReportableError passes through unchanged.
    """
    try:
        return build()
    except ReportableError:
        raise
    except Exception as e:
        target = target_type or getattr(build, "__name__", "unknown")
        raise parsing_error(data, target, cause=e).with_stack(format_stack(e.__traceback__)) from e
