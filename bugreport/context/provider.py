"""Context providers: named sources of diagnostic data attached to events."""

import asyncio
import inspect
import logging
import time
from typing import Any, Awaitable, Callable, Iterable, Mapping, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

Collect = Callable[[], Mapping[str, Any] | Awaitable[Mapping[str, Any]]]


@runtime_checkable
class ContextProvider(Protocol):
    """Supplies one named map of context.

    manual_only providers are collected for user-initiated reports only.
    get_data() should not raise; collect_context isolates it regardless.
    """

    name: str
    manual_only: bool

    async def get_data(self) -> dict[str, Any]: ...

    def validate(self, data: Mapping[str, Any]) -> bool: ...


class BaseContextProvider:
    """Defaults for providers: automatic collection, keep any non-empty map."""

    name: str = "context"
    manual_only: bool = False

    async def get_data(self) -> dict[str, Any]:
        raise NotImplementedError

    def validate(self, data: Mapping[str, Any]) -> bool:
        return bool(data)


class StaticContextProvider(BaseContextProvider):
    """Always returns a copy of the same map (app version, build flavour, ...)."""

    def __init__(self, name: str, data: Mapping[str, Any], *, manual_only: bool = False) -> None:
        self.name = name
        self.manual_only = manual_only
        self._data = dict(data)

    async def get_data(self) -> dict[str, Any]:
        return dict(self._data)


class FunctionContextProvider(BaseContextProvider):
    """Wraps a sync or async callable returning a map."""

    def __init__(self, name: str, fn: Collect, *, manual_only: bool = False) -> None:
        self.name = name
        self.manual_only = manual_only
        self._fn = fn

    async def get_data(self) -> dict[str, Any]:
        return await _call_collect(self._fn)


class CachedContextProvider(BaseContextProvider):
    """Wraps a collect function with a TTL cache and in-flight deduplication.

    Concurrent callers share one running collection. A failing collection
    yields {} and is not cached; invalid results are returned but not cached.
    """

    def __init__(
        self,
        name: str,
        collect: Collect,
        *,
        ttl: float = 300.0,
        manual_only: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.manual_only = manual_only
        self.ttl = ttl
        self._collect = collect
        self._clock = clock
        self._cache: dict[str, Any] | None = None
        self._cached_at: float | None = None
        self._in_flight: asyncio.Task[dict[str, Any]] | None = None

    def _cache_valid(self) -> bool:
        return (
            self._cache is not None
            and self._cached_at is not None
            and self._clock() - self._cached_at < self.ttl
        )

    def clear_cache(self) -> None:
        self._cache = None
        self._cached_at = None

    async def get_data(self) -> dict[str, Any]:
        if self._cache_valid():
            return dict(self._cache or {})
        task = self._in_flight
        if task is None:
            task = asyncio.ensure_future(self._safe_collect())
            self._in_flight = task
            task.add_done_callback(self._clear_in_flight)
        # Shielded so one caller timing out does not cancel the shared collection.
        return dict(await asyncio.shield(task))

    def _clear_in_flight(self, task: "asyncio.Task[dict[str, Any]]") -> None:
        if self._in_flight is task:
            self._in_flight = None

    async def _safe_collect(self) -> dict[str, Any]:
        try:
            result = await _call_collect(self._collect)
        except Exception:
            logger.warning("Context provider %s failed", self.name, exc_info=True)
            return {}
        if self.validate(result):
            self._cache = result
            self._cached_at = self._clock()
        return result


async def _call_collect(fn: Collect) -> dict[str, Any]:
    result = fn()
    if inspect.isawaitable(result):
        result = await result
    return dict(result) if isinstance(result, Mapping) else {}


async def collect_context(
    providers: Iterable[ContextProvider],
    *,
    include_manual_only: bool = False,
    timeout: float | None = None,
) -> dict[str, Any]:
    """Run providers in order and return {name: data} for every valid result.

    Failing or timed-out providers contribute nothing. A later provider with
    the same name replaces an earlier one.
    """
    result: dict[str, Any] = {}
    for p in providers:
        if p.manual_only and not include_manual_only:
            continue
        try:
            data = await asyncio.wait_for(p.get_data(), timeout)
        except asyncio.TimeoutError:
            logger.warning("Context provider %s timed out after %ss", p.name, timeout)
            continue
        except Exception:
            logger.warning("Context provider %s raised", p.name, exc_info=True)
            continue
        if isinstance(data, Mapping) and p.validate(data):
            result[p.name] = dict(data)
    return result
