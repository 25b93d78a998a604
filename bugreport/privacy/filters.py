"""Allow/deny filters over nested JSON-like maps, driven by dotted wildcard paths.

Path syntax:
    a.b.c      exact path
    a.*.c      any single key at `*`
    a.**.c     any depth (zero or more keys) between `a` and `c`
    **.token   key `token` at any depth

Lists are transparent: an expression applies to every element. Filters never
mutate their input; they always build new containers.
"""

import logging
from typing import Any, Iterable, Mapping, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

__all__ = ["AllowListFilter", "DataFilter", "DenyListFilter", "FilterChain", "parse_path"]

# Ceiling for `**` descent; deeper data is not searched.
DEFAULT_MAX_WILDCARD_DEPTH = 64


@runtime_checkable
class DataFilter(Protocol):
    """Returns a new filtered map. The input is never mutated."""

    def apply(self, data: Mapping[str, Any]) -> dict[str, Any]: ...


class FilterChain:
    """Runs filters left to right, feeding each output to the next."""

    def __init__(self, filters: Iterable[DataFilter]) -> None:
        self.filters = list(filters)

    def apply(self, data: Mapping[str, Any]) -> dict[str, Any]:
        out = _clone(data) if isinstance(data, Mapping) else {}
        for f in self.filters:
            out = f.apply(out)
        return out


def parse_path(path: str) -> tuple[str, ...]:
    """Split a dotted expression into segments, ignoring empty ones."""
    return tuple(s for s in str(path).split(".") if s)


class AllowListFilter:
    """Keeps only branches reachable by one of the allowed paths."""

    def __init__(
        self,
        allowed_paths: Iterable[str],
        *,
        keep_empty_parents: bool = False,
        max_depth: int = DEFAULT_MAX_WILDCARD_DEPTH,
    ) -> None:
        self._paths = sorted({parse_path(p) for p in allowed_paths})
        self.keep_empty_parents = keep_empty_parents
        self.max_depth = max_depth

    def apply(self, data: Mapping[str, Any]) -> dict[str, Any]:
        if not isinstance(data, Mapping):
            return {}
        result: dict[str, Any] = {}
        for segments in self._paths:
            _merge(result, _extract(data, segments, 0, self.max_depth))
        result = _finalize(result)
        if not self.keep_empty_parents:
            _prune_empty(result)
        return result


class DenyListFilter:
    """Removes every key reachable by one of the denied paths, then prunes empties."""

    def __init__(
        self, denied_paths: Iterable[str], *, max_depth: int = DEFAULT_MAX_WILDCARD_DEPTH
    ) -> None:
        self._paths = sorted({parse_path(p) for p in denied_paths})
        self.max_depth = max_depth

    def apply(self, data: Mapping[str, Any]) -> dict[str, Any]:
        if not isinstance(data, Mapping):
            return {}
        working = _clone(data)
        for segments in self._paths:
            _remove(working, segments, 0, self.max_depth)
        _prune_empty(working)
        return working


# ---------- implementation ----------


class _Indexed(dict):
    """Matched list elements keyed by their original position.

    Lets results of several expressions merge element by element; converted
    back to a plain list by _finalize.
    """


def _is_list(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _find_key(source: Mapping[str, Any], segment: str) -> tuple[bool, Any]:
    if segment in source:
        return True, segment
    for key in source:
        if str(key) == segment:
            return True, key
    return False, None


def _extract(
    source: Mapping[str, Any], segments: tuple[str, ...], depth: int, max_depth: int
) -> dict[str, Any]:
    if not segments:
        return _clone(source)

    head, tail = segments[0], segments[1:]

    if head == "**":
        # Zero levels: try the rest of the expression here.
        out = _merge({}, _extract(source, tail, depth, max_depth))
        if depth >= max_depth:
            logger.debug("Wildcard depth limit %d reached; not descending", max_depth)
            return out
        # One level: descend into every child keeping `**` pending.
        deeper: dict[str, Any] = {}
        for key, value in source.items():
            if isinstance(value, Mapping):
                sub = _extract(value, segments, depth + 1, max_depth)
                if sub:
                    deeper[key] = sub
            elif _is_list(value):
                items = _extract_list(value, segments, depth + 1, max_depth)
                if items:
                    deeper[key] = items
        return _merge(out, deeper)

    if head == "*":
        out = {}
        for key, value in source.items():
            matched = _extract_value(value, tail, depth + 1, max_depth)
            if matched is not _NO_MATCH:
                out[key] = matched
        return out

    found, key = _find_key(source, head)
    if not found:
        return {}
    matched = _extract_value(source[key], tail, depth + 1, max_depth)
    return {} if matched is _NO_MATCH else {key: matched}


_NO_MATCH = object()


def _extract_value(value: Any, tail: tuple[str, ...], depth: int, max_depth: int) -> Any:
    if isinstance(value, Mapping):
        if not tail:
            return _clone(value)
        sub = _extract(value, tail, depth, max_depth)
        return sub if sub else _NO_MATCH
    if _is_list(value):
        if not tail:
            return _clone(value)
        items = _extract_list(value, tail, depth, max_depth)
        return items if items else _NO_MATCH
    # A leaf cannot satisfy a deeper path.
    return value if not tail else _NO_MATCH


def _extract_list(
    items: Iterable[Any], segments: tuple[str, ...], depth: int, max_depth: int
) -> _Indexed:
    out = _Indexed()
    for index, item in enumerate(items):
        if isinstance(item, Mapping):
            sub = _extract(item, segments, depth, max_depth)
            if sub:
                out[index] = sub
        elif _is_list(item):
            sub = _extract_list(item, segments, depth, max_depth)
            if sub:
                out[index] = sub
        elif not segments:
            out[index] = item
    return out


def _merge(dst: dict[Any, Any], src: Mapping[Any, Any]) -> dict[Any, Any]:
    """Deep-merge src into dst (union). Mutates and returns dst, which is always our own copy."""
    for key, value in src.items():
        existing = dst.get(key)
        if isinstance(value, _Indexed):
            if isinstance(existing, _Indexed):
                _merge(existing, value)
            elif _is_list(existing):
                # A whole list already matched; the subset adds nothing.
                continue
            else:
                dst[key] = _merge(_Indexed(), value)
        elif isinstance(value, Mapping):
            if isinstance(existing, dict) and not isinstance(existing, _Indexed):
                _merge(existing, value)
            else:
                dst[key] = _clone(value)
        else:
            # A whole value replaces any partial match collected so far.
            dst[key] = _clone(value)
    return dst


def _finalize(value: Any) -> Any:
    if isinstance(value, _Indexed):
        return [_finalize(value[i]) for i in sorted(value)]
    if isinstance(value, dict):
        return {k: _finalize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_finalize(v) for v in value]
    return value


def _remove(
    source: dict[str, Any], segments: tuple[str, ...], depth: int, max_depth: int
) -> None:
    if not segments:
        return

    head, tail = segments[0], segments[1:]

    if head == "**":
        if not tail:
            # Trailing `**` matches everything below this level.
            source.clear()
            return
        _remove(source, tail, depth, max_depth)
        if depth >= max_depth:
            logger.debug("Wildcard depth limit %d reached; not descending", max_depth)
            return
        for value in list(source.values()):
            if isinstance(value, dict):
                _remove(value, segments, depth + 1, max_depth)
            elif isinstance(value, list):
                _remove_list(value, segments, depth + 1, max_depth)
        return

    if head == "*":
        for key in list(source):
            value = source[key]
            if not tail:
                del source[key]
            elif isinstance(value, dict):
                _remove(value, tail, depth + 1, max_depth)
            elif isinstance(value, list):
                _remove_list(value, tail, depth + 1, max_depth)
        return

    found, key = _find_key(source, head)
    if not found:
        return
    if not tail:
        del source[key]
        return
    value = source[key]
    if isinstance(value, dict):
        _remove(value, tail, depth + 1, max_depth)
    elif isinstance(value, list):
        _remove_list(value, tail, depth + 1, max_depth)


def _remove_list(
    items: list[Any], segments: tuple[str, ...], depth: int, max_depth: int
) -> None:
    kept = []
    for item in items:
        if isinstance(item, dict):
            _remove(item, segments, depth, max_depth)
        elif isinstance(item, list):
            _remove_list(item, segments, depth, max_depth)
        elif not segments:
            continue
        kept.append(item)
    items[:] = kept


def _prune_empty(container: dict[Any, Any] | list[Any]) -> None:
    """Drop empty maps/lists left behind by filtering. Operates on our own copies only."""
    if isinstance(container, dict):
        for key in list(container):
            value = container[key]
            if isinstance(value, (dict, list)):
                _prune_empty(value)
                if not value:
                    del container[key]
    else:
        kept = []
        for value in container:
            if isinstance(value, (dict, list)):
                _prune_empty(value)
                if not value:
                    continue
            kept.append(value)
        container[:] = kept


def _clone(value: Any) -> Any:
    if isinstance(value, _Indexed):
        return _Indexed({k: _clone(v) for k, v in value.items()})
    if isinstance(value, Mapping):
        return {k: _clone(v) for k, v in value.items()}
    if _is_list(value):
        return [_clone(v) for v in value]
    return value
