"""Diagnostic context providers."""

from bugreport.context.provider import (
    BaseContextProvider,
    CachedContextProvider,
    ContextProvider,
    FunctionContextProvider,
    StaticContextProvider,
    collect_context,
)

__all__ = [
    "BaseContextProvider",
    "CachedContextProvider",
    "ContextProvider",
    "FunctionContextProvider",
    "StaticContextProvider",
    "collect_context",
]
