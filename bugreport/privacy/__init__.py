"""Privacy controls: path filters and payload sanitizers."""

from bugreport.privacy.filters import AllowListFilter, DataFilter, DenyListFilter, FilterChain
from bugreport.privacy.sanitizers import (
    DefaultSanitizer,
    FilterSanitizer,
    MaskingStrategy,
    MaxDepthSanitizer,
    RegexValueSanitizer,
    Sanitizer,
    SanitizerChain,
    SensitiveFieldMatcher,
    SizeBudgetSanitizer,
    TruncatingSanitizer,
    sanitize_event,
)

__all__ = [
    "AllowListFilter",
    "DataFilter",
    "DefaultSanitizer",
    "DenyListFilter",
    "FilterChain",
    "FilterSanitizer",
    "MaskingStrategy",
    "MaxDepthSanitizer",
    "RegexValueSanitizer",
    "Sanitizer",
    "SanitizerChain",
    "SensitiveFieldMatcher",
    "SizeBudgetSanitizer",
    "TruncatingSanitizer",
    "sanitize_event",
]
