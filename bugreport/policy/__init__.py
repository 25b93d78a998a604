"""Report policy: stateless gate models and runtime controls."""

from bugreport.policy.models import DedupeStrategy, Policy, RateLimit
from bugreport.policy.runtime import Decision, DedupeIndex, PolicyEngine, RateLimiter

__all__ = [
    "Decision",
    "DedupeIndex",
    "DedupeStrategy",
    "Policy",
    "PolicyEngine",
    "RateLimit",
    "RateLimiter",
]
