"""
Bookineo Core Resilience: Abuse Protection Primitives.

Provides:
- RateLimiter: Sliding-window request throttling per client
"""
from core.resilience.rate_limiter import (
    RateLimitDecision,
    RateLimiter,
    RateLimitRule,
)

__all__ = [
    "RateLimitDecision",
    "RateLimiter",
    "RateLimitRule",
]
