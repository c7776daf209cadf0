"""Rate-limit dependencies for Bookineo routes.

One process-wide RateLimiter; each route declares which rule applies::

    @router.post("/login", dependencies=[Depends(rate_limit("strict"))])
"""

from fastapi import Depends

from api.middleware import get_client_ip
from core.errors import AppError
from core.resilience.rate_limiter import RateLimiter
from patterns.domain_config import BookineoConfig
from verticals.bookineo.config import config as default_config, get_config

limiter = RateLimiter(sweep_interval_seconds=default_config.rate_limits.sweep_interval_seconds)


def get_limiter() -> RateLimiter:
    return limiter


def rate_limit(rule_name: str):
    """Build a dependency enforcing the named rule from RateLimitConfig."""

    async def dependency(
        config: BookineoConfig = Depends(get_config),
        rate_limiter: RateLimiter = Depends(get_limiter),
    ) -> None:
        if not config.rate_limits.enabled:
            return
        rule = getattr(config.rate_limits, rule_name)
        decision = rate_limiter.hit(rule, get_client_ip())
        if not decision.allowed:
            raise AppError.rate_limited(decision.retry_after)

    dependency.__name__ = f"rate_limit_{rule_name}"
    return dependency
