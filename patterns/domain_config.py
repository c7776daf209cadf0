"""Dataclass-based domain configuration pattern.

The marketplace defines its thresholds, limits, secrets and feature
switches as frozen dataclasses. This gives you:
- Type safety (IDE autocompletion, mypy checking)
- Default values (sensible out-of-the-box)
- Immutability (frozen=True prevents accidental mutation)
- Easy overrides (from env vars)

Domain: Bookineo, a peer-to-peer book rental marketplace.
"""

import os
from dataclasses import dataclass, field
from datetime import timedelta

from core.resilience.rate_limiter import RateLimitRule


# ---------------------------------------------------------------------------
# Nested config sections
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RentalConfig:
    """Rental duration bounds."""

    min_duration_days: int = 1
    max_duration_days: int = 365
    default_duration_days: int = 14


@dataclass(frozen=True)
class CatalogConfig:
    """Book listing limits and import settings."""

    max_title_length: int = 200
    max_author_length: int = 100
    max_category_length: int = 50
    max_price: float = 10000.0
    default_page_size: int = 20
    max_page_size: int = 100
    author_search_min_chars: int = 2
    author_search_limit: int = 10
    import_max_books: int = 1000
    import_batch_size: int = 50
    import_excluded_categories: tuple[str, ...] = ("Adult", "Erotica", "XXX")


@dataclass(frozen=True)
class MessagingConfig:
    """Direct message limits and content filter thresholds."""

    max_length: int = 1000
    max_repeated_chars: int = 10
    max_links: int = 4


@dataclass(frozen=True)
class SessionConfig:
    """Session cookie settings."""

    secret: str = "dev-insecure-session-secret-change-me"
    cookie_name: str = "bookineo-session"
    remember_cookie_name: str = "bookineo-remember-me"
    remember_me_days: int = 30
    default_days: int = 1
    bcrypt_rounds: int = 12

    def lifetime(self, remember_me: bool) -> timedelta:
        return timedelta(days=self.remember_me_days if remember_me else self.default_days)


@dataclass(frozen=True)
class RateLimitConfig:
    """Per-route-class throttling rules (window seconds, max requests)."""

    strict: RateLimitRule = RateLimitRule("strict", 5, 15 * 60)
    moderate: RateLimitRule = RateLimitRule("moderate", 100, 15 * 60)
    light: RateLimitRule = RateLimitRule("light", 200, 60)
    messaging: RateLimitRule = RateLimitRule("messaging", 10, 60)
    registration: RateLimitRule = RateLimitRule("registration", 3, 60 * 60)
    sweep_interval_seconds: int = 10 * 60
    enabled: bool = True


@dataclass(frozen=True)
class ChatbotConfig:
    """Chat assistant settings. No LLM URL means rule-based replies only."""

    llm_url: str | None = None
    llm_model: str = "qwen2-1.5b-instruct:2"
    llm_timeout_seconds: float = 10.0
    temperature: float = 0.7
    max_tokens: int = 200
    max_message_length: int = 500
    max_books_in_reply: int = 3


@dataclass(frozen=True)
class SecurityConfig:
    """Request screening limits."""

    max_body_bytes: int = 10 * 1024 * 1024
    max_param_key_length: int = 100
    max_param_value_length: int = 1000


# ---------------------------------------------------------------------------
# Top-level domain config
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BookineoConfig:
    """Complete configuration for the marketplace.

    Usage::

        config = BookineoConfig.from_env()
        lifetime = config.session.lifetime(remember_me=True)
    """

    rental: RentalConfig = field(default_factory=RentalConfig)
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    messaging: MessagingConfig = field(default_factory=MessagingConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    rate_limits: RateLimitConfig = field(default_factory=RateLimitConfig)
    chatbot: ChatbotConfig = field(default_factory=ChatbotConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)

    environment: str = "development"  # development | test | production

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @classmethod
    def default(cls) -> "BookineoConfig":
        """Create config with all defaults."""
        return cls()

    @classmethod
    def from_env(cls, prefix: str = "BOOKINEO_") -> "BookineoConfig":
        """Create config from environment variables.

        Example: BOOKINEO_SESSION_SECRET=..., BOOKINEO_ENV=production,
        LM_STUDIO_URL=http://localhost:1234
        """
        overrides = {}

        env = os.getenv(f"{prefix}ENV")
        if env:
            overrides["environment"] = env.lower()

        secret = os.getenv(f"{prefix}SESSION_SECRET")
        if secret:
            overrides["session"] = SessionConfig(secret=secret)

        llm_url = os.getenv("LM_STUDIO_URL")
        if llm_url:
            overrides["chatbot"] = ChatbotConfig(
                llm_url=llm_url,
                llm_model=os.getenv("LM_STUDIO_MODEL", ChatbotConfig.llm_model),
            )

        if os.getenv(f"{prefix}RATE_LIMIT_ENABLED", "true").lower() == "false":
            overrides["rate_limits"] = RateLimitConfig(enabled=False)

        return cls(**overrides)
