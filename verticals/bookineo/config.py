"""Bookineo configuration.

Builds the BookineoConfig from the environment once at import time and
exposes it as a FastAPI dependency so tests can override it.
"""

from patterns.domain_config import BookineoConfig

config = BookineoConfig.from_env()


def get_config() -> BookineoConfig:
    """FastAPI dependency returning the active configuration."""
    return config
