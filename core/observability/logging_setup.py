"""
Bookineo logging setup.

Configures the standard library root logger once per process. Modules log
through ``logging.getLogger(__name__)``; nothing else is needed.
"""
from __future__ import annotations
import logging
import os

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_configured = False


def setup_logging(level: str | None = None) -> None:
    """Configure root logging from the argument or LOG_LEVEL (default INFO)."""
    global _configured
    if _configured:
        return

    name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(level=getattr(logging, name, logging.INFO), format=LOG_FORMAT)

    # SQL echo is controlled by DB_ECHO, keep the engine logger quiet otherwise
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    _configured = True
