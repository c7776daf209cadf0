"""Bookineo API: FastAPI entry point.

Registers middleware, exception handlers, routers, and lifecycle hooks.
Every Bookineo router is mounted under /api.
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import RequestContextMiddleware, SecurityMiddleware
from core.database import close_db, init_db
from core.errors import register_exception_handlers
from core.observability.logging_setup import setup_logging
from core.observability.otel_setup import setup_otel
from patterns.domain_config import SessionConfig
from verticals.bookineo.config import config

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS", "http://localhost:3000,http://localhost:3001"
).split(",")
AUTO_CREATE_TABLES = (
    config.environment in ("development", "test")
    or os.getenv("DB_AUTO_CREATE", "false").lower() == "true"
)
VERSION = "0.1.0"


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup/shutdown hooks."""
    setup_logging()
    setup_otel()

    if config.is_production and config.session.secret == SessionConfig.secret:
        logger.warning("BOOKINEO_SESSION_SECRET is not set; sessions use the development secret")

    if AUTO_CREATE_TABLES:
        await init_db()

    logger.info("Bookineo API started (%s)", config.environment)
    yield
    await close_db()
    logger.info("Bookineo API shut down")


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Bookineo",
    description="Peer-to-peer book rental marketplace",
    version=VERSION,
    lifespan=lifespan,
)

register_exception_handlers(app, expose_errors=config.is_development)

# Added first, so it runs innermost
app.add_middleware(SecurityMiddleware, config=config)
app.add_middleware(RequestContextMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

from verticals.bookineo.routers.admin import admin_router, dev_router  # noqa: E402
from verticals.bookineo.routers.auth import router as auth_router  # noqa: E402
from verticals.bookineo.routers.books import router as books_router  # noqa: E402
from verticals.bookineo.routers.cart import router as cart_router  # noqa: E402
from verticals.bookineo.routers.chatbot import router as chatbot_router  # noqa: E402
from verticals.bookineo.routers.messages import router as messages_router  # noqa: E402
from verticals.bookineo.routers.rentals import router as rentals_router  # noqa: E402
from verticals.bookineo.routers.users import user_router, users_router  # noqa: E402

for router in (
    auth_router,
    books_router,
    cart_router,
    rentals_router,
    messages_router,
    user_router,
    users_router,
    chatbot_router,
    admin_router,
    dev_router,
):
    app.include_router(router, prefix="/api")


# ---------------------------------------------------------------------------
# Health & root
# ---------------------------------------------------------------------------

@app.get("/health")
async def health():
    return {"status": "healthy", "version": VERSION}


@app.get("/")
async def root():
    return {
        "name": "Bookineo",
        "version": VERSION,
        "docs": "/docs",
        "description": "Peer-to-peer book rental marketplace",
    }
