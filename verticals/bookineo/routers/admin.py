"""Catalog import and development-only maintenance routes."""

from typing import Optional

from fastapi import APIRouter, Body, Depends

from core.errors import AppError
from core.resilience.rate_limiter import RateLimiter
from patterns.domain_config import BookineoConfig
from verticals.bookineo.auth import AuthContext, get_current_user
from verticals.bookineo.config import get_config
from verticals.bookineo.models.schemas import ImportRequest
from verticals.bookineo.routers.common import ok
from verticals.bookineo.services.importer import BookImportService, get_import_service
from verticals.bookineo.throttling import get_limiter, rate_limit

admin_router = APIRouter(prefix="/admin", tags=["Admin"])
dev_router = APIRouter(prefix="/dev", tags=["Development"])


# ============================================================================
# Catalog import
# ============================================================================

@admin_router.get("/books/import")
async def import_prerequisites(service: BookImportService = Depends(get_import_service)):
    return ok(await service.prerequisites())


@admin_router.post("/books/import", dependencies=[Depends(rate_limit("moderate"))])
async def import_books(
    request: ImportRequest,
    user: AuthContext = Depends(get_current_user),
    service: BookImportService = Depends(get_import_service),
):
    result = await service.import_books(request.books)
    return ok(result, "Import finished")


@admin_router.delete("/books/import")
async def clear_catalog(
    user: AuthContext = Depends(get_current_user),
    service: BookImportService = Depends(get_import_service),
):
    removed = await service.clear_all()
    return ok({"removed": removed}, "All books removed")


# ============================================================================
# Development helpers
# ============================================================================

@dev_router.post("/clear-rate-limit")
async def clear_rate_limit(
    key: Optional[str] = Body(None, embed=True),
    config: BookineoConfig = Depends(get_config),
    limiter: RateLimiter = Depends(get_limiter),
):
    """Forget recorded hits for one client address, or for everyone."""
    if not config.is_development:
        raise AppError.forbidden("Only available in development")
    removed = limiter.reset(key)
    message = f"Rate limit cleared for key: {key}" if key else "All rate limits cleared"
    return ok({"removedKeys": removed}, message)
