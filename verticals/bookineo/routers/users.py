"""Account routes for the caller (/user) and the user directory (/users)."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from patterns.domain_config import BookineoConfig
from verticals.bookineo.auth import AuthContext, clear_session, get_current_user
from verticals.bookineo.config import get_config
from verticals.bookineo.models.schemas import (
    PasswordChange,
    ProfileUpdate,
    SortOrder,
    UserSortField,
)
from verticals.bookineo.routers.common import ok
from verticals.bookineo.services.rentals import RentalService, get_rental_service
from verticals.bookineo.services.users import UserService, get_user_service
from verticals.bookineo.throttling import rate_limit

user_router = APIRouter(prefix="/user", tags=["Account"])
users_router = APIRouter(prefix="/users", tags=["Users"])

read_limit = [Depends(rate_limit("light"))]
write_limit = [Depends(rate_limit("moderate"))]


# ============================================================================
# Caller's account
# ============================================================================

@user_router.get("/me", dependencies=read_limit)
async def me(user: AuthContext = Depends(get_current_user)):
    return ok(user.to_dict())


@user_router.get("/profile", dependencies=read_limit)
async def get_profile(
    user: AuthContext = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    account = await service.get_user(user.user_id)
    return ok(account.to_dict())


@user_router.put("/profile", dependencies=write_limit)
async def update_profile(
    request: ProfileUpdate,
    user: AuthContext = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    account = await service.update_profile(user.user_id, request)
    return ok(account.to_dict(), "Profile updated")


@user_router.put("/password", dependencies=[Depends(rate_limit("strict"))])
async def change_password(
    request: PasswordChange,
    user: AuthContext = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    await service.change_password(user.user_id, request)
    return ok(message="Password changed")


@user_router.get("/stats", dependencies=read_limit)
async def account_stats(
    user: AuthContext = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    return ok(await service.stats(user.user_id))


# ============================================================================
# Directory
# ============================================================================

@users_router.get("", dependencies=read_limit)
async def list_users(
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: UserSortField = Query(UserSortField.FIRST_NAME, alias="sortBy"),
    sort_order: SortOrder = Query(SortOrder.ASC, alias="sortOrder"),
    user: AuthContext = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    result = await service.search(search, page, limit, sort_by.value, sort_order.value)
    return ok(result.to_dict())


@users_router.get("/{user_id}", dependencies=read_limit)
async def get_user(
    user_id: str,
    user: AuthContext = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    account = await service.get_user(user_id)
    return ok(account.to_dict())


@users_router.get("/{user_id}/rentals", dependencies=read_limit)
async def user_rentals(
    user_id: str,
    user: AuthContext = Depends(get_current_user),
    users: UserService = Depends(get_user_service),
    rentals: RentalService = Depends(get_rental_service),
):
    await users.get_user(user_id)
    items = await rentals.list_user_rentals(user_id)
    return ok([r.to_dict() for r in items])


@users_router.delete("/{user_id}", dependencies=write_limit)
async def delete_user(
    user_id: str,
    response: Response,
    user: AuthContext = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
    config: BookineoConfig = Depends(get_config),
):
    """Delete the caller's own account and end the session."""
    await service.delete_user(user_id, user.user_id)
    clear_session(response, config)
    return ok(message="Account deleted")
