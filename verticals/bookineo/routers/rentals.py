"""Rental routes: creation, filtered listing, lifecycle actions, stats."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from patterns.workflow_states import RentalState
from verticals.bookineo.auth import AuthContext, get_current_user
from verticals.bookineo.models.schemas import (
    RentalActionRequest,
    RentalCreate,
    RentalFilters,
    RentalUpdate,
    SortOrder,
)
from verticals.bookineo.routers.common import ok
from verticals.bookineo.services.rentals import RentalService, get_rental_service
from verticals.bookineo.throttling import rate_limit

router = APIRouter(prefix="/rentals", tags=["Rentals"])

read_limit = [Depends(rate_limit("light"))]
write_limit = [Depends(rate_limit("moderate"))]


def rental_filters(
    status: Optional[RentalState] = None,
    book_id: Optional[str] = Query(None, alias="bookId"),
    renter_id: Optional[str] = Query(None, alias="renterId"),
    search: Optional[str] = None,
    start_date_from: Optional[datetime] = Query(None, alias="startDateFrom"),
    start_date_to: Optional[datetime] = Query(None, alias="startDateTo"),
    end_date_from: Optional[datetime] = Query(None, alias="endDateFrom"),
    end_date_to: Optional[datetime] = Query(None, alias="endDateTo"),
) -> RentalFilters:
    return RentalFilters(
        status=status,
        book_id=book_id,
        renter_id=renter_id,
        search=search,
        start_date_from=start_date_from,
        start_date_to=start_date_to,
        end_date_from=end_date_from,
        end_date_to=end_date_to,
    )


@router.get("", dependencies=read_limit)
async def list_rentals(
    filters: RentalFilters = Depends(rental_filters),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: SortOrder = Query(SortOrder.DESC, alias="sortOrder"),
    user: AuthContext = Depends(get_current_user),
    service: RentalService = Depends(get_rental_service),
):
    result = await service.list_rentals(
        filters, page=page, limit=limit, sort_by=sort_by, sort_order=sort_order.value
    )
    return ok(result.to_dict())


@router.post("", status_code=201, dependencies=write_limit)
async def create_rental(
    request: RentalCreate,
    user: AuthContext = Depends(get_current_user),
    service: RentalService = Depends(get_rental_service),
):
    """Rent one book directly. The renter is always the caller."""
    rental = await service.create_rental(
        book_id=request.book_id,
        renter_id=user.user_id,
        duration=request.duration,
        comment=request.comment,
        start_date=request.start_date,
    )
    return ok(rental.to_dict(), "Rental created")


@router.get("/overdue", dependencies=read_limit)
async def overdue_rentals(
    user: AuthContext = Depends(get_current_user),
    service: RentalService = Depends(get_rental_service),
):
    """ACTIVE rentals past their end date."""
    rentals = await service.get_overdue()
    return ok([r.to_dict() for r in rentals])


@router.get("/stats", dependencies=read_limit)
async def rental_stats(
    user: AuthContext = Depends(get_current_user),
    service: RentalService = Depends(get_rental_service),
):
    return ok(await service.get_stats())


@router.get("/user", dependencies=read_limit)
async def my_rentals(
    user: AuthContext = Depends(get_current_user),
    service: RentalService = Depends(get_rental_service),
):
    rentals = await service.list_user_rentals(user.user_id)
    return ok([r.to_dict() for r in rentals])


@router.get("/{rental_id}", dependencies=read_limit)
async def get_rental(
    rental_id: str,
    user: AuthContext = Depends(get_current_user),
    service: RentalService = Depends(get_rental_service),
):
    rental = await service.get_rental(rental_id)
    return ok(rental.to_dict())


@router.put("/{rental_id}", dependencies=write_limit)
async def update_rental(
    rental_id: str,
    request: RentalUpdate,
    user: AuthContext = Depends(get_current_user),
    service: RentalService = Depends(get_rental_service),
):
    rental = await service.update_rental(rental_id, request, user.user_id)
    return ok(rental.to_dict(), "Rental updated")


@router.post("/{rental_id}/return", dependencies=write_limit)
async def return_rental(
    rental_id: str,
    request: Optional[RentalActionRequest] = None,
    user: AuthContext = Depends(get_current_user),
    service: RentalService = Depends(get_rental_service),
):
    comment = request.comment if request else None
    rental = await service.return_rental(rental_id, user.user_id, comment)
    return ok(rental.to_dict(), "Book returned")


@router.post("/{rental_id}/cancel", dependencies=write_limit)
async def cancel_rental(
    rental_id: str,
    request: Optional[RentalActionRequest] = None,
    user: AuthContext = Depends(get_current_user),
    service: RentalService = Depends(get_rental_service),
):
    comment = request.comment if request else None
    rental = await service.cancel_rental(rental_id, user.user_id, comment)
    return ok(rental.to_dict(), "Rental cancelled")


@router.delete("/{rental_id}", dependencies=write_limit)
async def delete_rental(
    rental_id: str,
    user: AuthContext = Depends(get_current_user),
    service: RentalService = Depends(get_rental_service),
):
    await service.delete_rental(rental_id, user.user_id)
    return ok(message="Rental deleted")
