"""Rental lifecycle service.

Creating a rental claims the book (AVAILABLE -> RENTED) with a single
conditional UPDATE; returning or cancelling frees it again. Every status
change goes through the RentalWorkflow transition table, so terminal
rentals cannot be returned or cancelled twice.
"""

import logging
from datetime import datetime, timedelta, timezone

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from core.errors import AppError, AuthorizationError, ResourceNotFoundError, ValidationError
from core.models.base import as_utc, utcnow
from patterns.domain_config import BookineoConfig
from patterns.repository import Page
from patterns.workflow_states import InvalidTransition, RentalState, RentalWorkflow
from verticals.bookineo.config import get_config
from verticals.bookineo.models.db_models import Rental
from verticals.bookineo.models.schemas import RentalFilters, RentalUpdate
from verticals.bookineo.repository import BookRepository, RentalRepository, UserRepository
from verticals.bookineo.rules import check_book_available, check_not_own_book, check_rental_duration

logger = logging.getLogger(__name__)


class RentalService:
    """Create, list, transition and delete rentals."""

    def __init__(self, session: AsyncSession, config: BookineoConfig):
        self.session = session
        self.config = config
        self.rentals = RentalRepository(session)
        self.books = BookRepository(session)
        self.users = UserRepository(session)

    # -- Create --

    async def create_rental(
        self,
        book_id: str,
        renter_id: str,
        duration: int,
        comment: str | None = None,
        start_date: datetime | None = None,
    ) -> Rental:
        """Rent a book for ``duration`` days starting now (or ``start_date``).

        Raises:
            ValidationError: duration outside the configured bounds (422).
            ResourceNotFoundError: unknown book or renter (404).
            AppError: own book (400) or book not available (409).
        """
        bounds = self.config.rental
        duration_check = check_rental_duration(
            duration, bounds.min_duration_days, bounds.max_duration_days
        )
        if not duration_check.passed:
            raise ValidationError(duration_check.message, field="duration")

        book = await self.books.get(book_id)
        if book is None:
            raise ResourceNotFoundError("Book", book_id)

        renter = await self.users.get(renter_id)
        if renter is None:
            raise ResourceNotFoundError("User", renter_id)

        snapshot = {"title": book.title, "status": book.status.value, "ownerId": book.owner_id}
        own = check_not_own_book(snapshot, renter_id)
        if not own.passed:
            raise AppError.bad_request(own.message)

        available = check_book_available(snapshot)
        if not available.passed:
            raise AppError.conflict(available.message)
        if not await self.books.claim(book_id):
            raise AppError.conflict(f"\"{book.title}\" is no longer available")

        start = as_utc(start_date).astimezone(timezone.utc) if start_date else utcnow()
        rental = await self.rentals.create(
            {
                "book_id": book_id,
                "renter_id": renter_id,
                "start_date": start,
                "end_date": start + timedelta(days=duration),
                "duration": duration,
                "status": RentalState.ACTIVE,
                "comment": comment,
            }
        )
        logger.info("Rental %s created: book %s for %d days", rental.id, book_id, duration)
        return await self.rentals.reload(rental)

    # -- Queries --

    async def list_rentals(
        self,
        filters: RentalFilters,
        page: int = 1,
        limit: int = 20,
        sort_by: str | None = None,
        sort_order: str = "desc",
    ) -> Page[Rental]:
        limit = max(1, min(limit, self.config.catalog.max_page_size))
        return await self.rentals.paginate(
            self.rentals.search(filters),
            page=max(1, page),
            limit=limit,
            sort_by=sort_by,
            sort_order=sort_order,
        )

    async def get_rental(self, rental_id: str) -> Rental:
        rental = await self.rentals.get(rental_id)
        if rental is None:
            raise ResourceNotFoundError("Rental", rental_id)
        return rental

    async def list_user_rentals(self, user_id: str) -> list[Rental]:
        return await self.rentals.for_user(user_id)

    async def get_overdue(self) -> list[Rental]:
        return await self.rentals.overdue()

    async def get_stats(self) -> dict:
        return await self.rentals.stats()

    # -- Transitions --

    async def return_rental(self, rental_id: str, user_id: str, comment: str | None = None) -> Rental:
        return await self._transition(rental_id, user_id, RentalState.COMPLETED, comment=comment)

    async def cancel_rental(self, rental_id: str, user_id: str, comment: str | None = None) -> Rental:
        return await self._transition(rental_id, user_id, RentalState.CANCELLED, comment=comment)

    async def update_rental(self, rental_id: str, data: RentalUpdate, user_id: str) -> Rental:
        """Apply a status change (by status or action) and/or a comment."""
        target = data.status
        if data.action is not None:
            target = RentalState.COMPLETED if data.action.value == "return" else RentalState.CANCELLED

        if target is not None and target != RentalState.ACTIVE:
            return await self._transition(
                rental_id, user_id, target, comment=data.comment, return_date=data.return_date
            )

        rental = await self._authorized(rental_id, user_id)
        if target == RentalState.ACTIVE and rental.status != RentalState.ACTIVE:
            raise AppError.conflict(f"Cannot reactivate a {rental.status.value} rental")

        changes = {}
        if data.comment is not None:
            changes["comment"] = data.comment
        if data.return_date is not None:
            changes["return_date"] = as_utc(data.return_date)
        if changes:
            await self.rentals.update(rental, changes)
        return await self.rentals.reload(rental)

    async def delete_rental(self, rental_id: str, user_id: str) -> None:
        rental = await self._authorized(rental_id, user_id)
        if rental.status == RentalState.ACTIVE:
            await self.books.release(rental.book_id)
        await self.rentals.delete(rental)
        logger.info("Rental %s deleted by %s", rental_id, user_id)

    # -- Helpers --

    async def _authorized(self, rental_id: str, user_id: str) -> Rental:
        """Load a rental the caller may act on (renter or book owner)."""
        rental = await self.get_rental(rental_id)
        owner_id = rental.book.owner_id if rental.book else None
        if user_id not in (rental.renter_id, owner_id):
            raise AuthorizationError("Only the renter or the book owner can modify this rental")
        return rental

    async def _transition(
        self,
        rental_id: str,
        user_id: str,
        target: RentalState,
        comment: str | None = None,
        return_date: datetime | None = None,
    ) -> Rental:
        rental = await self._authorized(rental_id, user_id)

        workflow = RentalWorkflow(rental_id=rental.id, current_state=rental.status)
        try:
            workflow.transition(target, actor=user_id)
        except InvalidTransition as exc:
            verb = "return" if target == RentalState.COMPLETED else "cancel"
            raise AppError.conflict(
                f"Cannot {verb} a rental that is {rental.status.value}",
                details={"from": exc.from_state.value, "to": exc.to_state.value},
            ) from exc

        changes = {"status": workflow.current_state}
        if target == RentalState.COMPLETED:
            changes["return_date"] = as_utc(return_date) if return_date else utcnow()
        if comment is not None:
            changes["comment"] = comment

        await self.rentals.update(rental, changes)
        await self.books.release(rental.book_id)
        logger.info("Rental %s moved to %s by %s", rental.id, target.value, user_id)
        return await self.rentals.reload(rental)


# ---------------------------------------------------------------------------
# FastAPI dependency factory
# ---------------------------------------------------------------------------

def get_rental_service(
    session: AsyncSession = Depends(get_session),
    config: BookineoConfig = Depends(get_config),
) -> RentalService:
    """FastAPI dependency for RentalService."""
    return RentalService(session, config)
