"""User accounts: signup, credentials, profile, directory and deletion."""

import logging
from datetime import date, datetime, timezone
from typing import Any

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from core.errors import (
    AppError,
    AuthenticationError,
    AuthorizationError,
    DuplicateResourceError,
    ResourceNotFoundError,
)
from core.security.passwords import hash_password, verify_password
from patterns.domain_config import BookineoConfig
from patterns.repository import Page
from patterns.workflow_states import BookStatus, RentalState
from verticals.bookineo.config import get_config
from verticals.bookineo.models.db_models import Book, Rental, User
from verticals.bookineo.models.schemas import PasswordChange, ProfileUpdate, SignupRequest
from verticals.bookineo.repository import (
    BookRepository,
    CartRepository,
    MessageRepository,
    RentalRepository,
    UserRepository,
)

logger = logging.getLogger(__name__)


def _as_datetime(value: date | None) -> datetime | None:
    if value is None:
        return None
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)


class UserService:
    """Account lifecycle and credential checks."""

    def __init__(self, session: AsyncSession, config: BookineoConfig):
        self.session = session
        self.config = config
        self.users = UserRepository(session)
        self.books = BookRepository(session)
        self.rentals = RentalRepository(session)
        self.messages = MessageRepository(session)
        self.carts = CartRepository(session)

    async def signup(self, data: SignupRequest) -> User:
        if await self.users.get_by_email(data.email):
            raise DuplicateResourceError("User", "email", data.email)

        user = await self.users.create(
            {
                "email": data.email,
                "password": hash_password(data.password, self.config.session.bcrypt_rounds),
                "first_name": data.first_name,
                "last_name": data.last_name,
                "birth_date": _as_datetime(data.birth_date),
            }
        )
        logger.info("User %s signed up", user.id)
        return user

    async def authenticate(self, email: str, password: str) -> User:
        """Check credentials. One generic error for unknown email and bad password."""
        user = await self.users.get_by_email(email)
        if user is None or not verify_password(password, user.password):
            raise AuthenticationError("Invalid email or password")
        return user

    async def get_user(self, user_id: str) -> User:
        user = await self.users.get(user_id)
        if user is None:
            raise ResourceNotFoundError("User", user_id)
        return user

    async def update_profile(self, user_id: str, data: ProfileUpdate) -> User:
        user = await self.get_user(user_id)
        changes = data.model_dump(exclude_unset=True)
        if "birth_date" in changes:
            changes["birth_date"] = _as_datetime(changes["birth_date"])
        return await self.users.update(user, changes)

    async def change_password(self, user_id: str, data: PasswordChange) -> None:
        user = await self.get_user(user_id)
        if not verify_password(data.current_password, user.password):
            raise AuthenticationError("Current password is incorrect")
        await self.users.update(
            user, {"password": hash_password(data.new_password, self.config.session.bcrypt_rounds)}
        )
        logger.info("User %s changed password", user_id)

    async def search(
        self,
        query: str | None = None,
        page: int = 1,
        limit: int = 20,
        sort_by: str | None = "firstName",
        sort_order: str = "asc",
    ) -> Page[User]:
        limit = max(1, min(limit, self.config.catalog.max_page_size))
        return await self.users.paginate(
            self.users.search(query), page=max(1, page), limit=limit,
            sort_by=sort_by, sort_order=sort_order,
        )

    async def stats(self, user_id: str) -> dict[str, Any]:
        await self.get_user(user_id)
        cart = await self.carts.get_for_user(user_id)
        return {
            "booksOwned": await self.books.count(Book.owner_id == user_id),
            "booksRentedOut": await self.books.count(
                Book.owner_id == user_id, Book.status == BookStatus.RENTED
            ),
            "activeRentals": await self.rentals.count(
                Rental.renter_id == user_id, Rental.status == RentalState.ACTIVE
            ),
            "totalRentals": await self.rentals.count(Rental.renter_id == user_id),
            "unreadMessages": await self.messages.unread_count(user_id),
            "cartItems": await self.carts.count_items(cart.id) if cart else 0,
        }

    async def delete_user(self, user_id: str, actor_id: str) -> None:
        """Delete an account: self only, and only without ACTIVE rentals."""
        if user_id != actor_id:
            raise AuthorizationError("You can only delete your own account")
        user = await self.get_user(user_id)

        active = await self.rentals.count(
            Rental.renter_id == user_id, Rental.status == RentalState.ACTIVE
        )
        if active:
            raise AppError.conflict("Return or cancel your active rentals before deleting your account")

        await self.carts.delete_for_user(user_id)
        await self.messages.delete_for_user(user_id)
        await self.rentals.delete_for_user(user_id)
        await self.books.detach_owner(user_id)
        await self.users.delete(user)
        logger.info("User %s deleted", user_id)


# ---------------------------------------------------------------------------
# FastAPI dependency factory
# ---------------------------------------------------------------------------

def get_user_service(
    session: AsyncSession = Depends(get_session),
    config: BookineoConfig = Depends(get_config),
) -> UserService:
    """FastAPI dependency for UserService."""
    return UserService(session, config)
