"""Cart service and checkout.

Checkout turns every cart item into a rental and empties the cart. It
runs inside the request's single transaction: if any step raises, the
session rolls back every rental, every book claim and the cart clear.
"""

import logging
from datetime import datetime
from typing import Any

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from core.errors import AppError, ResourceNotFoundError, ValidationError
from core.observability.otel_setup import traced
from patterns.domain_config import BookineoConfig
from verticals.bookineo.config import get_config
from verticals.bookineo.models.db_models import Cart
from verticals.bookineo.repository import BookRepository, CartRepository
from verticals.bookineo.rules import (
    check_book_available,
    check_cart_items_available,
    check_cart_not_empty,
    check_not_own_book,
    check_rental_duration,
)
from verticals.bookineo.services.rentals import RentalService

logger = logging.getLogger(__name__)


def _snapshot(book) -> dict[str, Any]:
    return {"title": book.title, "status": book.status.value, "ownerId": book.owner_id}


def cart_to_dict(cart: Cart) -> dict[str, Any]:
    items = [item.to_dict() for item in cart.items]
    return {
        "id": cart.id,
        "userId": cart.user_id,
        "items": items,
        "itemCount": len(items),
        "totalPrice": round(sum(item.book.price for item in cart.items if item.book), 2),
    }


class CartService:
    """Per-user cart: add/remove/clear, availability cleanup, checkout."""

    def __init__(self, session: AsyncSession, config: BookineoConfig):
        self.session = session
        self.config = config
        self.carts = CartRepository(session)
        self.books = BookRepository(session)
        self.rental_service = RentalService(session, config)

    async def get_cart(self, user_id: str) -> Cart:
        return await self.carts.get_or_create(user_id, with_items=True)

    async def get_summary(self, user_id: str) -> dict[str, Any]:
        cart = await self.get_cart(user_id)
        data = cart_to_dict(cart)
        return {
            "itemCount": data["itemCount"],
            "totalPrice": data["totalPrice"],
            "books": [item["book"] for item in data["items"]],
        }

    async def count(self, user_id: str) -> int:
        cart = await self.carts.get_for_user(user_id)
        return await self.carts.count_items(cart.id) if cart else 0

    async def add_book(self, user_id: str, book_id: str) -> Cart:
        book = await self.books.get(book_id)
        if book is None:
            raise ResourceNotFoundError("Book", book_id)

        own = check_not_own_book(_snapshot(book), user_id)
        if not own.passed:
            raise AppError.forbidden("You cannot add your own book to your cart")

        cart = await self.carts.get_or_create(user_id)
        if await self.carts.find_item(cart.id, book_id):
            raise AppError.conflict("This book is already in your cart")

        available = check_book_available(_snapshot(book))
        if not available.passed:
            raise AppError.bad_request(available.message)

        await self.carts.add_item(cart.id, book_id)
        return await self.get_cart(user_id)

    async def remove_book(self, user_id: str, book_id: str) -> Cart:
        cart = await self.carts.get_or_create(user_id)
        item = await self.carts.find_item(cart.id, book_id)
        if item is None:
            raise AppError.not_found("This book is not in your cart")
        await self.carts.remove_item(item)
        return await self.get_cart(user_id)

    async def clear(self, user_id: str) -> int:
        cart = await self.carts.get_or_create(user_id)
        return await self.carts.clear(cart.id)

    async def cleanup_unavailable(self, user_id: str) -> list[str]:
        """Drop items whose book is no longer AVAILABLE. Returns their titles."""
        cart = await self.get_cart(user_id)
        stale = [item for item in cart.items if not check_book_available(_snapshot(item.book)).passed]
        await self.carts.remove_items([item.id for item in stale])
        return [item.book.title for item in stale]

    async def checkout(
        self,
        user_id: str,
        duration: int,
        comment: str | None = None,
        start_date: datetime | None = None,
    ) -> dict[str, Any]:
        """Rent every book in the cart for ``duration`` days.

        Raises:
            AppError: empty cart (400) or unavailable books (409, cart untouched).
            ValidationError: duration out of bounds (422).
        """
        with traced("checkout", user_id=user_id) as span:
            cart = await self.get_cart(user_id)
            items = list(cart.items)

            not_empty = check_cart_not_empty(len(items))
            if not not_empty.passed:
                raise AppError.bad_request(not_empty.message)

            bounds = self.config.rental
            duration_check = check_rental_duration(
                duration, bounds.min_duration_days, bounds.max_duration_days
            )
            if not duration_check.passed:
                raise ValidationError(duration_check.message, field="duration")

            all_available = check_cart_items_available([_snapshot(i.book) for i in items])
            if not all_available.passed:
                raise AppError.conflict(
                    all_available.message,
                    details={"unavailableBooks": all_available.details["unavailable"]},
                )

            rental_ids = []
            total = 0.0
            for item in items:
                rental = await self.rental_service.create_rental(
                    book_id=item.book_id,
                    renter_id=user_id,
                    duration=duration,
                    comment=comment,
                    start_date=start_date,
                )
                rental_ids.append(rental.id)
                total += item.book.price

            await self.carts.clear(cart.id)

            if span is not None:
                span.set_attribute("rental_count", len(rental_ids))

        logger.info("Checkout by %s created %d rentals", user_id, len(rental_ids))
        return {
            "rentalIds": rental_ids,
            "rentalCount": len(rental_ids),
            "totalAmount": round(total, 2),
        }


# ---------------------------------------------------------------------------
# FastAPI dependency factory
# ---------------------------------------------------------------------------

def get_cart_service(
    session: AsyncSession = Depends(get_session),
    config: BookineoConfig = Depends(get_config),
) -> CartService:
    """FastAPI dependency for CartService."""
    return CartService(session, config)
