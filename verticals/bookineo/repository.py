"""Bookineo repositories: async database access per entity.

Extends BaseRepository with marketplace queries: book search and stats,
atomic book claims, cart items, rental filters and overdue detection,
message mailboxes. Filter builders return statements so the service can
hand them to paginate().
"""

from datetime import datetime
from typing import Any

from sqlalchemy import Select, and_, delete, func, or_, select, update
from sqlalchemy.orm import selectinload

from core.models.base import utcnow
from patterns.repository import BaseRepository
from patterns.workflow_states import BookStatus, RentalState
from verticals.bookineo.models.db_models import (
    Book,
    Cart,
    CartItem,
    Message,
    Rental,
    User,
)
from verticals.bookineo.models.schemas import BookFilters, RentalFilters


def _contains(value: str) -> str:
    return f"%{value.strip()}%"


# ---------------------------------------------------------------------------
# User repository
# ---------------------------------------------------------------------------

class UserRepository(BaseRepository[User]):
    """Repository for user accounts."""

    model = User
    sortable = {
        "firstName": User.first_name,
        "lastName": User.last_name,
        "email": User.email,
        "createdAt": User.created_at,
        "updatedAt": User.updated_at,
    }
    default_sort = "first_name"

    async def get_by_email(self, email: str) -> User | None:
        stmt = select(User).where(User.email == email.strip().lower())
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    def search(self, query: str | None = None) -> Select:
        stmt = select(User)
        if query:
            pattern = _contains(query)
            stmt = stmt.where(
                or_(
                    User.email.ilike(pattern),
                    User.first_name.ilike(pattern),
                    User.last_name.ilike(pattern),
                )
            )
        return stmt


# ---------------------------------------------------------------------------
# Book repository
# ---------------------------------------------------------------------------

class BookRepository(BaseRepository[Book]):
    """Repository for book listings, search and availability claims."""

    model = Book
    sortable = {
        "title": Book.title,
        "author": Book.author,
        "price": Book.price,
        "createdAt": Book.created_at,
        "updatedAt": Book.updated_at,
    }
    default_sort = "updated_at"

    def search(self, filters: BookFilters | None = None) -> Select:
        """Build the filtered book query (no ordering, no paging)."""
        stmt = select(Book)
        if filters is None:
            return stmt

        if filters.search:
            pattern = _contains(filters.search)
            stmt = stmt.where(or_(Book.title.ilike(pattern), Book.author.ilike(pattern)))

        if filters.status:
            stmt = stmt.where(Book.status == filters.status)

        if filters.category:
            stmt = stmt.where(Book.category_name.ilike(_contains(filters.category)))

        if filters.author:
            stmt = stmt.where(Book.author.ilike(_contains(filters.author)))

        if filters.price_min is not None:
            stmt = stmt.where(Book.price >= filters.price_min)

        if filters.price_max is not None:
            stmt = stmt.where(Book.price <= filters.price_max)

        if filters.has_owner is True:
            stmt = stmt.where(Book.owner_id.is_not(None))
        elif filters.has_owner is False:
            stmt = stmt.where(Book.owner_id.is_(None))

        if filters.owner_id:
            stmt = stmt.where(Book.owner_id == filters.owner_id)

        return stmt

    async def list_all(self, stmt: Select, order_by: Any = None) -> list[Book]:
        stmt = stmt.order_by(order_by if order_by is not None else Book.title)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_detail(self, book_id: str) -> Book | None:
        """Book with its full rental history loaded."""
        return await self.get(book_id, selectinload(Book.rentals))

    async def find_duplicate(
        self, title: str, author: str, exclude_id: str | None = None
    ) -> Book | None:
        """Same title and author, ignoring case."""
        stmt = select(Book).where(
            func.lower(Book.title) == title.strip().lower(),
            func.lower(Book.author) == author.strip().lower(),
        )
        if exclude_id:
            stmt = stmt.where(Book.id != exclude_id)
        result = await self.session.execute(stmt.limit(1))
        return result.scalar_one_or_none()

    async def find_by_asin(self, asin: str) -> Book | None:
        result = await self.session.execute(select(Book).where(Book.asin == asin))
        return result.scalar_one_or_none()

    async def categories(self) -> list[str]:
        stmt = (
            select(Book.category_name)
            .where(Book.category_name.is_not(None), Book.category_name != "")
            .distinct()
            .order_by(Book.category_name)
        )
        result = await self.session.execute(stmt)
        return [row for row in result.scalars().all()]

    async def search_authors(self, query: str, limit: int = 10) -> list[str]:
        stmt = (
            select(Book.author)
            .where(Book.author.ilike(_contains(query)))
            .distinct()
            .order_by(Book.author)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def stats(self) -> dict[str, int]:
        total = await self.count()
        available = await self.count(Book.status == BookStatus.AVAILABLE)
        rented = await self.count(Book.status == BookStatus.RENTED)
        with_owner = await self.count(Book.owner_id.is_not(None))

        categories = await self.session.execute(
            select(func.count(func.distinct(Book.category_name)))
        )
        authors = await self.session.execute(select(func.count(func.distinct(Book.author))))

        return {
            "total": total,
            "available": available,
            "rented": rented,
            "withOwner": with_owner,
            "withoutOwner": total - with_owner,
            "categoriesCount": categories.scalar() or 0,
            "authorsCount": authors.scalar() or 0,
        }

    # -- Availability transitions --

    async def claim(self, book_id: str) -> bool:
        """AVAILABLE -> RENTED in one conditional UPDATE.

        Returns False when the book was not AVAILABLE at that instant, so two
        concurrent claims can never both succeed.
        """
        stmt = (
            update(Book)
            .where(Book.id == book_id, Book.status == BookStatus.AVAILABLE)
            .values(status=BookStatus.RENTED, updated_at=utcnow())
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def release(self, book_id: str) -> bool:
        """RENTED -> AVAILABLE."""
        stmt = (
            update(Book)
            .where(Book.id == book_id, Book.status == BookStatus.RENTED)
            .values(status=BookStatus.AVAILABLE, updated_at=utcnow())
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def detach_owner(self, owner_id: str) -> int:
        stmt = update(Book).where(Book.owner_id == owner_id).values(owner_id=None)
        result = await self.session.execute(stmt)
        return result.rowcount

    async def delete_all(self) -> int:
        await self.session.execute(delete(CartItem))
        await self.session.execute(delete(Rental))
        result = await self.session.execute(delete(Book))
        return result.rowcount


# ---------------------------------------------------------------------------
# Cart repository
# ---------------------------------------------------------------------------

class CartRepository(BaseRepository[Cart]):
    """Repository for carts and their items."""

    model = Cart

    async def get_for_user(self, user_id: str, with_items: bool = False) -> Cart | None:
        stmt = select(Cart).where(Cart.user_id == user_id)
        if with_items:
            stmt = stmt.options(selectinload(Cart.items)).execution_options(
                populate_existing=True
            )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_create(self, user_id: str, with_items: bool = False) -> Cart:
        cart = await self.get_for_user(user_id, with_items=with_items)
        if cart is None:
            await self.create({"user_id": user_id})
            cart = await self.get_for_user(user_id, with_items=with_items)
        return cart

    async def find_item(self, cart_id: str, book_id: str) -> CartItem | None:
        stmt = select(CartItem).where(CartItem.cart_id == cart_id, CartItem.book_id == book_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def add_item(self, cart_id: str, book_id: str) -> CartItem:
        item = CartItem(cart_id=cart_id, book_id=book_id)
        self.session.add(item)
        await self.session.flush()
        return item

    async def remove_item(self, item: CartItem) -> None:
        await self.session.delete(item)
        await self.session.flush()

    async def remove_items(self, item_ids: list[str]) -> int:
        if not item_ids:
            return 0
        result = await self.session.execute(delete(CartItem).where(CartItem.id.in_(item_ids)))
        return result.rowcount

    async def clear(self, cart_id: str) -> int:
        result = await self.session.execute(delete(CartItem).where(CartItem.cart_id == cart_id))
        return result.rowcount

    async def count_items(self, cart_id: str) -> int:
        stmt = select(func.count()).select_from(CartItem).where(CartItem.cart_id == cart_id)
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def remove_book_everywhere(self, book_id: str) -> int:
        result = await self.session.execute(delete(CartItem).where(CartItem.book_id == book_id))
        return result.rowcount

    async def delete_for_user(self, user_id: str) -> None:
        cart_ids = select(Cart.id).where(Cart.user_id == user_id).scalar_subquery()
        await self.session.execute(delete(CartItem).where(CartItem.cart_id.in_(cart_ids)))
        await self.session.execute(delete(Cart).where(Cart.user_id == user_id))


# ---------------------------------------------------------------------------
# Rental repository
# ---------------------------------------------------------------------------

class RentalRepository(BaseRepository[Rental]):
    """Repository for rentals."""

    model = Rental
    sortable = {
        "startDate": Rental.start_date,
        "endDate": Rental.end_date,
        "createdAt": Rental.created_at,
        "duration": Rental.duration,
    }
    default_sort = "start_date"

    def search(self, filters: RentalFilters | None = None) -> Select:
        stmt = select(Rental)
        if filters is None:
            return stmt

        if filters.status:
            stmt = stmt.where(Rental.status == filters.status)
        if filters.book_id:
            stmt = stmt.where(Rental.book_id == filters.book_id)
        if filters.renter_id:
            stmt = stmt.where(Rental.renter_id == filters.renter_id)

        if filters.search:
            pattern = _contains(filters.search)
            stmt = (
                stmt.join(Book, Rental.book_id == Book.id)
                .join(User, Rental.renter_id == User.id)
                .where(
                    or_(
                        Book.title.ilike(pattern),
                        Book.author.ilike(pattern),
                        User.first_name.ilike(pattern),
                        User.last_name.ilike(pattern),
                        User.email.ilike(pattern),
                    )
                )
            )

        if filters.start_date_from:
            stmt = stmt.where(Rental.start_date >= filters.start_date_from)
        if filters.start_date_to:
            stmt = stmt.where(Rental.start_date <= filters.start_date_to)
        if filters.end_date_from:
            stmt = stmt.where(Rental.end_date >= filters.end_date_from)
        if filters.end_date_to:
            stmt = stmt.where(Rental.end_date <= filters.end_date_to)

        return stmt

    async def active_for_book(self, book_id: str) -> Rental | None:
        stmt = select(Rental).where(
            Rental.book_id == book_id, Rental.status == RentalState.ACTIVE
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def for_user(self, user_id: str) -> list[Rental]:
        stmt = (
            select(Rental)
            .where(Rental.renter_id == user_id)
            .order_by(Rental.start_date.desc(), Rental.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def overdue(self, now: datetime | None = None) -> list[Rental]:
        stmt = (
            select(Rental)
            .where(
                and_(
                    Rental.status == RentalState.ACTIVE,
                    Rental.end_date < (now or utcnow()),
                )
            )
            .order_by(Rental.end_date)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def stats(self, now: datetime | None = None) -> dict[str, Any]:
        total = await self.count()
        active = await self.count(Rental.status == RentalState.ACTIVE)
        completed = await self.count(Rental.status == RentalState.COMPLETED)
        cancelled = await self.count(Rental.status == RentalState.CANCELLED)
        overdue = await self.count(
            Rental.status == RentalState.ACTIVE, Rental.end_date < (now or utcnow())
        )
        avg = await self.session.execute(select(func.avg(Rental.duration)))
        average = avg.scalar()

        return {
            "totalRentals": total,
            "activeRentals": active,
            "completedRentals": completed,
            "cancelledRentals": cancelled,
            "overdueRentals": overdue,
            "averageDuration": round(float(average), 1) if average else 0,
        }

    async def delete_for_user(self, user_id: str) -> int:
        result = await self.session.execute(delete(Rental).where(Rental.renter_id == user_id))
        return result.rowcount


# ---------------------------------------------------------------------------
# Message repository
# ---------------------------------------------------------------------------

class MessageRepository(BaseRepository[Message]):
    """Repository for direct messages."""

    model = Message

    def received(self, user_id: str, unread_only: bool = False) -> Select:
        stmt = select(Message).where(Message.receiver_id == user_id)
        if unread_only:
            stmt = stmt.where(Message.is_read.is_(False))
        return stmt

    def sent(self, user_id: str) -> Select:
        return select(Message).where(Message.sender_id == user_id)

    def conversation(self, user_id: str, other_id: str) -> Select:
        return select(Message).where(
            or_(
                and_(Message.sender_id == user_id, Message.receiver_id == other_id),
                and_(Message.sender_id == other_id, Message.receiver_id == user_id),
            )
        )

    async def unread_count(self, user_id: str) -> int:
        return await self.count(Message.receiver_id == user_id, Message.is_read.is_(False))

    async def mark_all_read(self, user_id: str) -> int:
        stmt = (
            update(Message)
            .where(Message.receiver_id == user_id, Message.is_read.is_(False))
            .values(is_read=True, updated_at=utcnow())
        )
        result = await self.session.execute(stmt)
        return result.rowcount

    async def delete_for_user(self, user_id: str) -> int:
        stmt = delete(Message).where(
            or_(Message.sender_id == user_id, Message.receiver_id == user_id)
        )
        result = await self.session.execute(stmt)
        return result.rowcount
