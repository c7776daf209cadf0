"""Book catalog service.

Validation, ownership checks and the CSV export on top of BookRepository.
"""

import logging
from typing import Any

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from core.errors import AppError, AuthorizationError, ResourceNotFoundError, ValidationError
from core.models.base import isoformat
from patterns.domain_config import BookineoConfig
from patterns.repository import Page
from patterns.workflow_states import BookStatus
from verticals.bookineo.config import get_config
from verticals.bookineo.models.db_models import Book
from verticals.bookineo.models.schemas import BookCreate, BookFilters, BookUpdate
from verticals.bookineo.repository import BookRepository, CartRepository, RentalRepository
from verticals.bookineo.rules import check_price_range

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# CSV encoding
# ---------------------------------------------------------------------------

def _csv_field(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        text = "true" if value else "false"
    else:
        text = str(value)
    if "," in text or '"' in text or "\n" in text:
        return '"' + text.replace('"', '""') + '"'
    return text


def to_csv(rows: list[dict[str, Any]]) -> str:
    """Encode rows as CSV. The header is the keys of the first row."""
    if not rows:
        return ""
    headers = list(rows[0].keys())
    lines = [",".join(headers)]
    for row in rows:
        lines.append(",".join(_csv_field(row.get(h)) for h in headers))
    return "\n".join(lines)


def export_row(book: Book) -> dict[str, Any]:
    owner = book.owner
    created = isoformat(book.created_at)
    return {
        "title": book.title,
        "author": book.author,
        "category": book.category_name or "",
        "price": book.price,
        "status": book.status.value,
        "owner": owner.full_name if owner else "",
        "ownerEmail": owner.email if owner else "",
        "createdAt": created[:10] if created else "",
        "asin": book.asin or "",
        "soldBy": book.sold_by or "",
        "stars": book.stars or 0,
        "reviews": book.reviews or 0,
        "bestseller": book.is_best_seller,
    }


def book_detail(book: Book) -> dict[str, Any]:
    """Book with owner summary and rental history (newest first)."""
    data = book.to_dict()
    data["rentals"] = [
        {
            "id": r.id,
            "status": r.status.value,
            "startDate": isoformat(r.start_date),
            "endDate": isoformat(r.end_date),
            "returnDate": isoformat(r.return_date),
            "duration": r.duration,
            "renter": r.renter.summary() if r.renter else None,
        }
        for r in book.rentals
    ]
    return data


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class BookService:
    """Catalog operations: search, listing CRUD, categories, stats, export."""

    def __init__(self, session: AsyncSession, config: BookineoConfig):
        self.session = session
        self.config = config
        self.books = BookRepository(session)
        self.rentals = RentalRepository(session)
        self.carts = CartRepository(session)

    # -- Queries --

    async def list_books(
        self,
        filters: BookFilters,
        page: int = 1,
        limit: int = 20,
        sort_by: str | None = None,
        sort_order: str = "desc",
    ) -> Page[Book]:
        limit = max(1, min(limit, self.config.catalog.max_page_size))
        return await self.books.paginate(
            self.books.search(filters),
            page=max(1, page),
            limit=limit,
            sort_by=sort_by,
            sort_order=sort_order,
        )

    async def list_available(self, user_id: str | None = None) -> list[Book]:
        """AVAILABLE books, minus the caller's own listings."""
        stmt = self.books.search(BookFilters(status=BookStatus.AVAILABLE))
        if user_id:
            stmt = stmt.where((Book.owner_id.is_(None)) | (Book.owner_id != user_id))
        return await self.books.list_all(stmt)

    async def list_my_books(self, user_id: str) -> list[Book]:
        return await self.books.list_all(
            self.books.search(BookFilters(owner_id=user_id)),
            order_by=Book.updated_at.desc(),
        )

    async def get_book(self, book_id: str) -> Book:
        book = await self.books.get_detail(book_id)
        if book is None:
            raise ResourceNotFoundError("Book", book_id)
        return book

    async def get_categories(self) -> list[str]:
        return await self.books.categories()

    async def search_authors(self, query: str) -> list[str]:
        catalog = self.config.catalog
        query = (query or "").strip()
        if len(query) < catalog.author_search_min_chars:
            raise ValidationError(
                f"Search query must be at least {catalog.author_search_min_chars} characters",
                field="q",
            )
        return await self.books.search_authors(query, limit=catalog.author_search_limit)

    async def get_stats(self) -> dict[str, int]:
        return await self.books.stats()

    async def export_rows(self, filters: BookFilters) -> list[dict[str, Any]]:
        books = await self.books.list_all(self.books.search(filters), order_by=Book.title)
        return [export_row(b) for b in books]

    # -- Mutations --

    async def create_book(self, data: BookCreate, creator_id: str) -> Book:
        self._validate_fields(data.model_dump(exclude_unset=True))

        if await self.books.find_duplicate(data.title, data.author):
            raise AppError.conflict("A book with this title and author already exists")

        book = await self.books.create(
            {
                "title": data.title,
                "author": data.author,
                "price": data.price,
                "category_name": data.category_name or None,
                "img_url": data.img_url,
                "owner_id": creator_id,
                "status": BookStatus.AVAILABLE,
            }
        )
        logger.info("Book %s listed by %s", book.id, creator_id)
        return await self.books.reload(book)

    async def update_book(self, book_id: str, data: BookUpdate, user_id: str) -> Book:
        book = await self._owned_book(book_id, user_id)
        changes = data.model_dump(exclude_unset=True)
        self._validate_fields(changes)

        title = changes.get("title", book.title)
        author = changes.get("author", book.author)
        if ("title" in changes or "author" in changes) and await self.books.find_duplicate(
            title, author, exclude_id=book.id
        ):
            raise AppError.conflict("A book with this title and author already exists")

        await self.books.update(book, changes)
        return await self.books.reload(book)

    async def delete_book(self, book_id: str, user_id: str) -> None:
        book = await self._owned_book(book_id, user_id)

        if await self.rentals.active_for_book(book.id):
            raise AppError.conflict("Cannot delete a book with an active rental")

        await self.carts.remove_book_everywhere(book.id)
        await self.books.delete(book)
        logger.info("Book %s deleted by %s", book_id, user_id)

    # -- Helpers --

    async def _owned_book(self, book_id: str, user_id: str) -> Book:
        book = await self.books.get(book_id)
        if book is None:
            raise ResourceNotFoundError("Book", book_id)
        if book.owner_id is not None and book.owner_id != user_id:
            raise AuthorizationError("You can only modify your own books")
        return book

    def _validate_fields(self, fields: dict[str, Any]) -> None:
        catalog = self.config.catalog
        for name, limit in (
            ("title", catalog.max_title_length),
            ("author", catalog.max_author_length),
            ("category_name", catalog.max_category_length),
        ):
            value = fields.get(name)
            if value is not None and len(value) > limit:
                raise ValidationError(f"{name} cannot exceed {limit} characters", field=name)
            if name != "category_name" and name in fields and not (value or "").strip():
                raise ValidationError(f"{name} is required", field=name)

        if fields.get("price") is not None:
            result = check_price_range(fields["price"], catalog.max_price)
            if not result.passed:
                raise ValidationError(result.message, field="price")


# ---------------------------------------------------------------------------
# FastAPI dependency factory
# ---------------------------------------------------------------------------

def get_book_service(
    session: AsyncSession = Depends(get_session),
    config: BookineoConfig = Depends(get_config),
) -> BookService:
    """FastAPI dependency for BookService."""
    return BookService(session, config)
