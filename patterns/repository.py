"""Async repository pattern for database access.

Provides a generic base repository with CRUD operations, pagination and
sorting helpers. Entity repositories subclass this to add their own
filters. Repositories hold no business rules; they return ORM objects and
leave ownership, availability and validation checks to the services.
"""

from dataclasses import dataclass
from typing import Any, Callable, Generic, Sequence, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.models.base import Base

# ---------------------------------------------------------------------------
# Type variable for model classes
# ---------------------------------------------------------------------------

ModelT = TypeVar("ModelT", bound=Base)


# ---------------------------------------------------------------------------
# Pagination result
# ---------------------------------------------------------------------------

@dataclass
class Page(Generic[ModelT]):
    """One page of results plus the numbers a client needs to navigate."""

    items: Sequence[ModelT]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    def to_dict(self, serialize: Callable[[ModelT], dict] | None = None) -> dict[str, Any]:
        serialize = serialize or (lambda item: item.to_dict())
        return {
            "items": [serialize(item) for item in self.items],
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "totalPages": self.total_pages,
            "hasNext": self.has_next,
            "hasPrev": self.has_prev,
        }


# ---------------------------------------------------------------------------
# Base repository
# ---------------------------------------------------------------------------

class BaseRepository(Generic[ModelT]):
    """Generic async repository with CRUD + pagination.

    Subclass and set `model` to your SQLAlchemy model::

        class BookRepository(BaseRepository[Book]):
            model = Book
            sortable = {"title": Book.title, "price": Book.price}

            async def by_owner(self, owner_id: str) -> list[Book]:
                stmt = select(Book).where(Book.owner_id == owner_id)
                result = await self.session.execute(stmt)
                return list(result.scalars().all())
    """

    model: type[ModelT]
    # Public sort key -> column; anything else falls back to default_sort
    sortable: dict[str, Any] = {}
    default_sort: str = "created_at"

    def __init__(self, session: AsyncSession):
        self.session = session

    # -- Pagination --

    async def paginate(
        self,
        stmt: Select,
        page: int = 1,
        limit: int = 20,
        sort_by: str | None = None,
        sort_order: str = "desc",
    ) -> Page[ModelT]:
        """Run ``stmt`` for one page and count the whole filtered set.

        The count reuses the statement's WHERE clauses through a subquery,
        so filters never have to be applied twice by hand.
        """
        count_stmt = select(func.count()).select_from(
            stmt.order_by(None).subquery()
        )
        count_result = await self.session.execute(count_stmt)
        total = count_result.scalar() or 0

        column = self.sortable.get(sort_by or "") if sort_by else None
        if column is None:
            column = getattr(self.model, self.default_sort)
        ordered = column.asc() if sort_order == "asc" else column.desc()

        offset = (page - 1) * limit
        stmt = stmt.order_by(ordered, self.model.id).offset(offset).limit(limit)

        result = await self.session.execute(stmt)
        items = list(result.scalars().unique().all())
        return Page(items=items, total=total, page=page, limit=limit)

    async def count(self, *criteria: Any) -> int:
        stmt = select(func.count()).select_from(self.model)
        if criteria:
            stmt = stmt.where(*criteria)
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    # -- Get by ID --

    async def get(self, item_id: str, *options: Any) -> ModelT | None:
        """Get a single item by ID, applying loader options when given."""
        stmt = select(self.model).where(self.model.id == item_id)
        if options:
            stmt = stmt.options(*options).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def reload(self, item: ModelT, *options: Any) -> ModelT:
        """Re-read a flushed item, including its eager relationships."""
        stmt = (
            select(self.model)
            .where(self.model.id == item.id)
            .options(*options)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    # -- Create --

    async def create(self, data: dict[str, Any]) -> ModelT:
        """Create and flush a new item."""
        item = self.model(**data)
        self.session.add(item)
        await self.session.flush()
        return item

    # -- Update --

    async def update(self, item: ModelT, data: dict[str, Any]) -> ModelT:
        """Apply field changes to a loaded item."""
        for key, value in data.items():
            if hasattr(item, key) and key not in ("id", "created_at"):
                setattr(item, key, value)

        await self.session.flush()
        return item

    # -- Delete --

    async def delete(self, item: ModelT) -> None:
        await self.session.delete(item)
        await self.session.flush()
