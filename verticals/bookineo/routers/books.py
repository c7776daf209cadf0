"""Book catalog routes.

Static paths (categories, authors, stats, export, available, my-books)
are declared before /books/{book_id} so they are not captured by it.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from patterns.workflow_states import BookStatus
from verticals.bookineo.auth import AuthContext, get_current_user, get_optional_user
from verticals.bookineo.models.schemas import (
    BookCreate,
    BookFilters,
    BookSortField,
    BookUpdate,
    SortOrder,
)
from verticals.bookineo.routers.common import ok
from verticals.bookineo.services.books import BookService, book_detail, get_book_service, to_csv
from verticals.bookineo.throttling import rate_limit

router = APIRouter(prefix="/books", tags=["Books"])

read_limit = [Depends(rate_limit("light"))]
write_limit = [Depends(rate_limit("moderate"))]


def book_filters(
    search: Optional[str] = None,
    status: Optional[BookStatus] = None,
    category: Optional[str] = None,
    author: Optional[str] = None,
    price_min: Optional[float] = Query(None, alias="priceMin", ge=0),
    price_max: Optional[float] = Query(None, alias="priceMax", ge=0),
    has_owner: Optional[bool] = Query(None, alias="hasOwner"),
    owner_id: Optional[str] = Query(None, alias="ownerId"),
) -> BookFilters:
    return BookFilters(
        search=search,
        status=status,
        category=category,
        author=author,
        price_min=price_min,
        price_max=price_max,
        has_owner=has_owner,
        owner_id=owner_id,
    )


# ============================================================================
# Catalog
# ============================================================================

@router.get("", dependencies=read_limit)
async def list_books(
    filters: BookFilters = Depends(book_filters),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: Optional[BookSortField] = Query(None, alias="sortBy"),
    sort_order: SortOrder = Query(SortOrder.DESC, alias="sortOrder"),
    service: BookService = Depends(get_book_service),
):
    """Search and list books with filtering, sorting and pagination."""
    result = await service.list_books(
        filters,
        page=page,
        limit=limit,
        sort_by=sort_by.value if sort_by else None,
        sort_order=sort_order.value,
    )
    return ok(result.to_dict())


@router.get("/categories", dependencies=read_limit)
async def list_categories(service: BookService = Depends(get_book_service)):
    return ok(await service.get_categories())


@router.get("/authors/search", dependencies=read_limit)
async def search_authors(
    q: str = "",
    service: BookService = Depends(get_book_service),
):
    """Author autocomplete (at least 2 characters)."""
    return ok(await service.search_authors(q))


@router.get("/stats", dependencies=read_limit)
async def book_stats(service: BookService = Depends(get_book_service)):
    return ok(await service.get_stats())


@router.get("/export", dependencies=read_limit)
async def export_books(
    filters: BookFilters = Depends(book_filters),
    user: AuthContext = Depends(get_current_user),
    service: BookService = Depends(get_book_service),
):
    """Download the filtered catalog as CSV."""
    rows = await service.export_rows(filters)
    filename = f"books_export_{date.today().isoformat()}.csv"
    return Response(
        content=to_csv(rows),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/available", dependencies=read_limit)
async def list_available(
    user: Optional[AuthContext] = Depends(get_optional_user),
    service: BookService = Depends(get_book_service),
):
    """Books that can be rented now, without the caller's own listings."""
    books = await service.list_available(user.user_id if user else None)
    return ok([b.to_dict() for b in books])


@router.get("/my-books", dependencies=read_limit)
async def list_my_books(
    user: AuthContext = Depends(get_current_user),
    service: BookService = Depends(get_book_service),
):
    books = await service.list_my_books(user.user_id)
    return ok([b.to_dict() for b in books])


# ============================================================================
# Single book
# ============================================================================

@router.post("", status_code=201, dependencies=write_limit)
async def create_book(
    request: BookCreate,
    user: AuthContext = Depends(get_current_user),
    service: BookService = Depends(get_book_service),
):
    """List a new book. The caller becomes its owner."""
    book = await service.create_book(request, user.user_id)
    return ok(book.to_dict(), "Book created")


@router.get("/{book_id}", dependencies=read_limit)
async def get_book(book_id: str, service: BookService = Depends(get_book_service)):
    """Book with owner and rental history."""
    book = await service.get_book(book_id)
    return ok(book_detail(book))


@router.put("/{book_id}", dependencies=write_limit)
async def update_book(
    book_id: str,
    request: BookUpdate,
    user: AuthContext = Depends(get_current_user),
    service: BookService = Depends(get_book_service),
):
    book = await service.update_book(book_id, request, user.user_id)
    return ok(book.to_dict(), "Book updated")


@router.delete("/{book_id}", dependencies=write_limit)
async def delete_book(
    book_id: str,
    user: AuthContext = Depends(get_current_user),
    service: BookService = Depends(get_book_service),
):
    await service.delete_book(book_id, user.user_id)
    return ok(message="Book deleted")
