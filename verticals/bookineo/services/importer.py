"""Bulk catalog import from a marketplace product dump.

Records carry marketplace field names (title, brand, final_price,
rating, reviews_count, categories, asin, ...). The import keeps only
records with usable data, picks a random sample, drops unwanted
categories, and inserts in batches. Each record is written inside its
own savepoint so one bad record does not abort the batch.
"""

import logging
import random
import time
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from core.errors import AppError
from core.observability.otel_setup import traced
from patterns.domain_config import BookineoConfig
from patterns.workflow_states import BookStatus
from verticals.bookineo.config import get_config
from verticals.bookineo.models.db_models import Book
from verticals.bookineo.repository import BookRepository

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "Uncategorized"
DATE_FORMATS = ("%B %d, %Y", "%b %d, %Y", "%d %B %Y", "%Y-%m-%d")


# ---------------------------------------------------------------------------
# Record parsing
# ---------------------------------------------------------------------------

def parse_rating(value: Any) -> float:
    """'4.5 out of 5 stars' -> 4.5. Anything unreadable is 0."""
    if isinstance(value, (int, float)):
        return float(value)
    if not value:
        return 0.0
    try:
        return float(str(value).split()[0].replace(",", "."))
    except ValueError:
        return 0.0


def parse_date(value: Any) -> Optional[datetime]:
    if not value:
        return None
    text = str(value).strip()
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        parsed = None
        for fmt in DATE_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _as_number(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def is_quality_record(record: dict[str, Any]) -> bool:
    """Title, brand, a positive price, a rating and at least one review."""
    return bool(
        (record.get("title") or "").strip()
        and (record.get("brand") or "").strip()
        and _as_number(record.get("final_price")) > 0
        and parse_rating(record.get("rating")) > 0
        and _as_number(record.get("reviews_count")) > 0
    )


def main_category(categories: list[str] | None) -> str:
    categories = categories or []
    if len(categories) > 1 and categories[1]:
        return categories[1]
    if categories and categories[0]:
        return categories[0]
    return DEFAULT_CATEGORY


def has_excluded_category(categories: list[str] | None, excluded: tuple[str, ...]) -> bool:
    lowered = [c.lower() for c in categories or []]
    return any(bad.lower() in cat for bad in excluded for cat in lowered)


def to_book_fields(record: dict[str, Any]) -> dict[str, Any]:
    """Map one marketplace record to Book columns. Imported books have no owner."""
    category = main_category(record.get("categories"))
    return {
        "title": record["title"].strip()[:200],
        "author": record["brand"].strip()[:100],
        "category_name": category[:50],
        "price": _as_number(record.get("final_price")),
        "status": BookStatus.AVAILABLE,
        "asin": (record.get("asin") or None),
        "sold_by": record.get("seller_name"),
        "img_url": record.get("image_url"),
        "product_url": record.get("url"),
        "stars": parse_rating(record.get("rating")) or None,
        "reviews": int(_as_number(record.get("reviews_count"))),
        "is_best_seller": bool(record.get("best_sellers_rank")),
        "published_date": parse_date(record.get("date_first_available")),
        "owner_id": None,
    }


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class BookImportService:
    """Import and clear the shared catalog."""

    def __init__(self, session: AsyncSession, config: BookineoConfig, rng: random.Random | None = None):
        self.session = session
        self.config = config
        self.books = BookRepository(session)
        self.rng = rng or random.Random()

    async def prerequisites(self) -> dict[str, Any]:
        limit = self.config.catalog.import_max_books
        current = await self.books.count()
        issues = []
        if current >= limit:
            issues.append(f"The catalog already holds {current} books (limit {limit})")
        return {"canImport": not issues, "currentBooksCount": current, "issues": issues}

    def select(self, records: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Quality filter, shuffle, cap."""
        candidates = [r for r in records if isinstance(r, dict) and is_quality_record(r)]
        self.rng.shuffle(candidates)
        return candidates[: self.config.catalog.import_max_books]

    async def import_books(self, records: list[dict[str, Any]]) -> dict[str, Any]:
        started = time.monotonic()
        catalog = self.config.catalog

        check = await self.prerequisites()
        if not check["canImport"]:
            raise AppError(
                400, "IMPORT_NOT_ALLOWED", "Import not possible",
                details={"issues": check["issues"], "currentBooksCount": check["currentBooksCount"]},
            )

        selected = self.select(records)
        if not selected:
            raise AppError.bad_request("No book matches the quality criteria")

        parsed = [
            to_book_fields(r)
            for r in selected
            if not has_excluded_category(r.get("categories"), catalog.import_excluded_categories)
        ]
        skipped = len(selected) - len(parsed)
        imported = 0
        failed = 0
        errors: list[str] = []

        with traced("catalog.import", records=len(records), selected=len(selected)):
            size = catalog.import_batch_size
            batches = [parsed[i:i + size] for i in range(0, len(parsed), size)]
            for index, batch in enumerate(batches, start=1):
                logger.info("Importing batch %d/%d (%d books)", index, len(batches), len(batch))
                for fields in batch:
                    if await self._exists(fields):
                        skipped += 1
                        continue
                    try:
                        async with self.session.begin_nested():
                            self.session.add(Book(**fields))
                        imported += 1
                    except Exception as exc:
                        failed += 1
                        errors.append(f'Failed to import "{fields["title"]}": {exc}')
                        logger.warning("Import of %r failed: %s", fields["title"], exc)

        elapsed_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "Import finished in %dms: %d imported, %d failed, %d skipped",
            elapsed_ms, imported, failed, skipped,
        )
        return {
            "success": True,
            "imported": imported,
            "failed": failed,
            "skipped": skipped,
            "errors": errors,
            "processingTime": elapsed_ms,
        }

    async def clear_all(self) -> int:
        if not self.config.is_development:
            raise AppError.forbidden("Only allowed in development")
        removed = await self.books.delete_all()
        logger.warning("Catalog cleared: %d books removed", removed)
        return removed

    async def _exists(self, fields: dict[str, Any]) -> bool:
        if fields["asin"] and await self.books.find_by_asin(fields["asin"]):
            return True
        return await self.books.find_duplicate(fields["title"], fields["author"]) is not None


# ---------------------------------------------------------------------------
# FastAPI dependency factory
# ---------------------------------------------------------------------------

def get_import_service(
    session: AsyncSession = Depends(get_session),
    config: BookineoConfig = Depends(get_config),
) -> BookImportService:
    """FastAPI dependency for BookImportService."""
    return BookImportService(session, config)
