"""Test the marketplace catalog import."""
import dataclasses
import random
from datetime import datetime, timezone

import pytest

from core.errors import AppError
from patterns.domain_config import CatalogConfig
from verticals.bookineo.services.importer import (
    BookImportService,
    has_excluded_category,
    is_quality_record,
    main_category,
    parse_date,
    parse_rating,
    to_book_fields,
)


def record(n=1, **overrides):
    base = {
        "title": f"Imported Book {n}",
        "brand": "Some Author",
        "final_price": 9.99,
        "rating": "4.5 out of 5 stars",
        "reviews_count": 12,
        "categories": ["Books", "Literature & Fiction"],
        "asin": f"B0000000{n:02d}",
        "date_first_available": "March 3, 2015",
    }
    return {**base, **overrides}


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "value,expected",
    [("4.5 out of 5 stars", 4.5), ("3,8 sur 5", 3.8), (4, 4.0), ("", 0.0), (None, 0.0), ("n/a", 0.0)],
)
def test_parse_rating(value, expected):
    assert parse_rating(value) == expected


def test_parse_date_formats():
    assert parse_date("2015-03-03") == datetime(2015, 3, 3, tzinfo=timezone.utc)
    assert parse_date("March 3, 2015") == datetime(2015, 3, 3, tzinfo=timezone.utc)
    assert parse_date("2015-03-03T10:00:00Z") == datetime(2015, 3, 3, 10, tzinfo=timezone.utc)
    assert parse_date("someday") is None
    assert parse_date(None) is None


def test_quality_filter():
    assert is_quality_record(record())
    assert not is_quality_record(record(brand=""))
    assert not is_quality_record(record(final_price=0))
    assert not is_quality_record(record(rating=None))
    assert not is_quality_record(record(reviews_count=0))
    assert not is_quality_record(record(title="   "))


def test_main_category_prefers_second_entry():
    assert main_category(["Books", "Mystery"]) == "Mystery"
    assert main_category(["Books"]) == "Books"
    assert main_category([]) == "Uncategorized"
    assert main_category(None) == "Uncategorized"


def test_excluded_categories_match_substrings():
    assert has_excluded_category(["Books", "Erotica Romance"], ("Erotica",))
    assert not has_excluded_category(["Books", "Romance"], ("Erotica",))


def test_to_book_fields_maps_and_truncates():
    fields = to_book_fields(record(title="T" * 250, best_sellers_rank=[{"rank": 3}], seller_name="Shop"))
    assert len(fields["title"]) == 200
    assert fields["author"] == "Some Author"
    assert fields["category_name"] == "Literature & Fiction"
    assert fields["stars"] == 4.5
    assert fields["reviews"] == 12
    assert fields["is_best_seller"] is True
    assert fields["sold_by"] == "Shop"
    assert fields["owner_id"] is None


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_select_filters_shuffles_and_caps(session, test_config):
    config = dataclasses.replace(test_config, catalog=CatalogConfig(import_max_books=2))
    service = BookImportService(session, config, rng=random.Random(1))
    records = [record(1), record(2, brand=""), record(3), record(4), "not a record"]
    selected = service.select(records)
    assert len(selected) == 2
    assert all(r["brand"] for r in selected)


@pytest.mark.asyncio
async def test_import_skips_existing_and_excluded(session, test_config):
    service = BookImportService(session, test_config)
    first = await service.import_books([record(1), record(2)])
    assert first["imported"] == 2
    assert first["failed"] == 0

    second = await service.import_books([
        record(1),
        record(9, title="IMPORTED BOOK 2", asin=None),
        record(3, categories=["Books", "Adult Fiction"]),
        record(4),
    ])
    assert second["imported"] == 1
    assert second["skipped"] == 3
    assert second["errors"] == []


@pytest.mark.asyncio
async def test_import_without_quality_records(session, test_config):
    service = BookImportService(session, test_config)
    with pytest.raises(AppError) as exc:
        await service.import_books([record(brand="")])
    assert exc.value.status_code == 400


@pytest.mark.asyncio
async def test_import_refused_when_catalog_full(session, test_config):
    config = dataclasses.replace(test_config, catalog=CatalogConfig(import_max_books=1))
    service = BookImportService(session, config)
    await service.import_books([record(1)])

    check = await service.prerequisites()
    assert check["canImport"] is False
    assert check["currentBooksCount"] == 1

    with pytest.raises(AppError) as exc:
        await service.import_books([record(2)])
    assert exc.value.code == "IMPORT_NOT_ALLOWED"


@pytest.mark.asyncio
async def test_clear_all_only_in_development(session, test_config):
    service = BookImportService(session, test_config)
    await service.import_books([record(1), record(2)])
    with pytest.raises(AppError) as exc:
        await service.clear_all()
    assert exc.value.status_code == 403

    dev = BookImportService(session, dataclasses.replace(test_config, environment="development"))
    assert await dev.clear_all() == 2


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_import_through_api(client, make_user):
    user = await make_user()
    prereq = await client.get("/api/admin/books/import")
    assert prereq.json()["data"] == {"canImport": True, "currentBooksCount": 0, "issues": []}

    resp = await client.post(
        "/api/admin/books/import",
        json={"books": [record(1), record(2), record(3, rating=None)]},
        headers=user["headers"],
    )
    assert resp.status_code == 200
    result = resp.json()["data"]
    assert result["imported"] == 2
    assert "processingTime" in result

    listing = (await client.get("/api/books", params={"hasOwner": "false"})).json()["data"]
    assert listing["total"] == 2
    assert {b["categoryName"] for b in listing["items"]} == {"Literature & Fiction"}


@pytest.mark.asyncio
async def test_clear_catalog_through_api(client, make_user, make_book, use_config, test_config):
    user = await make_user()
    await make_book(user)

    refused = await client.delete("/api/admin/books/import", headers=user["headers"])
    assert refused.status_code == 403

    use_config(dataclasses.replace(test_config, environment="development"))
    resp = await client.delete("/api/admin/books/import", headers=user["headers"])
    assert resp.status_code == 200
    assert resp.json()["data"]["removed"] == 1
    assert (await client.get("/api/books/stats")).json()["data"]["total"] == 0
