"""Test the rental lifecycle routes."""
from datetime import datetime, timedelta, timezone

import pytest


async def rent(client, user, book, duration=7, **extra):
    payload = {"bookId": book["id"], "duration": duration, **extra}
    return await client.post("/api/rentals", json=payload, headers=user["headers"])


async def book_status(client, book):
    return (await client.get(f"/api/books/{book['id']}")).json()["data"]["status"]


@pytest.mark.asyncio
async def test_create_rental(client, make_user, make_book):
    owner = await make_user()
    renter = await make_user()
    book = await make_book(owner)

    resp = await rent(client, renter, book, duration=10, comment="Weekend read")
    assert resp.status_code == 201
    rental = resp.json()["data"]
    assert rental["status"] == "ACTIVE"
    assert rental["renterId"] == renter["id"]
    assert rental["book"]["id"] == book["id"]
    assert rental["returnDate"] is None
    assert rental["isOverdue"] is False

    start = datetime.fromisoformat(rental["startDate"])
    end = datetime.fromisoformat(rental["endDate"])
    assert end - start == timedelta(days=10)
    assert await book_status(client, book) == "RENTED"


@pytest.mark.asyncio
async def test_create_rental_with_start_date(client, make_user, make_book):
    owner = await make_user()
    renter = await make_user()
    book = await make_book(owner)
    start = datetime(2030, 5, 1, 9, 0, tzinfo=timezone.utc)

    resp = await rent(client, renter, book, duration=3, startDate=start.isoformat())
    rental = resp.json()["data"]
    assert datetime.fromisoformat(rental["startDate"]) == start
    assert datetime.fromisoformat(rental["endDate"]) == start + timedelta(days=3)


@pytest.mark.asyncio
async def test_create_rental_errors(client, make_user, make_book):
    owner = await make_user()
    renter = await make_user()
    book = await make_book(owner)

    assert (await rent(client, renter, {"id": "missing"})).status_code == 404
    assert (await rent(client, owner, book)).status_code == 400

    too_long = await rent(client, renter, book, duration=366)
    assert too_long.status_code == 422
    assert "duration" in too_long.json()["errors"]

    assert (await rent(client, renter, book)).status_code == 201
    second = await make_user()
    assert (await rent(client, second, book)).status_code == 409


@pytest.mark.asyncio
async def test_return_frees_book_and_sets_return_date(client, make_user, make_book):
    owner = await make_user()
    renter = await make_user()
    book = await make_book(owner)
    rental = (await rent(client, renter, book)).json()["data"]

    resp = await client.post(
        f"/api/rentals/{rental['id']}/return", json={"comment": "Great"}, headers=renter["headers"]
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "COMPLETED"
    assert data["returnDate"] is not None
    assert data["comment"] == "Great"
    assert await book_status(client, book) == "AVAILABLE"

    # The book can be rented again
    again = await make_user()
    assert (await rent(client, again, book)).status_code == 201


@pytest.mark.asyncio
async def test_owner_can_cancel(client, make_user, make_book):
    owner = await make_user()
    renter = await make_user()
    book = await make_book(owner)
    rental = (await rent(client, renter, book)).json()["data"]

    resp = await client.post(f"/api/rentals/{rental['id']}/cancel", headers=owner["headers"])
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "CANCELLED"
    assert data["returnDate"] is None
    assert await book_status(client, book) == "AVAILABLE"


@pytest.mark.asyncio
async def test_stranger_cannot_touch_rental(client, make_user, make_book):
    owner = await make_user()
    renter = await make_user()
    stranger = await make_user()
    book = await make_book(owner)
    rental = (await rent(client, renter, book)).json()["data"]

    for method, path in (
        ("post", f"/api/rentals/{rental['id']}/return"),
        ("post", f"/api/rentals/{rental['id']}/cancel"),
        ("delete", f"/api/rentals/{rental['id']}"),
    ):
        resp = await getattr(client, method)(path, headers=stranger["headers"])
        assert resp.status_code == 403
    assert await book_status(client, book) == "RENTED"


@pytest.mark.asyncio
@pytest.mark.parametrize("first,second", [("return", "return"), ("return", "cancel"), ("cancel", "return")])
async def test_terminal_rentals_conflict(client, make_user, make_book, first, second):
    owner = await make_user()
    renter = await make_user()
    book = await make_book(owner)
    rental = (await rent(client, renter, book)).json()["data"]

    ok = await client.post(f"/api/rentals/{rental['id']}/{first}", headers=renter["headers"])
    assert ok.status_code == 200
    resp = await client.post(f"/api/rentals/{rental['id']}/{second}", headers=renter["headers"])
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_update_rental_status_and_comment(client, make_user, make_book):
    owner = await make_user()
    renter = await make_user()
    book = await make_book(owner)
    rental = (await rent(client, renter, book)).json()["data"]

    resp = await client.put(
        f"/api/rentals/{rental['id']}", json={"comment": "Extended note"}, headers=renter["headers"]
    )
    assert resp.json()["data"]["comment"] == "Extended note"
    assert resp.json()["data"]["status"] == "ACTIVE"

    resp = await client.put(
        f"/api/rentals/{rental['id']}", json={"status": "COMPLETED"}, headers=renter["headers"]
    )
    assert resp.json()["data"]["status"] == "COMPLETED"
    assert await book_status(client, book) == "AVAILABLE"

    reactivate = await client.put(
        f"/api/rentals/{rental['id']}", json={"status": "ACTIVE"}, headers=renter["headers"]
    )
    assert reactivate.status_code == 409


@pytest.mark.asyncio
async def test_delete_active_rental_frees_book(client, make_user, make_book):
    owner = await make_user()
    renter = await make_user()
    book = await make_book(owner)
    rental = (await rent(client, renter, book)).json()["data"]

    resp = await client.delete(f"/api/rentals/{rental['id']}", headers=renter["headers"])
    assert resp.status_code == 200
    assert await book_status(client, book) == "AVAILABLE"
    missing = await client.get(f"/api/rentals/{rental['id']}", headers=renter["headers"])
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_overdue_and_stats(client, make_user, make_book):
    owner = await make_user()
    renter = await make_user()
    late_book = await make_book(owner)
    fresh_book = await make_book(owner)
    done_book = await make_book(owner)

    past = datetime.now(timezone.utc) - timedelta(days=10)
    late = (await rent(client, renter, late_book, duration=2, startDate=past.isoformat())).json()["data"]
    await rent(client, renter, fresh_book, duration=30)
    done = (await rent(client, renter, done_book, duration=4)).json()["data"]
    await client.post(f"/api/rentals/{done['id']}/return", headers=renter["headers"])

    overdue = (await client.get("/api/rentals/overdue", headers=renter["headers"])).json()["data"]
    assert [r["id"] for r in overdue] == [late["id"]]
    assert overdue[0]["isOverdue"] is True

    stats = (await client.get("/api/rentals/stats", headers=renter["headers"])).json()["data"]
    assert stats["totalRentals"] == 3
    assert stats["activeRentals"] == 2
    assert stats["completedRentals"] == 1
    assert stats["cancelledRentals"] == 0
    assert stats["overdueRentals"] == 1
    assert stats["averageDuration"] == 12.0


@pytest.mark.asyncio
async def test_list_rentals_filters(client, make_user, make_book):
    owner = await make_user()
    renter = await make_user(first_name="Bruno")
    other = await make_user(first_name="Chloe")
    dune = await make_book(owner, title="Dune")
    emma = await make_book(owner, title="Emma")
    await rent(client, renter, dune)
    r2 = (await rent(client, other, emma)).json()["data"]
    await client.post(f"/api/rentals/{r2['id']}/cancel", headers=other["headers"])

    by_status = await client.get("/api/rentals", params={"status": "CANCELLED"}, headers=owner["headers"])
    items = by_status.json()["data"]["items"]
    assert [r["id"] for r in items] == [r2["id"]]

    by_search = await client.get("/api/rentals", params={"search": "bruno"}, headers=owner["headers"])
    assert [r["book"]["title"] for r in by_search.json()["data"]["items"]] == ["Dune"]

    mine = await client.get("/api/rentals/user", headers=other["headers"])
    assert [r["id"] for r in mine.json()["data"]] == [r2["id"]]


@pytest.mark.asyncio
@pytest.mark.parametrize("duration,status", [(0, 422), (1, 201), (365, 201), (366, 422)])
async def test_duration_bounds(client, make_user, make_book, duration, status):
    owner = await make_user()
    renter = await make_user()
    book = await make_book(owner)
    resp = await rent(client, renter, book, duration=duration)
    assert resp.status_code == status
