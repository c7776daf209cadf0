"""Test signup, login, sessions and account routes."""
from datetime import datetime, timedelta, timezone

import pytest

PASSWORD = "Str0ng!Pass"

SIGNUP = {"email": "Reader@Example.com", "password": PASSWORD, "firstName": "Lea", "lastName": "Dupont"}


# ---------------------------------------------------------------------------
# Signup
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_signup_normalizes_email_and_hides_password(client):
    resp = await client.post("/api/auth/signup", json=SIGNUP)
    assert resp.status_code == 201
    user = resp.json()["data"]
    assert user["email"] == "reader@example.com"
    assert user["fullName"] == "Lea Dupont"
    assert "password" not in user


@pytest.mark.asyncio
async def test_signup_duplicate_email(client):
    await client.post("/api/auth/signup", json=SIGNUP)
    resp = await client.post("/api/auth/signup", json={**SIGNUP, "email": "reader@example.com"})
    assert resp.status_code == 409
    assert "email" in resp.json()["errors"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "override,field",
    [
        ({"email": "not-an-email"}, "email"),
        ({"password": "short!A"}, "password"),
        ({"password": "nouppercase!"}, "password"),
        ({"password": "NoSpecial123"}, "password"),
        ({"firstName": "L"}, "firstName"),
        ({"lastName": "Dupont42"}, "lastName"),
        ({"birthDate": "2999-01-01"}, "birthDate"),
    ],
)
async def test_signup_field_errors(client, override, field):
    resp = await client.post("/api/auth/signup", json={**SIGNUP, **override})
    assert resp.status_code == 422
    assert field in resp.json()["errors"]


# ---------------------------------------------------------------------------
# Login & session
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_login_sets_cookie_and_session_works(client):
    await client.post("/api/auth/signup", json=SIGNUP)
    resp = await client.post(
        "/api/auth/login", json={"email": "reader@example.com", "password": PASSWORD}
    )
    assert resp.status_code == 200
    assert "bookineo-session" in resp.cookies
    set_cookie = resp.headers["set-cookie"].lower()
    assert "httponly" in set_cookie
    assert "samesite=lax" in set_cookie

    token = resp.cookies["bookineo-session"]
    me = await client.get("/api/user/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["data"]["email"] == "reader@example.com"


@pytest.mark.asyncio
async def test_login_lifetime_depends_on_remember_me(client):
    await client.post("/api/auth/signup", json=SIGNUP)
    now = datetime.now(timezone.utc)

    short = await client.post(
        "/api/auth/login", json={"email": SIGNUP["email"], "password": PASSWORD}
    )
    expires = datetime.fromisoformat(short.json()["data"]["expiresAt"])
    assert timedelta(hours=23) < expires - now <= timedelta(days=1, minutes=1)
    assert "bookineo-remember-me" not in short.cookies

    long = await client.post(
        "/api/auth/login",
        json={"email": SIGNUP["email"], "password": PASSWORD, "rememberMe": True},
    )
    expires = datetime.fromisoformat(long.json()["data"]["expiresAt"])
    assert timedelta(days=29) < expires - now <= timedelta(days=30, minutes=1)
    assert long.cookies["bookineo-remember-me"] == "true"


@pytest.mark.asyncio
async def test_login_failures_are_generic(client):
    await client.post("/api/auth/signup", json=SIGNUP)
    wrong_password = await client.post(
        "/api/auth/login", json={"email": SIGNUP["email"], "password": "Wrong!Pass1"}
    )
    unknown_email = await client.post(
        "/api/auth/login", json={"email": "ghost@example.com", "password": PASSWORD}
    )
    assert wrong_password.status_code == 401
    assert unknown_email.status_code == 401
    assert wrong_password.json()["message"] == unknown_email.json()["message"]


@pytest.mark.asyncio
async def test_invalid_token_rejected(client):
    resp = await client.get("/api/user/me", headers={"Authorization": "Bearer forged.token"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_remember_me_toggle(client, make_user):
    user = await make_user()
    status = await client.get("/api/auth/remember-me", headers=user["headers"])
    assert status.json()["data"]["remembered"] is False

    resp = await client.post("/api/auth/remember-me", json={"remember": True}, headers=user["headers"])
    assert resp.status_code == 200
    assert resp.json()["data"]["remembered"] is True
    assert resp.cookies["bookineo-remember-me"] == "true"


@pytest.mark.asyncio
async def test_logout_clears_cookies(client):
    resp = await client.post("/api/auth/logout")
    assert resp.status_code == 200
    cookies = resp.headers.get_list("set-cookie")
    assert any(c.startswith("bookineo-session=") for c in cookies)
    assert any(c.startswith("bookineo-remember-me=") for c in cookies)


@pytest.mark.asyncio
async def test_session_of_deleted_user_is_rejected(client, make_user):
    user = await make_user()
    resp = await client.delete(f"/api/users/{user['id']}", headers=user["headers"])
    assert resp.status_code == 200
    me = await client.get("/api/user/me", headers=user["headers"])
    assert me.status_code == 401


# ---------------------------------------------------------------------------
# Account & directory
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_profile_update(client, make_user):
    user = await make_user()
    resp = await client.put(
        "/api/user/profile",
        json={"firstName": "Marie-Anne", "birthDate": "1990-04-12"},
        headers=user["headers"],
    )
    assert resp.status_code == 200
    profile = resp.json()["data"]
    assert profile["firstName"] == "Marie-Anne"
    assert profile["birthDate"] == "1990-04-12"

    unknown_field = await client.put(
        "/api/user/profile", json={"email": "new@example.com"}, headers=user["headers"]
    )
    assert unknown_field.status_code == 422


@pytest.mark.asyncio
async def test_change_password(client, make_user):
    user = await make_user()
    wrong = await client.put(
        "/api/user/password",
        json={"currentPassword": "Nope!Nope1", "newPassword": "N3w!Password"},
        headers=user["headers"],
    )
    assert wrong.status_code == 401

    weak = await client.put(
        "/api/user/password",
        json={"currentPassword": PASSWORD, "newPassword": "weak"},
        headers=user["headers"],
    )
    assert weak.status_code == 422

    ok = await client.put(
        "/api/user/password",
        json={"currentPassword": PASSWORD, "newPassword": "N3w!Password"},
        headers=user["headers"],
    )
    assert ok.status_code == 200

    login = await client.post(
        "/api/auth/login", json={"email": user["email"], "password": "N3w!Password"}
    )
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_user_stats(client, make_user, make_book):
    owner = await make_user()
    renter = await make_user()
    book = await make_book(owner)
    await make_book(owner)
    await client.post("/api/rentals", json={"bookId": book["id"], "duration": 3}, headers=renter["headers"])
    await client.post(
        "/api/messages", json={"receiverId": owner["id"], "content": "Thanks!"}, headers=renter["headers"]
    )

    stats = (await client.get("/api/user/stats", headers=owner["headers"])).json()["data"]
    assert stats["booksOwned"] == 2
    assert stats["booksRentedOut"] == 1
    assert stats["unreadMessages"] == 1

    renter_stats = (await client.get("/api/user/stats", headers=renter["headers"])).json()["data"]
    assert renter_stats["activeRentals"] == 1
    assert renter_stats["totalRentals"] == 1


@pytest.mark.asyncio
async def test_user_directory(client, make_user):
    viewer = await make_user(first_name="Zoe")
    await make_user(first_name="Adam", email="adam@example.com")
    await make_user(first_name="Maya")

    resp = await client.get("/api/users", headers=viewer["headers"])
    names = [u["firstName"] for u in resp.json()["data"]["items"]]
    assert names == ["Adam", "Maya", "Zoe"]
    assert all("password" not in u for u in resp.json()["data"]["items"])

    search = await client.get("/api/users", params={"search": "adam@"}, headers=viewer["headers"])
    assert [u["email"] for u in search.json()["data"]["items"]] == ["adam@example.com"]


@pytest.mark.asyncio
async def test_delete_user_rules(client, make_user, make_book):
    owner = await make_user()
    renter = await make_user()
    book = await make_book(owner)
    rental = (await client.post(
        "/api/rentals", json={"bookId": book["id"], "duration": 3}, headers=renter["headers"]
    )).json()["data"]

    other = await client.delete(f"/api/users/{owner['id']}", headers=renter["headers"])
    assert other.status_code == 403

    busy = await client.delete(f"/api/users/{renter['id']}", headers=renter["headers"])
    assert busy.status_code == 409

    await client.post(f"/api/rentals/{rental['id']}/return", headers=renter["headers"])
    done = await client.delete(f"/api/users/{renter['id']}", headers=renter["headers"])
    assert done.status_code == 200

    # Owner deleting their account leaves their books in the catalog without an owner
    gone = await client.delete(f"/api/users/{owner['id']}", headers=owner["headers"])
    assert gone.status_code == 200
    detail = (await client.get(f"/api/books/{book['id']}")).json()["data"]
    assert detail["ownerId"] is None


@pytest.mark.asyncio
async def test_public_profile_and_rentals(client, make_user, make_book):
    owner = await make_user()
    renter = await make_user(first_name="Bruno")
    book = await make_book(owner, title="Dune")
    await client.post("/api/rentals", json={"bookId": book["id"], "duration": 3}, headers=renter["headers"])

    profile = await client.get(f"/api/users/{renter['id']}", headers=owner["headers"])
    assert profile.json()["data"]["firstName"] == "Bruno"

    rentals = await client.get(f"/api/users/{renter['id']}/rentals", headers=owner["headers"])
    assert [r["book"]["title"] for r in rentals.json()["data"]] == ["Dune"]

    own = await client.get("/api/user/profile", headers=renter["headers"])
    assert own.json()["data"]["email"] == renter["email"]

    missing = await client.get("/api/users/nobody/rentals", headers=owner["headers"])
    assert missing.status_code == 404
