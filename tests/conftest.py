"""Shared fixtures: in-memory database, app client, user and book helpers."""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("BOOKINEO_ENV", "test")
os.environ.setdefault("BOOKINEO_RATE_LIMIT_ENABLED", "false")

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import verticals.bookineo.models.db_models  # noqa: E402,F401
from api.main import app  # noqa: E402
from core.database import build_engine, get_session  # noqa: E402
from core.models.base import Base  # noqa: E402
from patterns.domain_config import (  # noqa: E402
    BookineoConfig,
    RateLimitConfig,
    SessionConfig,
)
from verticals.bookineo.config import get_config  # noqa: E402
from verticals.bookineo.throttling import limiter  # noqa: E402

PASSWORD = "Str0ng!Pass"


@pytest_asyncio.fixture
async def engine():
    engine = build_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def test_config():
    return BookineoConfig(
        environment="test",
        session=SessionConfig(secret="test-secret", bcrypt_rounds=4),
        rate_limits=RateLimitConfig(enabled=False),
    )


@pytest_asyncio.fixture
async def client(session_factory, test_config):
    async def override_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_config] = lambda: test_config
    limiter.reset()

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"User-Agent": "bookineo-tests/1.0"},
    ) as c:
        yield c

    app.dependency_overrides.clear()
    limiter.reset()


@pytest.fixture
def use_config():
    """Swap the app configuration for the rest of the test."""

    def apply(config: BookineoConfig) -> None:
        app.dependency_overrides[get_config] = lambda: config

    return apply


@pytest.fixture
def make_user(client):
    """Sign up and log in a user. Returns ``{"id", "email", "headers"}``.

    The session travels as a Bearer header so several users can act in one
    test; the client's cookie jar is cleared after each login.
    """
    counter = {"n": 0}

    async def create(email=None, first_name="Alice", last_name="Martin"):
        counter["n"] += 1
        email = email or f"user{counter['n']}@example.com"
        resp = await client.post(
            "/api/auth/signup",
            json={
                "email": email,
                "password": PASSWORD,
                "firstName": first_name,
                "lastName": last_name,
            },
        )
        assert resp.status_code == 201, resp.text
        user_id = resp.json()["data"]["id"]

        login = await client.post("/api/auth/login", json={"email": email, "password": PASSWORD})
        assert login.status_code == 200, login.text
        token = login.cookies["bookineo-session"]
        client.cookies.clear()
        return {"id": user_id, "email": email, "headers": {"Authorization": f"Bearer {token}"}}

    return create


@pytest.fixture
def make_book(client):
    """List a book as ``owner``. Returns the book JSON."""
    counter = {"n": 0}

    async def create(owner, **fields):
        counter["n"] += 1
        payload = {
            "title": f"Book {counter['n']}",
            "author": "Jane Doe",
            "price": 10.0,
            "categoryName": "Fiction",
        }
        payload.update(fields)
        resp = await client.post("/api/books", json=payload, headers=owner["headers"])
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]

    return create
