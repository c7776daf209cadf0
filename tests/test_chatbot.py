"""Test the chat assistant: intents, entities, rendering and the model handoff."""
from datetime import datetime, timedelta, timezone

import httpx
import pytest
from sqlalchemy import update

from api.main import app
from core.engine.template_engine import TemplateEngine, fmt_money, fmt_stars, plural
from core.llm.client import LocalLLMClient
from verticals.bookineo.auth import AuthContext
from verticals.bookineo.models.db_models import Book
from verticals.bookineo.services.chatbot import (
    ChatbotService,
    Intent,
    build_intent_router,
    extract_search_entities,
    get_llm_client,
)


def classify(message):
    return build_intent_router().route(message).route_name


def llm_returning(answer=None, status=200):
    def handler(request: httpx.Request) -> httpx.Response:
        if status != 200:
            return httpx.Response(status, json={"error": "boom"})
        return httpx.Response(200, json={"choices": [{"message": {"content": answer}}]})

    return LocalLLMClient(
        base_url="http://llm.local", model="test-model", transport=httpx.MockTransport(handler)
    )


def caller():
    return AuthContext(
        user_id="u-1",
        email="reader@example.com",
        first_name="Lea",
        last_name=None,
        remember_me=False,
        expires_at=datetime.now(timezone.utc) + timedelta(days=1),
    )


# ---------------------------------------------------------------------------
# Intent classification
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "message,intent",
    [
        ("Show my rentals", Intent.MY_RENTALS),
        ("Quelles sont mes locations en cours ?", Intent.MY_RENTALS),
        ("find books by Victor Hugo", Intent.SEARCH_BOOKS),
        ("4 stars fantasy", Intent.SEARCH_BOOKS),
        ("Je cherche un roman", Intent.SEARCH_BOOKS),
        ("how do I rent a book?", Intent.RENTAL_INFO),
        ("Can I borrow something?", Intent.RENTAL_INFO),
        ("help", Intent.HELP),
        ("What's the weather like?", Intent.GENERAL),
        ("Let's start over", Intent.GENERAL),
        ("Show my books", Intent.MY_RENTALS),
        ("Any book rated 5?", Intent.SEARCH_BOOKS),
        ("How to get started?", Intent.HELP),
        ("I am generating a report", Intent.GENERAL),
        ("That was helpful", Intent.GENERAL),
        ("Open my bookmarks", Intent.GENERAL),
        ("Somehow towels", Intent.GENERAL),
    ],
)
def test_classify(message, intent):
    assert classify(message) == intent.value


# ---------------------------------------------------------------------------
# Entity extraction
# ---------------------------------------------------------------------------

def test_extract_author():
    assert extract_search_entities("find books by Victor Hugo") == {"author": "Victor Hugo"}


def test_extract_rating_and_category():
    assert extract_search_entities("4 stars fantasy") == {"rating": "4", "category": "fantasy"}


def test_extract_french_rating_with_comma():
    assert extract_search_entities("un livre avec une note de 4,5")["rating"] == "4.5"


def test_extract_quoted_title():
    assert extract_search_entities('Do you have "Le Petit Prince"?') == {"title": "Le Petit Prince"}


def test_extract_longest_category_wins():
    assert extract_search_entities("any science-fiction?")["category"] == "science-fiction"


def test_extract_lowercase_after_by_is_not_an_author():
    assert "author" not in extract_search_entities("search by the way")


def test_extract_free_text_when_nothing_else():
    assert extract_search_entities("find me dragons please") == {"search": "dragons"}


def test_extract_nothing_from_noise():
    assert extract_search_entities("find me a book") == {}


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def test_formatting_helpers():
    assert fmt_money(12.5) == "12.50 €"
    assert fmt_money(None) == "N/A"
    assert fmt_stars(4.0) == "4/5 stars"
    assert fmt_stars(None) == ""
    assert plural(1, "book") == "1 book"
    assert plural(3, "book") == "3 books"


def test_every_intent_has_a_renderer():
    assert {i.value for i in Intent} <= set(TemplateEngine.registered_kinds())


def test_render_search_results():
    books = [
        {"title": "Les Misérables", "author": "Victor Hugo", "price": 5, "status": "AVAILABLE", "stars": 4.5},
        {"title": "Notre-Dame", "author": "Victor Hugo", "price": 4, "status": "RENTED", "stars": None},
    ]
    text = TemplateEngine.render("search_books", {"books": books, "total": 5}, {"author": "Victor Hugo"})
    assert text.startswith("I found 5 books:")
    assert "**Les Misérables** by Victor Hugo (4.5/5 stars), 5.00 €, available" in text
    assert "**Notre-Dame** by Victor Hugo, 4.00 €, rented" in text
    assert "And 2 more" in text


def test_render_search_empty_mentions_criteria():
    text = TemplateEngine.render(
        "search_books", {"books": [], "total": 0}, {"author": "Nobody", "category": "poetry"}
    )
    assert 'author "Nobody"' in text
    assert 'category "poetry"' in text


def test_render_unregistered_kind_uses_generic():
    text = TemplateEngine.render("unknown_kind", {"count": 2, "items": ["a", "b"]})
    assert "**count:** 2" in text
    assert "**items:** 2 items" in text


def test_render_rental_info_uses_bounds():
    text = TemplateEngine.render("rental_info", {"min_days": 1, "max_days": 365})
    assert "(1-365 days)" in text


# ---------------------------------------------------------------------------
# Model handoff
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_general_question_is_enhanced_by_model(session, test_config):
    service = ChatbotService(session, test_config, llm=llm_returning("Bookineo is a rental platform."))
    reply = await service.respond("What's the weather like?", "general", caller())
    assert reply["enhanced"] is True
    assert reply["message"] == "Bookineo is a rental platform."
    assert reply["intent"] == "general"


@pytest.mark.asyncio
async def test_model_failure_falls_back(session, test_config):
    service = ChatbotService(session, test_config, llm=llm_returning(status=500))
    reply = await service.respond("What's the weather like?", "general", caller())
    assert reply["fallback"] is True
    assert "find books" in reply["message"]


@pytest.mark.asyncio
async def test_rule_reply_skips_model(session, test_config):
    service = ChatbotService(session, test_config, llm=llm_returning("should not be used"))
    reply = await service.respond("help", "general", caller())
    assert reply["intelligent"] is True
    assert reply["message"].startswith("I can help you with")
    assert len(reply["actions"]) == 2


@pytest.mark.asyncio
async def test_unknown_context_becomes_general(session, test_config):
    service = ChatbotService(session, test_config)
    reply = await service.respond("What's up?", "weather", caller())
    assert reply["context"] == "general"
    assert reply["fallback"] is True


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_chat_search_by_author(client, make_user, make_book):
    user = await make_user()
    await make_book(user, title="Les Misérables", author="Victor Hugo")
    await make_book(user, title="Notre-Dame de Paris", author="Victor Hugo")
    await make_book(user, title="Emma", author="Jane Austen")

    resp = await client.post(
        "/api/chatbot", json={"message": "find books by Victor Hugo"}, headers=user["headers"]
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["intent"] == "search_books"
    assert data["intelligent"] is True
    assert data["bookData"]["total"] == 2
    assert {b["title"] for b in data["bookData"]["books"]} == {"Les Misérables", "Notre-Dame de Paris"}
    assert all(a["type"] == "view_book" for a in data["actions"])


@pytest.mark.asyncio
async def test_chat_search_by_rating(client, session_factory, make_user, make_book):
    user = await make_user()
    good = await make_book(user, title="Good", categoryName="Fantasy")
    okay = await make_book(user, title="Okay", categoryName="Fantasy")
    async with session_factory() as s:
        await s.execute(update(Book).where(Book.id == good["id"]).values(stars=4.0))
        await s.execute(update(Book).where(Book.id == okay["id"]).values(stars=3.0))
        await s.commit()

    resp = await client.post("/api/chatbot", json={"message": "4 stars fantasy"}, headers=user["headers"])
    data = resp.json()["data"]
    assert [b["title"] for b in data["bookData"]["books"]] == ["Good"]
    assert data["bookData"]["total"] == 1


@pytest.mark.asyncio
async def test_chat_search_without_results(client, make_user):
    user = await make_user()
    resp = await client.post(
        "/api/chatbot", json={"message": "find books by Nobody Known"}, headers=user["headers"]
    )
    data = resp.json()["data"]
    assert data["bookData"] is None
    assert data["intelligent"] is True
    assert data["actions"][0]["payload"] == {"url": "/"}


@pytest.mark.asyncio
async def test_chat_my_rentals(client, make_user, make_book):
    owner = await make_user()
    renter = await make_user()
    book = await make_book(owner, title="Dune")
    await client.post("/api/rentals", json={"bookId": book["id"], "duration": 5}, headers=renter["headers"])

    resp = await client.post("/api/chatbot", json={"message": "show my rentals"}, headers=renter["headers"])
    data = resp.json()["data"]
    assert data["intent"] == "my_rentals"
    assert data["bookData"]["rentals"][0]["book"]["title"] == "Dune"
    assert "**Dune**" in data["message"]


@pytest.mark.asyncio
async def test_chat_general_without_model_falls_back(client, make_user):
    user = await make_user()
    resp = await client.post("/api/chatbot", json={"message": "What's the weather like?"}, headers=user["headers"])
    data = resp.json()["data"]
    assert data["fallback"] is True
    assert data["intent"] == "general"


@pytest.mark.asyncio
async def test_chat_general_with_model(client, make_user):
    user = await make_user()
    app.dependency_overrides[get_llm_client] = lambda: llm_returning("Sunny with a chance of books.")
    resp = await client.post("/api/chatbot", json={"message": "What's the weather like?"}, headers=user["headers"])
    data = resp.json()["data"]
    assert data["enhanced"] is True
    assert data["message"] == "Sunny with a chance of books."


@pytest.mark.asyncio
async def test_chat_message_validation(client, make_user):
    user = await make_user()
    empty = await client.post("/api/chatbot", json={"message": "   "}, headers=user["headers"])
    assert empty.status_code == 400
    assert "message" in empty.json()["errors"]

    too_long = await client.post("/api/chatbot", json={"message": "a" * 501}, headers=user["headers"])
    assert too_long.status_code == 400


@pytest.mark.asyncio
async def test_chat_requires_auth(client):
    resp = await client.post("/api/chatbot", json={"message": "help"})
    assert resp.status_code == 401
