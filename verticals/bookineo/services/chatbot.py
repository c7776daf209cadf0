"""Chat assistant: intent matching, entity extraction and LLM handoff.

Two tiers:
1. Rule-based replies for intents that can be answered from data
   (book search, the caller's rentals, how-to and help).
2. A local language model for everything else, when one is configured.
   Any model failure falls back to the rule-based reply.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

import verticals.bookineo.renderer  # noqa: F401
from core.agents.router import IntentRoute, IntentRouter
from core.database import get_session
from core.engine.template_engine import TemplateEngine
from core.llm.client import ChatMessage, LLMUnavailable, LocalLLMClient
from patterns.domain_config import BookineoConfig
from verticals.bookineo.auth import AuthContext
from verticals.bookineo.config import get_config
from verticals.bookineo.models.schemas import BookFilters
from verticals.bookineo.services.books import BookService
from verticals.bookineo.services.rentals import RentalService

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Intents
# ---------------------------------------------------------------------------

class Intent(str, Enum):
    MY_RENTALS = "my_rentals"
    SEARCH_BOOKS = "search_books"
    RENTAL_INFO = "rental_info"
    HELP = "help"
    GENERAL = "general"


def build_intent_router() -> IntentRouter:
    """Ordered matchers: own rentals first, then search, how-to, help."""
    router = IntentRouter(default_route=Intent.GENERAL.value)
    router.register(IntentRoute(
        name=Intent.MY_RENTALS.value,
        description="The caller's own rentals",
        keywords=["mes location", "mes livre", "en cours"],
        patterns=[r"\bmy\s+(?:rentals?|books?|loans?)\b"],
        priority=40,
    ))
    router.register(IntentRoute(
        name=Intent.SEARCH_BOOKS.value,
        description="Find books by title, author, category or rating",
        keywords=["livre", "bouquin", "cherche", "trouve", "note", "étoile"],
        patterns=[
            r"\b(?:rating|rated)\b",
            r"\b(?:find|search|looking\s+for)\b",
            r"\bstars?\b",
            r"\bbooks?\s+(?:by|about|from|of|in)\b",
        ],
        priority=30,
    ))
    router.register(IntentRoute(
        name=Intent.RENTAL_INFO.value,
        description="How renting works",
        keywords=["louer", "location", "emprunter"],
        patterns=[r"\b(?:rent|renting|borrow)\b"],
        priority=20,
    ))
    router.register(IntentRoute(
        name=Intent.HELP.value,
        description="What the assistant can do",
        keywords=["aide", "comment"],
        patterns=[r"\bhelp\b", r"\bhow\s+(?:do|to)\b"],
        priority=10,
    ))
    return router


# ---------------------------------------------------------------------------
# Entity extraction
# ---------------------------------------------------------------------------

_NUMBER = r"(\d+(?:[.,]\d+)?)"

RATING_PATTERNS = [
    re.compile(r"(?:note|rating|rated)\s+(?:de\s+|of\s+)?" + _NUMBER, re.IGNORECASE),
    re.compile(_NUMBER + r"\s*(?:étoiles?|stars?)", re.IGNORECASE),
]

_NAME = r"([A-ZÀ-Ý][\wÀ-ÿ'\-]*(?:\s+[A-ZÀ-Ý][\wÀ-ÿ'\-]*)*)"

AUTHOR_PATTERNS = [
    re.compile(r"\b(?i:written\s+by|écrit\s+par|de\s+l'auteur|auteur|author|by|par)\s+" + _NAME),
    re.compile(r"\b(?i:livres?\s+de|books?\s+of)\s+" + _NAME),
]

AUTHOR_STOPWORDS = {"avec", "une", "les", "des", "sur", "dans", "the", "a", "an", "with"}

CATEGORIES = sorted(
    [
        "fiction", "roman", "policier", "science-fiction", "sci-fi", "fantasy",
        "fantastique", "biography", "biographie", "histoire", "history", "historique",
        "thriller", "mystery", "mystère", "romance", "aventure", "adventure",
        "philosophie", "philosophy", "essai", "poésie", "poetry", "théâtre",
        "jeunesse", "children", "enfant", "bd", "bande dessinée", "manga", "comics",
    ],
    key=len,
    reverse=True,
)

TITLE_PATTERN = re.compile(r'["«“]([^"»”]+)["»”]')

SEARCH_NOISE = re.compile(
    r"\b(?:cherche|trouve|donne|moi|les?|des?|un|une|avec|sur|dans|livres?|bouquins?|"
    r"find|search|for|me|books?|a|an|the|some|looking|i|am|please)\b",
    re.IGNORECASE,
)


def extract_search_entities(message: str) -> dict[str, str]:
    """Pull title, author, category, rating and free-text search from a message."""
    entities: dict[str, str] = {}
    lower = message.lower()

    for pattern in RATING_PATTERNS:
        match = pattern.search(message)
        if match:
            entities["rating"] = match.group(1).replace(",", ".")
            break

    for pattern in AUTHOR_PATTERNS:
        match = pattern.search(message)
        if match:
            author = match.group(1).strip()
            if author.lower() not in AUTHOR_STOPWORDS:
                entities["author"] = author
                break

    for category in CATEGORIES:
        if re.search(rf"(?<![\w-]){re.escape(category)}(?![\w-])", lower):
            entities["category"] = category
            break

    match = TITLE_PATTERN.search(message)
    if match:
        entities["title"] = match.group(1).strip()

    if not entities:
        terms = re.sub(r"\s+", " ", SEARCH_NOISE.sub(" ", message)).strip(" ?!.,")
        if len(terms) > 2:
            entities["search"] = terms

    return entities


# ---------------------------------------------------------------------------
# Replies
# ---------------------------------------------------------------------------

@dataclass
class ChatAction:
    type: str  # view_book | search_books | view_rentals | external_link
    label: str
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "label": self.label, "payload": self.payload}


@dataclass
class ChatReply:
    intent: Intent
    message: str
    data: Optional[dict[str, Any]] = None
    actions: list[ChatAction] = field(default_factory=list)
    entities: dict[str, str] = field(default_factory=dict)

    @property
    def is_actionable(self) -> bool:
        return bool(self.data) or bool(self.actions)


SYSTEM_PROMPTS = {
    "books": (
        "You are the Bookineo assistant for books. You help users search books by "
        "title, author or category, understand availability, and list or edit "
        "their own books. Answer concisely."
    ),
    "rentals": (
        "You are the Bookineo assistant for rentals. You help users understand "
        "how renting works, manage ongoing rentals, returns and durations. "
        "Answer concisely."
    ),
    "account": (
        "You are the Bookineo assistant for accounts. You help users edit their "
        "profile, use messaging and keep their account secure. Answer concisely."
    ),
    "general": (
        "You are the virtual assistant of Bookineo, a peer-to-peer book rental "
        "platform. You help with finding and renting books, account management, "
        "messaging between users and technical issues. Be friendly and concise."
    ),
}


class ChatbotService:
    """Answer chat messages for an authenticated user."""

    def __init__(
        self,
        session: AsyncSession,
        config: BookineoConfig,
        llm: Optional[LocalLLMClient] = None,
    ):
        self.config = config
        self.books = BookService(session, config)
        self.rentals = RentalService(session, config)
        self.router = build_intent_router()
        self.llm = llm

    def classify(self, message: str) -> Intent:
        return Intent(self.router.route(message).route_name)

    async def reply(self, message: str, user: AuthContext) -> ChatReply:
        """Rule-based reply, no model involved."""
        intent = self.classify(message)

        if intent == Intent.SEARCH_BOOKS:
            return await self._search(message)
        if intent == Intent.MY_RENTALS:
            return await self._my_rentals(user)
        if intent == Intent.RENTAL_INFO:
            payload = {
                "min_days": self.config.rental.min_duration_days,
                "max_days": self.config.rental.max_duration_days,
            }
            return ChatReply(
                intent=intent,
                message=TemplateEngine.render(intent.value, payload),
                actions=[ChatAction("external_link", "Start browsing", {"url": "/"})],
            )
        if intent == Intent.HELP:
            return ChatReply(
                intent=intent,
                message=TemplateEngine.render(intent.value, {}),
                actions=[
                    ChatAction("external_link", "Home page", {"url": "/"}),
                    ChatAction("external_link", "My profile", {"url": "/profile"}),
                ],
            )
        return ChatReply(intent=intent, message=TemplateEngine.render(intent.value, {}))

    async def respond(self, message: str, context: str, user: AuthContext) -> dict[str, Any]:
        """Full pipeline: rule reply, then model handoff, then fallback."""
        context = context if context in SYSTEM_PROMPTS else "general"
        rule_reply = await self.reply(message, user)

        body: dict[str, Any] = {
            "context": context,
            "intent": rule_reply.intent.value,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "bookData": rule_reply.data,
            "actions": [a.to_dict() for a in rule_reply.actions],
        }

        if rule_reply.is_actionable:
            return {**body, "message": rule_reply.message, "intelligent": True}

        if self.llm is not None:
            try:
                text = await self.llm.complete([
                    ChatMessage("system", SYSTEM_PROMPTS[context]),
                    ChatMessage("user", message),
                ])
                return {**body, "message": text, "enhanced": True}
            except LLMUnavailable as exc:
                logger.warning("LLM unavailable, using rule-based reply: %s", exc)

        return {**body, "message": rule_reply.message, "fallback": True}

    # -- Intent handlers --

    async def _search(self, message: str) -> ChatReply:
        entities = extract_search_entities(message)
        shown = self.config.chatbot.max_books_in_reply

        filters = BookFilters(category=entities.get("category"))
        if entities.get("title"):
            filters.search = entities["title"]
        elif entities.get("author"):
            filters.author = entities["author"]
        elif entities.get("search"):
            filters.search = entities["search"]

        page = await self.books.list_books(filters, page=1, limit=(shown + 2) * 2)
        books = [b.summary() | {"stars": b.stars} for b in page.items]
        total = page.total

        if entities.get("rating"):
            target = float(entities["rating"])
            books = [b for b in books if b["stars"] and abs(b["stars"] - target) < 0.1]
            total = len(books)

        payload = {"books": books[:shown], "total": total}
        message_text = TemplateEngine.render(Intent.SEARCH_BOOKS.value, payload, entities)

        if not books:
            return ChatReply(
                intent=Intent.SEARCH_BOOKS,
                message=message_text,
                actions=[ChatAction("external_link", "See all books", {"url": "/"})],
                entities=entities,
            )

        actions = [
            ChatAction("view_book", f'See "{b["title"]}"', {"bookId": b["id"]})
            for b in books[:shown]
        ]
        if total > shown:
            actions.append(ChatAction("search_books", "See all results", {"filters": entities}))

        return ChatReply(
            intent=Intent.SEARCH_BOOKS,
            message=message_text,
            data=payload,
            actions=actions,
            entities=entities,
        )

    async def _my_rentals(self, user: AuthContext) -> ChatReply:
        rentals = await self.rentals.list_user_rentals(user.user_id)
        items = [r.to_dict() for r in rentals[:5]]
        message_text = TemplateEngine.render(Intent.MY_RENTALS.value, {"rentals": items})

        if not items:
            return ChatReply(
                intent=Intent.MY_RENTALS,
                message=message_text,
                actions=[ChatAction("external_link", "Browse books", {"url": "/"})],
            )
        return ChatReply(
            intent=Intent.MY_RENTALS,
            message=message_text,
            data={"rentals": items},
            actions=[ChatAction("view_rentals", "Manage my rentals")],
        )


# ---------------------------------------------------------------------------
# FastAPI dependency factory
# ---------------------------------------------------------------------------

def get_llm_client(config: BookineoConfig = Depends(get_config)) -> Optional[LocalLLMClient]:
    chat = config.chatbot
    if not chat.llm_url:
        return None
    return LocalLLMClient(
        base_url=chat.llm_url,
        model=chat.llm_model,
        timeout=chat.llm_timeout_seconds,
        temperature=chat.temperature,
        max_tokens=chat.max_tokens,
    )


def get_chatbot_service(
    session: AsyncSession = Depends(get_session),
    config: BookineoConfig = Depends(get_config),
    llm: Optional[LocalLLMClient] = Depends(get_llm_client),
) -> ChatbotService:
    """FastAPI dependency for ChatbotService."""
    return ChatbotService(session, config, llm)
