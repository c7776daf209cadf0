"""Template engine renderers for the chat assistant.

Registers one renderer per intent. Importing this module is enough;
the chatbot service imports it at load time.
"""

from typing import Any, Dict

from core.engine.template_engine import (
    fmt_date,
    fmt_money,
    fmt_stars,
    plural,
    register_renderer,
)

MAX_LISTED = 3


def _criteria(entities: Dict[str, Any]) -> str:
    parts = []
    if entities.get("title"):
        parts.append(f'title "{entities["title"]}"')
    if entities.get("author"):
        parts.append(f'author "{entities["author"]}"')
    if entities.get("category"):
        parts.append(f'category "{entities["category"]}"')
    if entities.get("rating"):
        parts.append(f'a rating of {entities["rating"]} stars')
    if entities.get("search"):
        parts.append(f'"{entities["search"]}"')
    return f" matching {', '.join(parts)}" if parts else ""


def render_search(payload: Dict[str, Any], entities: Dict[str, Any]) -> str:
    books = payload.get("books", [])
    total = payload.get("total", len(books))
    if not books:
        return (
            f"I couldn't find any book{_criteria(entities)}. "
            "Try other keywords or browse the full catalog."
        )

    lines = [f"I found {plural(total, 'book')}:\n"]
    for b in books[:MAX_LISTED]:
        stars = fmt_stars(b.get("stars"))
        stars = f" ({stars})" if stars else ""
        status = "available" if b["status"] == "AVAILABLE" else "rented"
        lines.append(
            f"- **{b['title']}** by {b['author']}{stars}, {fmt_money(b['price'])}, {status}"
        )
    if total > MAX_LISTED:
        lines.append(f"\n*And {total - MAX_LISTED} more...*")
    return "\n".join(lines)


def render_my_rentals(payload: Dict[str, Any], entities: Dict[str, Any]) -> str:
    rentals = payload.get("rentals", [])
    if not rentals:
        return "You have no rentals right now. Browse the catalog to find your next book!"

    lines = ["Your rentals:\n"]
    for r in rentals:
        if r.get("isOverdue"):
            marker = "OVERDUE"
        elif r["status"] == "ACTIVE":
            marker = "active"
        else:
            marker = r["status"].lower()
        title = (r.get("book") or {}).get("title", "Book")
        lines.append(f"- **{title}** until {fmt_date(r['endDate'])} ({marker})")
    return "\n".join(lines)


def render_rental_info(payload: Dict[str, Any], entities: Dict[str, Any]) -> str:
    return (
        "To rent a book on Bookineo:\n\n"
        "1. Find an available book\n"
        f"2. Add it to your cart and pick a duration ({payload.get('min_days', 1)}"
        f"-{payload.get('max_days', 365)} days)\n"
        "3. Check out\n"
        "4. Enjoy your reading!\n\n"
        "Books must be returned by their end date."
    )


def render_help(payload: Dict[str, Any], entities: Dict[str, Any]) -> str:
    return (
        "I can help you with:\n\n"
        '- **Finding books**: "find books by Victor Hugo", "4 stars fantasy"\n'
        '- **Your rentals**: "my rentals"\n'
        '- **How it works**: "how do I rent a book?"'
    )


def render_general(payload: Dict[str, Any], entities: Dict[str, Any]) -> str:
    return (
        "I didn't quite get that. You can ask me to find books, show your "
        "rentals, or explain how Bookineo works."
    )


register_renderer("search_books", render_search)
register_renderer("my_rentals", render_my_rentals)
register_renderer("rental_info", render_rental_info)
register_renderer("help", render_help)
register_renderer("general", render_general)
