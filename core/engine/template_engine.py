"""Template Engine: formats structured assistant replies into markdown.

The chat assistant answers most questions from data (search results,
rental lists) without a language model. Each reply kind registers a
renderer; the engine dispatches on the kind name. A generic fallback
handles any unregistered kind.
"""

from datetime import datetime
from typing import Any, Callable, Dict, Optional


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def fmt_money(value: float | int | None, currency: str = "€") -> str:
    """Format a number as a price, currency after the amount."""
    if value is None:
        return "N/A"
    return f"{value:,.2f} {currency}"


def fmt_stars(value: float | None) -> str:
    if not value:
        return ""
    return f"{value:g}/5 stars"


def fmt_date(value: datetime | str | None) -> str:
    """Render an ISO string or datetime as YYYY-MM-DD."""
    if value is None:
        return "N/A"
    if isinstance(value, str):
        return value[:10]
    return value.strftime("%Y-%m-%d")


def plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


# ---------------------------------------------------------------------------
# Generic fallback renderer
# ---------------------------------------------------------------------------

def render_generic(kind: str, payload: Dict) -> str:
    """Generic fallback renderer for any reply payload.

    Produces a readable markdown summary by iterating over dict keys.
    Lists are summarised and nested dicts show their first 4 keys.
    """
    if "error" in payload:
        return f"**Error:** {payload['error']}"

    lines = []
    for key, value in payload.items():
        if key.startswith("_"):
            continue
        if isinstance(value, list):
            lines.append(f"**{key}:** {len(value)} items")
            for item in value[:5]:
                if isinstance(item, dict):
                    summary = ", ".join(f"{k}={v}" for k, v in list(item.items())[:3])
                    lines.append(f"  - {summary}")
                else:
                    lines.append(f"  - {item}")
        elif isinstance(value, dict):
            summary = ", ".join(f"{k}={v}" for k, v in list(value.items())[:4])
            lines.append(f"**{key}:** {summary}")
        else:
            lines.append(f"**{key}:** {value}")

    return "\n".join(lines) or kind


# ---------------------------------------------------------------------------
# Renderer type and registry
# ---------------------------------------------------------------------------

ReplyRenderer = Callable[[Dict[str, Any], Dict[str, Any]], str]

_RENDERERS: Dict[str, ReplyRenderer] = {}


def register_renderer(kind: str, renderer: ReplyRenderer) -> None:
    """Register the renderer for one reply kind.

    Example::

        def render_help(payload, entities):
            return "I can search books and list your rentals."

        register_renderer("help", render_help)
    """
    _RENDERERS[kind] = renderer


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class TemplateEngine:
    """Formats reply payloads into markdown.

    Usage::

        markdown = TemplateEngine.render(
            kind="search_books",
            payload={"books": [...], "total": 12},
            entities={"author": "Hugo"},
        )
    """

    @staticmethod
    def render(
        kind: str,
        payload: Dict[str, Any],
        entities: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Render a reply payload into human-readable markdown.

        Args:
            kind: Reply kind (usually the intent name).
            payload: Structured data for the reply.
            entities: Extracted entities from the user message.
        """
        entities = entities or {}
        renderer = _RENDERERS.get(kind)
        if renderer is None:
            return render_generic(kind, payload)
        return renderer(payload, entities)

    @staticmethod
    def registered_kinds() -> list[str]:
        return list(_RENDERERS.keys())
