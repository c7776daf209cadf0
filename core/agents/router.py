"""
Bookineo Router: Intent Classification

Keyword and regex matching over an ordered list of routes. Routes are
checked by descending priority (registration order breaks ties) and the
first match wins; a query that matches nothing goes to the default route.
No model call is involved, so classification is deterministic and free.
"""
from __future__ import annotations
from pydantic import BaseModel, Field
from typing import Optional
from dataclasses import dataclass, field
import re


class RouteResult(BaseModel):
    """Result of intent classification."""
    route_name: str
    confidence: float = Field(ge=0.0, le=1.0)
    intent: str
    routing_method: str = "keyword"  # keyword | pattern | default


@dataclass
class IntentRoute:
    """Registered intent with trigger keywords and patterns."""
    name: str
    description: str
    keywords: list[str] = field(default_factory=list)
    patterns: list[str] = field(default_factory=list)  # regex patterns
    priority: int = 0  # higher = checked first
    _compiled: list[re.Pattern] = field(default_factory=list, init=False, repr=False)

    def __post_init__(self):
        self._compiled = [re.compile(p, re.IGNORECASE) for p in self.patterns]


class IntentRouter:
    """Routes free-text queries to a named intent."""

    def __init__(self, default_route: str = "general"):
        self.routes: list[IntentRoute] = []
        self.default_route = default_route

    def register(self, route: IntentRoute):
        """Register an intent route."""
        self.routes.append(route)
        self.routes.sort(key=lambda r: r.priority, reverse=True)

    def match(self, query: str) -> Optional[RouteResult]:
        """Return the first matching route, or None."""
        query_lower = query.lower()
        for route in self.routes:
            for keyword in route.keywords:
                if keyword.lower() in query_lower:
                    return RouteResult(
                        route_name=route.name,
                        confidence=0.9,
                        intent=f"keyword_match:{keyword}",
                        routing_method="keyword",
                    )
            for pattern in route._compiled:
                if pattern.search(query):
                    return RouteResult(
                        route_name=route.name,
                        confidence=0.85,
                        intent=f"pattern_match:{pattern.pattern}",
                        routing_method="pattern",
                    )
        return None

    def route(self, query: str) -> RouteResult:
        """Classify a query, falling back to the default route."""
        result = self.match(query)
        if result is not None:
            return result
        return RouteResult(
            route_name=self.default_route,
            confidence=0.5,
            intent="default",
            routing_method="default",
        )
