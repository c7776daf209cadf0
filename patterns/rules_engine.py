"""Pure-function rules engine pattern.

Rules are stateless functions: (entity, context) -> RuleResult.
They never touch the database or the network.

Services evaluate rules first and translate a failed result into the
matching AppError. Domain: book rentals and carts.
"""

from dataclasses import dataclass, field
from typing import Any


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class RuleResult:
    """Outcome of a single rule evaluation."""

    passed: bool
    rule_name: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Rental rules
# ---------------------------------------------------------------------------

def check_rental_duration(
    duration: int,
    min_days: int = 1,
    max_days: int = 365,
) -> RuleResult:
    """A rental lasts between ``min_days`` and ``max_days`` inclusive."""
    passed = min_days <= duration <= max_days

    return RuleResult(
        passed=passed,
        rule_name="rental_duration",
        message=(
            f"Duration of {duration} days accepted"
            if passed
            else f"Rental duration must be between {min_days} and {max_days} days"
        ),
        details={"duration": duration, "min_days": min_days, "max_days": max_days},
    )


def check_book_available(book: dict) -> RuleResult:
    """Check that a book can be rented or put in a cart right now.

    Pure function: takes a book dict (``status``, ``title``), returns result.
    """
    status = book.get("status")
    passed = status == "AVAILABLE"

    return RuleResult(
        passed=passed,
        rule_name="book_available",
        message=(
            "Book is available"
            if passed
            else f"\"{book.get('title', 'Book')}\" is not available for rental"
        ),
        details={"status": status},
    )


def check_not_own_book(book: dict, user_id: str) -> RuleResult:
    """Users cannot rent (or cart) a book they own."""
    owner_id = book.get("ownerId")
    passed = owner_id is None or owner_id != user_id

    return RuleResult(
        passed=passed,
        rule_name="not_own_book",
        message="OK" if passed else "You cannot rent your own book",
        details={"owner_id": owner_id},
    )


def check_cart_not_empty(item_count: int) -> RuleResult:
    passed = item_count > 0
    return RuleResult(
        passed=passed,
        rule_name="cart_not_empty",
        message=f"{item_count} items in cart" if passed else "Cart is empty",
        details={"item_count": item_count},
    )


def check_cart_items_available(books: list[dict]) -> RuleResult:
    """Every book in a cart must still be AVAILABLE at checkout.

    Reports the titles that are not, in cart order.
    """
    unavailable = [b.get("title", "") for b in books if b.get("status") != "AVAILABLE"]
    passed = not unavailable

    return RuleResult(
        passed=passed,
        rule_name="cart_items_available",
        message=(
            "All books are available"
            if passed
            else "Some books are no longer available: " + ", ".join(unavailable)
        ),
        details={"unavailable": unavailable},
    )
