"""Bookineo business rules: pure functions.

Re-exports the rental and cart rules from the rules engine pattern and
adds listing and messaging rules.
"""

import re

from patterns.rules_engine import (
    RuleResult,
    check_book_available,
    check_cart_items_available,
    check_cart_not_empty,
    check_not_own_book,
    check_rental_duration,
)

_LINK_RE = re.compile(r"https?://|www\.", re.IGNORECASE)


def check_price_range(price: float, max_price: float = 10000.0) -> RuleResult:
    passed = 0 <= price <= max_price
    return RuleResult(
        passed=passed,
        rule_name="price_range",
        message="OK" if passed else f"Price must be between 0 and {max_price:g}",
        details={"price": price},
    )


def check_message_content(
    content: str,
    max_length: int = 1000,
    max_repeated_chars: int = 10,
    max_links: int = 4,
) -> RuleResult:
    """Length bounds plus a small spam filter.

    Rejects a character repeated more than ``max_repeated_chars`` times in a
    row and messages carrying more than ``max_links`` links.
    """
    text = content.strip()
    reason = None

    if not text:
        reason = "Message content cannot be empty"
    elif len(text) > max_length:
        reason = f"Message cannot exceed {max_length} characters"
    elif re.search(r"(.)\1{%d,}" % max_repeated_chars, text):
        reason = "Message contains excessive repeated characters"
    elif len(_LINK_RE.findall(text)) > max_links:
        reason = "Message contains too many links"

    return RuleResult(
        passed=reason is None,
        rule_name="message_content",
        message=reason or "OK",
        details={"length": len(text)},
    )


def check_not_self(sender_id: str, receiver_id: str) -> RuleResult:
    passed = sender_id != receiver_id
    return RuleResult(
        passed=passed,
        rule_name="not_self",
        message="OK" if passed else "You cannot send a message to yourself",
    )


__all__ = [
    "RuleResult",
    "check_book_available",
    "check_cart_items_available",
    "check_cart_not_empty",
    "check_not_own_book",
    "check_rental_duration",
    "check_price_range",
    "check_message_content",
    "check_not_self",
]
