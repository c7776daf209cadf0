"""Test the pure-function rental, cart and messaging rules."""
from verticals.bookineo.rules import (
    check_book_available,
    check_cart_items_available,
    check_cart_not_empty,
    check_message_content,
    check_not_own_book,
    check_not_self,
    check_price_range,
    check_rental_duration,
)


def test_duration_bounds_inclusive():
    assert check_rental_duration(1).passed
    assert check_rental_duration(365).passed
    assert not check_rental_duration(0).passed
    assert not check_rental_duration(366).passed


def test_duration_message_names_bounds():
    result = check_rental_duration(400, min_days=1, max_days=365)
    assert result.message == "Rental duration must be between 1 and 365 days"


def test_book_available():
    assert check_book_available({"status": "AVAILABLE", "title": "Dune"}).passed
    result = check_book_available({"status": "RENTED", "title": "Dune"})
    assert not result.passed
    assert "Dune" in result.message


def test_not_own_book():
    assert check_not_own_book({"ownerId": None}, "u1").passed
    assert check_not_own_book({"ownerId": "u2"}, "u1").passed
    assert not check_not_own_book({"ownerId": "u1"}, "u1").passed


def test_cart_not_empty():
    assert check_cart_not_empty(2).passed
    result = check_cart_not_empty(0)
    assert not result.passed
    assert result.message == "Cart is empty"


def test_cart_items_available_lists_titles_in_order():
    books = [
        {"title": "A", "status": "RENTED"},
        {"title": "B", "status": "AVAILABLE"},
        {"title": "C", "status": "RENTED"},
    ]
    result = check_cart_items_available(books)
    assert not result.passed
    assert result.details["unavailable"] == ["A", "C"]


def test_price_range():
    assert check_price_range(0).passed
    assert check_price_range(10000).passed
    assert not check_price_range(-1).passed
    assert not check_price_range(10000.01).passed


def test_message_content_length():
    assert check_message_content("Hello").passed
    assert not check_message_content("   ").passed
    assert not check_message_content("x" * 1001).passed


def test_message_content_repeated_characters():
    assert check_message_content("a" * 10 + " ok").passed
    result = check_message_content("a" * 11)
    assert not result.passed
    assert "repeated" in result.message


def test_message_content_links():
    four = " ".join(f"https://example.com/{i}" for i in range(4))
    five = four + " www.example.org"
    assert check_message_content(four).passed
    assert not check_message_content(five).passed


def test_not_self():
    assert check_not_self("a", "b").passed
    assert not check_not_self("a", "a").passed
