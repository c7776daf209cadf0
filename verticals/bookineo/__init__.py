"""Bookineo vertical: the peer-to-peer book rental marketplace.

Everything domain-specific lives here:
- SQLAlchemy models (users, books, carts, rentals, messages)
- Async repositories over the shared repository pattern
- Services for catalog, cart checkout, rentals, messaging, accounts,
  catalog import and the chat assistant
- FastAPI routers mounted under /api
- Pure-function business rules and template renderers
- Session authentication and rate-limit dependencies
"""
