"""Response envelope shared by every Bookineo route."""

from typing import Any, Optional


def ok(data: Any = None, message: Optional[str] = None) -> dict[str, Any]:
    """``{"success": true, "data": ..., "message": ...}`` with empty keys omitted."""
    body: dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    return body
