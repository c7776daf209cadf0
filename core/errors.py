"""Application error taxonomy and FastAPI exception handlers.

Services raise AppError subclasses; the handlers registered here turn every
failure (application, request validation, database constraint, framework,
unexpected) into the standard envelope::

    {"success": false, "message": "...", "code": "NOT_FOUND", "errors": {...}}

Nothing escapes unhandled and no handler retries anything.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import IntegrityError, NoResultFound
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Error types
# ---------------------------------------------------------------------------

class AppError(Exception):
    """Base application error carrying an HTTP status and a stable code."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        errors: dict[str, str] | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.errors = errors
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "success": False,
            "message": self.message,
            "code": self.code,
        }
        if self.errors:
            body["errors"] = self.errors
        if self.details:
            body["details"] = self.details
        return body

    # -- Constructors --

    @classmethod
    def bad_request(cls, message: str, errors: dict[str, str] | None = None) -> "AppError":
        return cls(400, "BAD_REQUEST", message, errors)

    @classmethod
    def unauthorized(cls, message: str = "Authentication required") -> "AppError":
        return cls(401, "UNAUTHORIZED", message)

    @classmethod
    def forbidden(cls, message: str = "Access denied") -> "AppError":
        return cls(403, "FORBIDDEN", message)

    @classmethod
    def not_found(cls, message: str = "Resource not found") -> "AppError":
        return cls(404, "NOT_FOUND", message)

    @classmethod
    def conflict(cls, message: str, details: dict[str, Any] | None = None) -> "AppError":
        return cls(409, "CONFLICT", message, details=details)

    @classmethod
    def validation(cls, message: str, errors: dict[str, str] | None = None) -> "AppError":
        return cls(422, "VALIDATION_FAILED", message, errors)

    @classmethod
    def rate_limited(cls, retry_after: int) -> "AppError":
        return cls(
            429,
            "RATE_LIMIT_EXCEEDED",
            "Too many requests. Please try again later.",
            details={"retryAfter": retry_after},
        )

    @classmethod
    def internal(cls, message: str = "Internal server error") -> "AppError":
        return cls(500, "INTERNAL_ERROR", message)


class ValidationError(AppError):
    """Input failed a business validation rule (422)."""

    def __init__(self, message: str, field: str | None = None):
        errors = {field: message} if field else None
        super().__init__(422, "VALIDATION_FAILED", message, errors)
        self.field = field


class ResourceNotFoundError(AppError):
    def __init__(self, resource: str, identifier: str | None = None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} '{identifier}' not found"
        super().__init__(404, "NOT_FOUND", message)
        self.resource = resource


class DuplicateResourceError(AppError):
    def __init__(self, resource: str, field: str, value: str):
        super().__init__(
            409,
            "DUPLICATE_RESOURCE",
            f"{resource} with this {field} already exists",
            errors={field: f"{value} is already taken"},
        )


class AuthenticationError(AppError):
    def __init__(self, message: str = "Authentication required"):
        super().__init__(401, "UNAUTHORIZED", message)


class AuthorizationError(AppError):
    def __init__(self, message: str = "You are not allowed to perform this action"):
        super().__init__(403, "FORBIDDEN", message)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

_NULL_COLUMN_RES = (
    re.compile(r"not null constraint failed: \w+\.(\w+)"),
    re.compile(r"null value in column \"(\w+)\""),
)


def _null_column(text: str) -> str | None:
    """camelCase column name from a SQLite or PostgreSQL not-null message."""
    for pattern in _NULL_COLUMN_RES:
        match = pattern.search(text)
        if match:
            return to_camel(match.group(1))
    return None


def _field_errors(exc: RequestValidationError) -> dict[str, str]:
    """Flatten pydantic errors to {field_path: message}."""
    errors: dict[str, str] = {}
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        key = ".".join(loc) or "request"
        msg = str(err.get("msg", "Invalid value"))
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        errors.setdefault(key, msg)
    return errors


def register_exception_handlers(app: FastAPI, expose_errors: bool = False) -> None:
    """Attach the envelope-producing handlers to an app.

    Args:
        app: The FastAPI application.
        expose_errors: Include the exception text in 500 responses (development only).
    """

    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        body = AppError.validation("Invalid input data", _field_errors(exc)).to_dict()
        return JSONResponse(status_code=422, content=body)

    @app.exception_handler(IntegrityError)
    async def handle_integrity_error(request: Request, exc: IntegrityError):
        text = str(exc.orig).lower()
        if "foreign key" in text:
            err = AppError.bad_request("Invalid reference to a related resource")
        elif "unique" in text or "duplicate key" in text:
            err = AppError(409, "DUPLICATE_RESOURCE", "Resource already exists")
        elif "not null" in text or "not-null" in text:
            column = _null_column(text)
            err = AppError.validation(
                "A required field is missing", {column: "Field cannot be null"} if column else None
            )
        else:
            err = AppError.bad_request("Data integrity violation")
        logger.warning("Integrity error on %s: %s", request.url.path, text)
        return JSONResponse(status_code=err.status_code, content=err.to_dict())

    @app.exception_handler(NoResultFound)
    async def handle_no_result(request: Request, exc: NoResultFound):
        return JSONResponse(status_code=404, content=AppError.not_found().to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        err = AppError(exc.status_code, "HTTP_ERROR", str(exc.detail))
        return JSONResponse(
            status_code=exc.status_code,
            content=err.to_dict(),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        message = str(exc) if expose_errors else "Internal server error"
        return JSONResponse(status_code=500, content=AppError.internal(message).to_dict())
