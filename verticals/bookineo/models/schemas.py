"""Pydantic schemas for API request validation.

Request bodies accept camelCase (what the web client sends) or
snake_case field names. Responses are plain dicts built by the models'
to_dict() methods.
"""

import re
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from core.security.passwords import password_problems
from patterns.workflow_states import BookStatus, RentalState

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
NAME_RE = re.compile(r"^[A-Za-zÀ-ÖØ-öø-ÿ\s'-]+$")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class BookSortField(str, Enum):
    TITLE = "title"
    AUTHOR = "author"
    PRICE = "price"
    CREATED_AT = "createdAt"
    UPDATED_AT = "updatedAt"


class UserSortField(str, Enum):
    FIRST_NAME = "firstName"
    LAST_NAME = "lastName"
    EMAIL = "email"
    CREATED_AT = "createdAt"
    UPDATED_AT = "updatedAt"


class RentalAction(str, Enum):
    RETURN = "return"
    CANCEL = "cancel"


# ---------------------------------------------------------------------------
# Shared validators
# ---------------------------------------------------------------------------

def _clean_email(value: str) -> str:
    value = value.strip().lower()
    if len(value) < 5 or len(value) > 100:
        raise ValueError("Email must be between 5 and 100 characters")
    if not EMAIL_RE.match(value):
        raise ValueError("Invalid email format")
    return value


def _clean_name(value: Optional[str], label: str) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if len(value) < 2 or len(value) > 50:
        raise ValueError(f"{label} must be between 2 and 50 characters")
    if not NAME_RE.match(value):
        raise ValueError(f"{label} can only contain letters, spaces, hyphens and apostrophes")
    return value


def _check_password(value: str) -> str:
    problems = password_problems(value)
    if problems:
        raise ValueError(problems[0])
    return value


def _check_birth_date(value: Optional[date]) -> Optional[date]:
    if value is not None and value >= date.today():
        raise ValueError("Birth date must be in the past")
    return value


# ---------------------------------------------------------------------------
# Auth & users
# ---------------------------------------------------------------------------

class SignupRequest(CamelModel):
    email: str
    password: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    birth_date: Optional[date] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _clean_email(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password(v)

    @field_validator("first_name")
    @classmethod
    def validate_first_name(cls, v: Optional[str]) -> Optional[str]:
        return _clean_name(v, "First name")

    @field_validator("last_name")
    @classmethod
    def validate_last_name(cls, v: Optional[str]) -> Optional[str]:
        return _clean_name(v, "Last name")

    @field_validator("birth_date")
    @classmethod
    def validate_birth_date(cls, v: Optional[date]) -> Optional[date]:
        return _check_birth_date(v)


class LoginRequest(CamelModel):
    email: str
    password: str = Field(..., min_length=1)
    remember_me: bool = False

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class RememberMeRequest(CamelModel):
    remember: bool


class ProfileUpdate(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    birth_date: Optional[date] = None

    @field_validator("first_name")
    @classmethod
    def validate_first_name(cls, v: Optional[str]) -> Optional[str]:
        return _clean_name(v, "First name")

    @field_validator("last_name")
    @classmethod
    def validate_last_name(cls, v: Optional[str]) -> Optional[str]:
        return _clean_name(v, "Last name")

    @field_validator("birth_date")
    @classmethod
    def validate_birth_date(cls, v: Optional[date]) -> Optional[date]:
        return _check_birth_date(v)


class PasswordChange(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, v: str) -> str:
        return _check_password(v)


# ---------------------------------------------------------------------------
# Books
# ---------------------------------------------------------------------------

def _strip_text(v: Any) -> Any:
    return v.strip() if isinstance(v, str) else v


class BookCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    author: str = Field(..., min_length=1, max_length=100)
    price: float = Field(0.0, ge=0, le=10000)
    category_name: Optional[str] = Field(None, max_length=50)
    img_url: Optional[str] = Field(None, max_length=1000)

    @field_validator("title", "author", "category_name", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> Any:
        return _strip_text(v)


class BookUpdate(CamelModel):
    # status is owned by the rental lifecycle and is rejected here
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    author: Optional[str] = Field(None, min_length=1, max_length=100)
    price: Optional[float] = Field(None, ge=0, le=10000)
    category_name: Optional[str] = Field(None, max_length=50)
    img_url: Optional[str] = Field(None, max_length=1000)

    @field_validator("title", "author", "price", mode="before")
    @classmethod
    def reject_null(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("Field cannot be null")
        return _strip_text(v)


class BookFilters(CamelModel):
    search: Optional[str] = None
    status: Optional[BookStatus] = None
    category: Optional[str] = None
    author: Optional[str] = None
    price_min: Optional[float] = Field(None, ge=0)
    price_max: Optional[float] = Field(None, ge=0)
    has_owner: Optional[bool] = None
    owner_id: Optional[str] = None


# ---------------------------------------------------------------------------
# Cart & rentals
# ---------------------------------------------------------------------------

class CartAdd(CamelModel):
    book_id: str = Field(..., min_length=1)


class CheckoutRequest(CamelModel):
    duration: int
    comment: Optional[str] = Field(None, max_length=500)
    start_date: Optional[datetime] = None


class RentalCreate(CamelModel):
    book_id: str = Field(..., min_length=1)
    duration: int
    comment: Optional[str] = Field(None, max_length=500)
    start_date: Optional[datetime] = None


class RentalUpdate(CamelModel):
    status: Optional[RentalState] = None
    action: Optional[RentalAction] = None
    return_date: Optional[datetime] = None
    comment: Optional[str] = Field(None, max_length=500)


class RentalActionRequest(CamelModel):
    comment: Optional[str] = Field(None, max_length=500)


class RentalFilters(CamelModel):
    status: Optional[RentalState] = None
    book_id: Optional[str] = None
    renter_id: Optional[str] = None
    search: Optional[str] = None
    start_date_from: Optional[datetime] = None
    start_date_to: Optional[datetime] = None
    end_date_from: Optional[datetime] = None
    end_date_to: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

class MessageCreate(CamelModel):
    receiver_id: Optional[str] = None
    receiver_email: Optional[str] = None
    content: str

    @model_validator(mode="after")
    def require_receiver(self):
        if not self.receiver_id and not self.receiver_email:
            raise ValueError("A receiverId or receiverEmail is required")
        return self


# ---------------------------------------------------------------------------
# Chat & import
# ---------------------------------------------------------------------------

class ChatRequest(CamelModel):
    message: str = ""
    context: Optional[str] = "general"


class ImportRequest(CamelModel):
    books: list[dict[str, Any]] = Field(default_factory=list)
