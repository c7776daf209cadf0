"""Session authentication for Bookineo routes.

The signed session token travels in an httpOnly cookie (or an
``Authorization: Bearer`` header for API clients). Every authenticated
request verifies the token and re-checks that the user still exists, then
hands the route a frozen AuthContext instead of a loose session dict.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from core.errors import AuthenticationError
from core.security.sessions import InvalidSessionToken, SessionClaims, SessionSigner
from patterns.domain_config import BookineoConfig
from verticals.bookineo.config import get_config
from verticals.bookineo.models.db_models import User
from verticals.bookineo.repository import UserRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthContext:
    """The authenticated caller for one request."""

    user_id: str
    email: str
    first_name: Optional[str]
    last_name: Optional[str]
    remember_me: bool
    expires_at: datetime

    @property
    def full_name(self) -> str:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) or self.email

    def to_dict(self) -> dict:
        return {
            "id": self.user_id,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "fullName": self.full_name,
        }


@lru_cache(maxsize=4)
def _signer(secret: str, lifetime: timedelta, remember_lifetime: timedelta) -> SessionSigner:
    return SessionSigner(secret, lifetime, remember_lifetime)


def get_signer(config: BookineoConfig = Depends(get_config)) -> SessionSigner:
    sessions = config.session
    return _signer(sessions.secret, sessions.lifetime(False), sessions.lifetime(True))


# ---------------------------------------------------------------------------
# Cookies
# ---------------------------------------------------------------------------

def issue_session(
    response: Response,
    user: User,
    remember_me: bool,
    config: BookineoConfig,
    signer: SessionSigner,
) -> SessionClaims:
    """Sign a token for ``user`` and set the session (and remember-me) cookies."""
    token, claims = signer.issue(user.id, remember_me=remember_me)
    max_age = int(signer.lifetime(remember_me).total_seconds())

    response.set_cookie(
        config.session.cookie_name,
        token,
        max_age=max_age,
        httponly=True,
        samesite="lax",
        secure=config.is_production,
        path="/",
    )
    if remember_me:
        response.set_cookie(
            config.session.remember_cookie_name,
            "true",
            max_age=max_age,
            httponly=True,
            samesite="lax",
            secure=config.is_production,
            path="/",
        )
    else:
        response.delete_cookie(config.session.remember_cookie_name, path="/")
    return claims


def clear_session(response: Response, config: BookineoConfig) -> None:
    response.delete_cookie(config.session.cookie_name, path="/")
    response.delete_cookie(config.session.remember_cookie_name, path="/")


def _read_token(request: Request, config: BookineoConfig) -> Optional[str]:
    token = request.cookies.get(config.session.cookie_name)
    if token:
        return token
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return None


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

async def get_optional_user(
    request: Request,
    session: AsyncSession = Depends(get_session),
    config: BookineoConfig = Depends(get_config),
    signer: SessionSigner = Depends(get_signer),
) -> Optional[AuthContext]:
    """AuthContext for a valid session, None otherwise."""
    token = _read_token(request, config)
    if not token:
        return None

    try:
        claims = signer.verify(token)
    except InvalidSessionToken as exc:
        logger.debug("Rejected session token: %s", exc)
        return None

    user = await UserRepository(session).get(claims.user_id)
    if user is None:
        return None

    return AuthContext(
        user_id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        remember_me=claims.remember_me,
        expires_at=claims.expires_at,
    )


async def get_current_user(
    user: Optional[AuthContext] = Depends(get_optional_user),
) -> AuthContext:
    """Require an authenticated caller (401 otherwise)."""
    if user is None:
        raise AuthenticationError()
    return user
