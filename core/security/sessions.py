"""
Bookineo Session Tokens: itsdangerous-signed cookies.

A token is a URL-safe timed serializer dump of ``{"sub": user_id,
"rem": bool}``. Regular and remember-me sessions are signed under
different salts so each kind is checked against its own max age.
Tokens are stateless; revocation happens by re-checking the user on
every request.
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer


class InvalidSessionToken(Exception):
    """Token is malformed, tampered with, or expired."""


@dataclass(frozen=True)
class SessionClaims:
    """Verified contents of a session token."""
    user_id: str
    expires_at: datetime
    remember_me: bool = False


class SessionSigner:
    """Issues and verifies signed session tokens."""

    def __init__(
        self,
        secret: str,
        lifetime: timedelta = timedelta(days=1),
        remember_lifetime: timedelta = timedelta(days=30),
    ):
        if not secret:
            raise ValueError("Session secret must not be empty")
        self._kinds = {
            False: (URLSafeTimedSerializer(secret, salt="bookineo-session"), lifetime),
            True: (URLSafeTimedSerializer(secret, salt="bookineo-session-remember"), remember_lifetime),
        }

    def lifetime(self, remember_me: bool) -> timedelta:
        return self._kinds[remember_me][1]

    def issue(self, user_id: str, remember_me: bool = False) -> tuple[str, SessionClaims]:
        """Sign a token for ``user_id``. Returns (token, claims)."""
        serializer, lifetime = self._kinds[remember_me]
        token = serializer.dumps({"sub": user_id, "rem": remember_me})
        _, signed_at = serializer.loads(token, return_timestamp=True)
        claims = SessionClaims(
            user_id=user_id, expires_at=signed_at + lifetime, remember_me=remember_me
        )
        return token, claims

    def verify(self, token: str) -> SessionClaims:
        """Check signature and age. Raises InvalidSessionToken."""
        if not token:
            raise InvalidSessionToken("Malformed token")

        for remember_me, (serializer, lifetime) in self._kinds.items():
            try:
                data, signed_at = serializer.loads(
                    token, max_age=int(lifetime.total_seconds()), return_timestamp=True
                )
            except SignatureExpired as exc:
                raise InvalidSessionToken("Token expired") from exc
            except BadSignature:
                continue

            if not isinstance(data, dict) or "sub" not in data:
                raise InvalidSessionToken("Unreadable payload")
            return SessionClaims(
                user_id=str(data["sub"]),
                expires_at=signed_at + lifetime,
                remember_me=remember_me,
            )

        raise InvalidSessionToken("Bad signature")
