"""Password hashing and password policy.

bcrypt with a configurable cost factor. The policy check is a pure
function returning human-readable problems so it can feed both the
signup schema and the change-password flow.
"""

import re

import bcrypt

BCRYPT_ROUNDS = 12
MIN_LENGTH = 8
MAX_LENGTH = 128
SPECIAL_CHARACTERS = '!@#$%^&*(),.?":{}|<>'

_SPECIAL_RE = re.compile(r'[!@#$%^&*(),.?":{}|<>]')


def hash_password(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """Constant-time comparison of a candidate password with a stored hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def password_problems(password: str) -> list[str]:
    """Return every policy rule the password breaks (empty when valid)."""
    problems = []
    if len(password) < MIN_LENGTH:
        problems.append(f"Password must be at least {MIN_LENGTH} characters")
    if len(password) > MAX_LENGTH:
        problems.append(f"Password must be at most {MAX_LENGTH} characters")
    if not re.search(r"[a-z]", password):
        problems.append("Password must contain at least one lowercase letter")
    if not re.search(r"[A-Z]", password):
        problems.append("Password must contain at least one uppercase letter")
    if not _SPECIAL_RE.search(password):
        problems.append(
            f"Password must contain at least one special character ({SPECIAL_CHARACTERS})"
        )
    return problems
