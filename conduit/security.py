"""
Identity tokens and password hashing.

Tokens are HS256 JWTs carrying the user id (``id``) and an expiry
(``exp``).  There is no revocation list: a token is valid exactly while its
signature checks out and ``exp`` lies in the future.

Passwords are stored as bcrypt hashes through passlib; the cost factor comes
from ``settings.BCRYPT_ROUNDS``.
"""
from datetime import datetime, timedelta, timezone

import jwt
from passlib.context import CryptContext

from conduit.config import settings

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)

_TOKEN_PREFIX = "token "


class InvalidToken(Exception):
    """Raised when a token is malformed, tampered with, or expired."""


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------

def hash_password(password: str) -> str:
    """Hash a plain-text password with a fresh random salt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, stored_hash: str) -> bool:
    """Check *plain_password* against a hash produced by ``hash_password``."""
    try:
        return pwd_context.verify(plain_password, stored_hash)
    except ValueError:
        # passlib could not identify the stored value as a known hash
        return False


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

def issue_token(user_id: int, now: datetime | None = None) -> str:
    """Return a signed token for *user_id* expiring ``TOKEN_TTL_HOURS`` after *now*."""
    issued_at = now or datetime.now(timezone.utc)
    payload = {
        "id": user_id,
        "exp": issued_at + timedelta(hours=settings.TOKEN_TTL_HOURS),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str) -> int:
    """
    Return the user id embedded in *token*.

    Raises ``InvalidToken`` for a bad signature, a malformed token, missing
    claims, a non-integer id, or an expired token.
    """
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require": ["exp", "id"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise InvalidToken("token has expired") from exc
    except jwt.InvalidTokenError as exc:
        raise InvalidToken(str(exc)) from exc

    user_id = payload["id"]
    if isinstance(user_id, bool) or not isinstance(user_id, int):
        raise InvalidToken("token carries a malformed user id")
    return user_id


def strip_token_prefix(header_value: str) -> str:
    """Drop a leading ``Token `` (any case) from an Authorization header value."""
    if header_value[: len(_TOKEN_PREFIX)].lower() == _TOKEN_PREFIX:
        return header_value[len(_TOKEN_PREFIX):]
    return header_value
