"""Token and password primitives."""
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from conduit.config import settings
from conduit.security import (
    InvalidToken,
    hash_password,
    issue_token,
    pwd_context,
    strip_token_prefix,
    verify_password,
    verify_token,
)


def test_hash_never_equals_plaintext():
    hashed = hash_password("password123")
    assert hashed != "password123"
    assert verify_password("password123", hashed)
    assert not verify_password("password124", hashed)


def test_hash_is_salted():
    assert hash_password("password123") != hash_password("password123")


def test_hash_is_bcrypt():
    hashed = hash_password("password123")
    assert hashed.startswith("$2b$")
    assert pwd_context.identify(hashed) == "bcrypt"


def test_verify_password_garbage_hash():
    assert not verify_password("password123", "not a hash at all!")
    assert not verify_password("password123", "")


def test_token_round_trip():
    assert verify_token(issue_token(42)) == 42


def test_expired_token_rejected():
    stale = datetime.now(timezone.utc) - timedelta(hours=settings.TOKEN_TTL_HOURS + 1)
    with pytest.raises(InvalidToken):
        verify_token(issue_token(42, now=stale))


def test_tampered_token_rejected():
    forged = jwt.encode(
        {"id": 42, "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        "some-other-secret",
        algorithm="HS256",
    )
    with pytest.raises(InvalidToken):
        verify_token(forged)


def test_token_without_id_rejected():
    token = jwt.encode(
        {"exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        settings.SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM,
    )
    with pytest.raises(InvalidToken):
        verify_token(token)


def test_token_with_string_id_rejected():
    token = jwt.encode(
        {"id": "42", "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        settings.SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM,
    )
    with pytest.raises(InvalidToken):
        verify_token(token)


def test_malformed_token_rejected():
    with pytest.raises(InvalidToken):
        verify_token("not.a.token")


@pytest.mark.parametrize(
    "header,expected",
    [
        ("Token abc.def.ghi", "abc.def.ghi"),
        ("token abc.def.ghi", "abc.def.ghi"),
        ("abc.def.ghi", "abc.def.ghi"),
    ],
)
def test_strip_token_prefix(header, expected):
    assert strip_token_prefix(header) == expected
