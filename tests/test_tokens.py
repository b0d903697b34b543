"""Unit tests for auth/tokens.py -- session token issue/verify.

Covers:
- verify(issue(claims)) == claims inside the expiry window
- expired, tampered, wrongly-signed and malformed tokens raise InvalidTokenError
- wire format: HS256 header and the userId/email/role/status/iat/exp payload
"""

from __future__ import annotations

import time

import pytest
from jose import jwt

from auth.errors import InvalidTokenError
from auth.models import Role, SessionClaims, Status, User
from auth.tokens import ALGORITHM, SessionTokenService
from core.config import Settings


@pytest.fixture
def user() -> User:
    return User(id="abc123", email="a@x", role=Role.admin, status=Status.approved)


def test_round_trip_within_window(tokens: SessionTokenService, user: User):
    claims = tokens.claims_for(user)
    assert tokens.verify(tokens.issue(claims)) == claims


def test_claims_for_uses_configured_window(tokens: SessionTokenService, user: User):
    claims = tokens.claims_for(user, now=1_000_000)
    assert claims.issued_at == 1_000_000
    assert claims.expires_at == 1_000_000 + 7200
    assert claims.role is Role.admin
    assert claims.status is Status.approved


def test_expired_token_is_rejected(tokens: SessionTokenService, user: User):
    past = int(time.time()) - 3 * 7200
    token = tokens.issue(tokens.claims_for(user, now=past))
    with pytest.raises(InvalidTokenError):
        tokens.verify(token)


def test_wire_format(tokens: SessionTokenService, user: User, settings: Settings):
    token = tokens.issue(tokens.claims_for(user))
    header = jwt.get_unverified_header(token)
    assert header["alg"] == "HS256"
    payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    assert set(payload) == {"userId", "email", "role", "status", "iat", "exp"}
    assert payload["role"] == "admin"
    assert payload["status"] == "approved"


def test_token_signed_with_other_key_is_rejected(tokens: SessionTokenService, user: User):
    other = SessionTokenService(Settings(debug=True, secret_key="z" * 40))
    token = other.issue(other.claims_for(user))
    with pytest.raises(InvalidTokenError):
        tokens.verify(token)


def test_tampered_payload_is_rejected(tokens: SessionTokenService, user: User):
    """Swapping the payload segment for a forged one breaks the signature."""
    token = tokens.issue(tokens.claims_for(user))
    header, _payload, signature = token.split(".")
    forged = jwt.encode(
        {"userId": "someone-else", "email": "a@x", "role": "admin", "status": "approved", "iat": 0, "exp": 9999999999},
        "not-the-key" * 4,
        algorithm=ALGORITHM,
    ).split(".")[1]
    with pytest.raises(InvalidTokenError):
        tokens.verify(f"{header}.{forged}.{signature}")


@pytest.mark.parametrize("garbage", ["", "not-a-token", "a.b.c", "...."])
def test_malformed_token_is_rejected(tokens: SessionTokenService, garbage: str):
    with pytest.raises(InvalidTokenError):
        tokens.verify(garbage)


def test_missing_claims_are_rejected(tokens: SessionTokenService, settings: Settings):
    token = jwt.encode({"userId": "x", "exp": int(time.time()) + 60}, settings.secret_key, algorithm=ALGORITHM)
    with pytest.raises(InvalidTokenError):
        tokens.verify(token)


def test_unknown_role_is_rejected(tokens: SessionTokenService, settings: Settings):
    now = int(time.time())
    token = jwt.encode(
        {"userId": "x", "email": "a@x", "role": "superuser", "status": "approved", "iat": now, "exp": now + 60},
        settings.secret_key,
        algorithm=ALGORITHM,
    )
    with pytest.raises(InvalidTokenError):
        tokens.verify(token)


def test_claims_are_immutable(tokens: SessionTokenService, user: User):
    claims: SessionClaims = tokens.claims_for(user)
    with pytest.raises(AttributeError):
        claims.role = Role.user  # type: ignore[misc]
