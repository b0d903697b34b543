"""
auth/tokens.py -- Signed session tokens and the session cookie helpers.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry userId, email, role, status, iat
       and exp. The expiry window is fixed at issuance (Settings
       .token_expire_seconds, default 2h) and is not renewable; the user logs
       in again afterwards.

  No revocation list: a token stays cryptographically valid until exp. The
       AuthorizationGate (auth/gate.py) re-reads the store on every request,
       which is how admin actions take effect before expiry.

  SECRET_KEY: the service receives the Settings object by injection. It never
       calls get_settings() itself, so tests can sign with their own key and
       the secret is never a module-level global.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from jose import JWTError, jwt

from auth.errors import InvalidTokenError
from auth.models import Role, SessionClaims, Status

if TYPE_CHECKING:
    from auth.models import User
    from core.config import Settings

ALGORITHM = "HS256"
SESSION_COOKIE = "session_token"

_REQUIRED_CLAIMS = ("userId", "email", "role", "status", "iat", "exp")


class SessionTokenService:
    """Issues and verifies session tokens. Pure computation -- no I/O.

    Usage:
        tokens = SessionTokenService(settings)
        token = tokens.issue(tokens.claims_for(user))
        claims = tokens.verify(token)  # raises InvalidTokenError
    """

    def __init__(self, settings: Settings) -> None:
        self._secret = settings.secret_key
        self.expire_seconds = settings.token_expire_seconds

    def claims_for(self, user: User, now: int | None = None) -> SessionClaims:
        """Build claims for a user, stamping iat=now and exp=now+window."""
        issued_at = int(time.time()) if now is None else now
        return SessionClaims(
            user_id=user.id,
            email=user.email,
            role=Role(user.role),
            status=Status(user.status),
            issued_at=issued_at,
            expires_at=issued_at + self.expire_seconds,
        )

    def issue(self, claims: SessionClaims) -> str:
        payload = {
            "userId": claims.user_id,
            "email": claims.email,
            "role": claims.role.value,
            "status": claims.status.value,
            "iat": claims.issued_at,
            "exp": claims.expires_at,
        }
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> SessionClaims:
        """Decode and verify a token. Raises InvalidTokenError on any failure.

        Covers bad signature, wrong algorithm, malformed structure, expiry,
        missing claims, and role/status values outside the known enums.
        """
        try:
            payload = jwt.decode(token, self._secret, algorithms=[ALGORITHM])
        except JWTError as exc:
            raise InvalidTokenError(str(exc)) from exc

        missing = [k for k in _REQUIRED_CLAIMS if k not in payload]
        if missing:
            raise InvalidTokenError(f"Token is missing claims: {', '.join(missing)}")
        try:
            return SessionClaims(
                user_id=str(payload["userId"]),
                email=str(payload["email"]),
                role=Role(payload["role"]),
                status=Status(payload["status"]),
                issued_at=int(payload["iat"]),
                expires_at=int(payload["exp"]),
            )
        except (ValueError, TypeError) as exc:
            raise InvalidTokenError("Token claims are malformed.") from exc


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response, token: str, settings: Settings) -> None:
    """Write the session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": sent on same-site navigations and top-level GETs, not on
        cross-site POSTs -- CSRF mitigation for most cases.
    secure: only sent over HTTPS when SECURE_COOKIES=true (set in production).
    max_age: matches the token expiry so both expire together.
    """
    response.set_cookie(
        SESSION_COOKIE,
        value=token,
        httponly=True,
        samesite="lax",
        secure=settings.secure_cookies,
        max_age=settings.token_expire_seconds,
        path="/",
    )


def clear_session_cookie(response) -> None:
    response.delete_cookie(SESSION_COOKIE, path="/")
