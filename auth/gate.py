"""
auth/gate.py -- Request-time identity resolution.

The signed token proves a past login; the store is the source of truth for
who the user is now. resolve() runs on every request that needs an identity:

  1. No token                          -> anonymous, nothing to clean up.
  2. Signature / structure / expiry bad -> anonymous, invalidate the cookie.
  3. User id no longer in the store    -> anonymous, invalidate.
  4. email, role or status differ      -> anonymous, invalidate.
  5. Stored status is not approved     -> anonymous, invalidate.
  6. Otherwise                         -> the hash-stripped stored User.

Step 4 is what makes a ban, an approval change, or a deletion take effect on
the affected user's very next request instead of at token expiry. There is
no cache: one store read per call.

Failures are logged at INFO with the reason and never surfaced to the client.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from auth.errors import IntegrityMismatchError, InvalidTokenError
from auth.models import GateResult, SessionClaims, User

if TYPE_CHECKING:
    from auth.store import UserStore
    from auth.tokens import SessionTokenService

logger = logging.getLogger("imagedrop.auth.gate")

_ANONYMOUS = GateResult()
_INVALIDATE = GateResult(invalidate=True)


class AuthorizationGate:
    def __init__(self, store: UserStore, tokens: SessionTokenService) -> None:
        self.store = store
        self.tokens = tokens

    def resolve(self, token: str | None) -> GateResult:
        if not token:
            return _ANONYMOUS
        try:
            claims = self.tokens.verify(token)
        except InvalidTokenError as exc:
            logger.info("Session rejected: %s", exc.message)
            return _INVALIDATE

        user = self.store.get_by_id(claims.user_id)
        if user is None:
            logger.info("Session rejected: user %s no longer exists", claims.user_id)
            return _INVALIDATE
        try:
            reconcile(claims, user)
        except IntegrityMismatchError as exc:
            logger.info("Session rejected for user %s: %s", user.id, exc.message)
            return _INVALIDATE
        if not user.is_approved:
            logger.info("Session rejected: user %s status is %s", user.id, user.status.value)
            return _INVALIDATE
        return GateResult(user=user)


def reconcile(claims: SessionClaims, user: User) -> None:
    """Raise IntegrityMismatchError if the token no longer matches the stored user."""
    stale = [
        name
        for name, claimed, stored in (
            ("email", claims.email, user.email),
            ("role", claims.role, user.role),
            ("status", claims.status, user.status),
        )
        if claimed != stored
    ]
    if stale:
        raise IntegrityMismatchError(f"stale claims: {', '.join(stale)}")
