"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The session token is read from, in priority order:
  1. The "session_token" cookie -- set by signup / login.
  2. Authorization: Bearer <token> -- for non-browser clients.

Both converge on AuthorizationGate.resolve(). When the gate says the session
is stale, request.state.invalidate_session is set and the middleware in
api/main.py deletes the cookie on the outgoing response, whatever the route
returned.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises HTTP 401 if unauthenticated.
require_admin() wraps get_current_user() and raises HTTP 403 if not admin.

Layer rule: this module may import from fastapi because it is part of the
dependency injection system. No imports from api/.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.gate import AuthorizationGate
from auth.models import User
from auth.tokens import SESSION_COOKIE


def _extract_token(request: Request) -> str | None:
    token = request.cookies.get(SESSION_COOKIE)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
    return token or None


def try_get_current_user(request: Request) -> User | None:
    """Resolve the request's identity. Returns the User or None. Never raises."""
    gate: AuthorizationGate = request.app.state.gate
    result = gate.resolve(_extract_token(request))
    if result.invalidate:
        request.state.invalidate_session = True
    return result.user


def get_current_user(request: Request) -> User:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: User = Depends(get_current_user)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return user


def require_admin(request: Request) -> User:
    """Require admin role. Raises HTTP 401 if unauthenticated, HTTP 403 if not admin.

    The 403 message is the same for every non-admin; it does not say what
    the caller is missing.
    """
    user = get_current_user(request)
    if not user.is_admin:
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "Admin access required."},
        )
    return user
