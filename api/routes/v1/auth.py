"""
api/routes/v1/auth.py -- Signup, login, logout, and current-user endpoints.

Routes:
  POST /api/v1/auth/signup   -- register; first user gets a session cookie
  POST /api/v1/auth/login    -- password login; sets session cookie
  POST /api/v1/auth/logout   -- clears cookie; 200
  GET  /api/v1/auth/me       -- current user + effective limits (requires auth)

Security:
  UserLifecycleManager.login() equalizes timing for unknown emails -- use it,
  never inline get_credentials() + verify_password().
  Cache-Control: no-store on signup and login responses.
  Domain errors (ValidationError, AuthenticationError, StatusBlockedError,
  ConflictError) propagate to the AuthError handler in api/main.py.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import CredentialsRequest, LoginResponse, MeResponse, MessageResponse, SignupResponse, UserResponse
from auth.dependencies import get_current_user
from auth.lifecycle import UserLifecycleManager
from auth.models import User
from auth.tokens import clear_session_cookie, set_session_cookie

# Auth policy:
# - POST /api/v1/auth/signup:  public
# - POST /api/v1/auth/login:   public
# - POST /api/v1/auth/logout:  public -- clearing a cookie needs no prior auth
# - GET  /api/v1/auth/me:      requires auth (get_current_user)
router = APIRouter()


@router.post("/auth/signup", response_model=SignupResponse, status_code=201)
def signup(request: Request, body: CredentialsRequest) -> JSONResponse:
    """Create an account.

    The very first account becomes an approved admin and is logged in right
    away. Every later account is pending until an admin approves it; no
    cookie is set for those.
    """
    manager: UserLifecycleManager = request.app.state.lifecycle
    result = manager.signup(body.email, body.password)
    resp = JSONResponse(
        status_code=201,
        content=SignupResponse(
            user=UserResponse.from_user(result.user),
            session_issued=result.session_issued,
            redirect_to=result.redirect_to,
            message=result.message,
        ).model_dump(mode="json"),
    )
    if result.token is not None:
        set_session_cookie(resp, result.token, request.app.state.settings)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: CredentialsRequest) -> JSONResponse:
    """Authenticate with email and password; set the session cookie.

    Wrong email and wrong password get the same "bad_credentials" error.
    A correct password on a pending or rejected account gets
    account_pending / account_rejected and no cookie.
    """
    manager: UserLifecycleManager = request.app.state.lifecycle
    result = manager.login(body.email, body.password)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            user=UserResponse.from_user(result.user),
            redirect_to=result.redirect_to,
        ).model_dump(mode="json"),
    )
    set_session_cookie(resp, result.token, request.app.state.settings)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/logout", response_model=MessageResponse)
async def logout() -> JSONResponse:
    """Clear the session cookie. The client performs the redirect."""
    resp = JSONResponse(content=MessageResponse(message="Logged out.", redirect_to="/login").model_dump())
    clear_session_cookie(resp)
    return resp


@router.get("/auth/me", response_model=MeResponse)
def me(request: Request, current_user: User = Depends(get_current_user)) -> MeResponse:
    """Return the authenticated user and their resolved upload limits."""
    manager: UserLifecycleManager = request.app.state.lifecycle
    return MeResponse.build(current_user, manager.effective_limits(current_user))
