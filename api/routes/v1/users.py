"""
api/routes/v1/users.py -- Admin user management endpoints.

Routes:
  GET    /api/v1/users                  -- list all users (oldest first)
  POST   /api/v1/users/{id}/approve     -- pending  -> approved
  POST   /api/v1/users/{id}/reject      -- pending/approved -> rejected (ban)
  POST   /api/v1/users/{id}/unban       -- rejected -> pending
  DELETE /api/v1/users/{id}             -- delete user and owned data
  PATCH  /api/v1/users/{id}/limits      -- set / clear quota overrides

Every route depends on require_admin. The state machine rules (self-target,
last admin, admins cannot be banned, illegal transitions) live in
UserLifecycleManager and surface as 409 / 404 via the AuthError handler.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.models import LimitsPatch, UserResponse
from auth.dependencies import require_admin
from auth.lifecycle import UserLifecycleManager
from auth.models import User

# Auth policy: every route here requires admin (require_admin).
router = APIRouter()


def _manager(request: Request) -> UserLifecycleManager:
    return request.app.state.lifecycle


@router.get("/users", response_model=list[UserResponse])
def list_users(request: Request, admin: User = Depends(require_admin)) -> list[UserResponse]:
    return [UserResponse.from_user(u) for u in _manager(request).list_users(admin)]


@router.post("/users/{user_id}/approve", response_model=UserResponse)
def approve_user(request: Request, user_id: str, admin: User = Depends(require_admin)) -> UserResponse:
    return UserResponse.from_user(_manager(request).approve(admin, user_id))


@router.post("/users/{user_id}/reject", response_model=UserResponse)
def reject_user(request: Request, user_id: str, admin: User = Depends(require_admin)) -> UserResponse:
    """Reject a pending user or ban an approved one. Admins cannot be rejected."""
    return UserResponse.from_user(_manager(request).reject(admin, user_id))


@router.post("/users/{user_id}/unban", response_model=UserResponse)
def unban_user(request: Request, user_id: str, admin: User = Depends(require_admin)) -> UserResponse:
    """Send a rejected user back to pending for re-vetting."""
    return UserResponse.from_user(_manager(request).unban(admin, user_id))


@router.delete("/users/{user_id}", status_code=204)
def delete_user(request: Request, user_id: str, admin: User = Depends(require_admin)) -> Response:
    _manager(request).delete(admin, user_id)
    return Response(status_code=204)


@router.patch("/users/{user_id}/limits", response_model=UserResponse)
def update_limits(
    request: Request,
    user_id: str,
    body: LimitsPatch,
    admin: User = Depends(require_admin),
) -> UserResponse:
    """Partial update of quota overrides. Only fields present in the body change."""
    updated = _manager(request).update_limits(admin, user_id, **body.model_dump(exclude_unset=True))
    return UserResponse.from_user(updated)
