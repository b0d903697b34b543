"""
auth/lifecycle.py -- User lifecycle: signup, login, and the admin state machine.

Status workflow (all admin-initiated except the initial assignment):

    (none)    --first signup-->  approved + admin   guard: store empty
    (none)    --later signup-->  pending  + user
    pending   --approve------->  approved
    pending   --reject-------->  rejected
    approved  --reject (ban)-->  rejected           guard: target is not an admin
    rejected  --unban--------->  pending            (re-vetting, never straight to approved)

There is no terminal state. Any status change aimed at the acting admin is
refused. Deletion is not a transition: it works from any status, is refused
on self, and is refused when it would remove the last approved admin.

Error policy:
  ValidationError / AuthenticationError / StatusBlockedError carry messages
  meant for the person at the login form. AuthorizationError is generic on
  purpose. ConflictError and NotFoundError go back to the admin UI.

Redirects are returned as data on SignupResult / LoginResult; the HTTP layer
performs them.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from typing import TYPE_CHECKING

from auth.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StatusBlockedError,
    ValidationError,
)
from auth.models import EffectiveLimits, LoginResult, Role, SignupResult, Status, User
from auth.passwords import DUMMY_HASH, hash_password, verify_password

if TYPE_CHECKING:
    from auth.store import UserStore
    from auth.tokens import SessionTokenService
    from core.config import Settings

logger = logging.getLogger("imagedrop.auth")

# Deliberately loose: one "@", no whitespace. Deliverability is not checked.
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+$")
EMAIL_MAX_LENGTH = 255

PENDING_MESSAGE = "Your account is pending approval."
REJECTED_MESSAGE = "Your account has been rejected."
SIGNUP_PENDING_MESSAGE = "Account created. An administrator must approve it before you can log in."

_BLOCKED_MESSAGES = {
    Status.pending: PENDING_MESSAGE,
    Status.rejected: REJECTED_MESSAGE,
}

CascadeHook = Callable[[str], None]


def initial_assignment(existing_users: int) -> tuple[Role, Status]:
    """Role and status for a new signup given how many users already exist."""
    if existing_users == 0:
        return Role.admin, Status.approved
    return Role.user, Status.pending


class UserLifecycleManager:
    """Signup, login, and admin operations on top of UserStore.

    Usage:
        manager = UserLifecycleManager(store, tokens, settings)
        result = manager.signup("a@example.com", "p@ssw0rd1")
        manager.approve(admin, other_user_id)
    """

    def __init__(self, store: UserStore, tokens: SessionTokenService, settings: Settings) -> None:
        self.store = store
        self.tokens = tokens
        self.settings = settings
        self._cascade_hooks: list[CascadeHook] = []

    def register_cascade(self, hook: CascadeHook) -> None:
        """Register a collaborator callback that removes data owned by a deleted user.

        Hooks run inside the delete transaction, in registration order. A hook
        that raises aborts the delete.
        """
        self._cascade_hooks.append(hook)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate_credentials(self, email: str, password: str) -> None:
        problems = []
        if not email or len(email) > EMAIL_MAX_LENGTH or not EMAIL_PATTERN.match(email):
            problems.append("Invalid email address.")
        min_len = self.settings.password_min_length
        max_len = self.settings.password_max_length
        if len(password or "") < min_len:
            problems.append(f"Password must be at least {min_len} characters long.")
        elif len(password.encode("utf-8")) > max_len:
            problems.append(f"Password must be at most {max_len} bytes long.")
        if problems:
            raise ValidationError(" ".join(problems))

    # ------------------------------------------------------------------
    # Public flows
    # ------------------------------------------------------------------

    def signup(self, email: str, password: str) -> SignupResult:
        """Register a new user.

        The first user ever becomes an approved admin and gets a session
        immediately. Later users start pending and get no session.

        Raises ValidationError or ConflictError (email taken).
        """
        self._validate_credentials(email, password)
        user = self.store.create_user(email, hash_password(password), initial_assignment)
        logger.info("Signup user_id=%s role=%s status=%s", user.id, user.role.value, user.status.value)
        if user.is_approved:
            token = self.tokens.issue(self.tokens.claims_for(user))
            return SignupResult(user=user, token=token, redirect_to="/")
        return SignupResult(user=user, message=SIGNUP_PENDING_MESSAGE)

    def login(self, email: str, password: str) -> LoginResult:
        """Verify credentials and issue a session for approved users.

        Always runs bcrypt whether or not the email exists so response time
        does not reveal registration. Status is checked only after the
        password matches; a wrong password on a pending account reads the
        same as any other wrong password.

        Raises ValidationError, AuthenticationError, or StatusBlockedError.
        """
        self._validate_credentials(email, password)
        found = self.store.get_credentials(email)
        if found is None:
            verify_password(password, DUMMY_HASH)
            logger.info("Login failed: unknown email")
            raise AuthenticationError()
        user, hashed = found
        if not verify_password(password, hashed):
            logger.info("Login failed: bad password user_id=%s", user.id)
            raise AuthenticationError()
        if not user.is_approved:
            logger.info("Login blocked user_id=%s status=%s", user.id, user.status.value)
            raise StatusBlockedError(user.status.value, _BLOCKED_MESSAGES[user.status])
        token = self.tokens.issue(self.tokens.claims_for(user))
        logger.info("Login ok user_id=%s", user.id)
        return LoginResult(user=user, token=token)

    # ------------------------------------------------------------------
    # Admin operations
    # ------------------------------------------------------------------

    def list_users(self, actor: User) -> list[User]:
        _require_admin(actor)
        return self.store.list_users()

    def approve(self, actor: User, user_id: str) -> User:
        """pending -> approved."""
        return self._transition(actor, user_id, Status.approved, allowed_from={Status.pending})

    def reject(self, actor: User, user_id: str) -> User:
        """pending -> rejected, or approved -> rejected (ban). Admins cannot be banned."""
        target = self._load_target(actor, user_id)
        if target.is_admin:
            raise ConflictError("Admin accounts cannot be rejected.")
        return self._transition(actor, user_id, Status.rejected, allowed_from={Status.pending, Status.approved})

    def unban(self, actor: User, user_id: str) -> User:
        """rejected -> pending."""
        return self._transition(actor, user_id, Status.pending, allowed_from={Status.rejected})

    def delete(self, actor: User, user_id: str) -> None:
        """Delete a user and everything the registered cascade hooks own.

        Raises NotFoundError, or ConflictError for self-deletion and for the
        last approved admin.
        """
        target = self._load_target(actor, user_id)
        if target.id == actor.id:
            raise ConflictError("You cannot delete your own account.")
        if not self.store.delete_user(user_id, on_delete=self._run_cascade):
            raise NotFoundError()
        logger.info("Admin %s deleted user %s", actor.id, user_id)

    def update_limits(self, actor: User, user_id: str, **limits) -> User:
        """Set or clear quota overrides. Pure data change; status is untouched.

        Accepts any subset of max_images, max_single_upload_size_mb,
        max_total_storage_mb. None clears an override. Negative values raise
        ValidationError.
        """
        _require_admin(actor)
        for name, value in limits.items():
            if value is not None and value < 0:
                raise ValidationError(f"{name} cannot be negative.")
        updated = self.store.update_limits(user_id, **limits)
        if updated is None:
            raise NotFoundError()
        logger.info("Admin %s updated limits for user %s: %s", actor.id, user_id, sorted(limits))
        return updated

    def effective_limits(self, user: User) -> EffectiveLimits:
        """Resolve per-user overrides against the global defaults in Settings."""
        limits = user.limits
        return EffectiveLimits(
            max_images=_first_set(limits.max_images, self.settings.default_max_images),
            max_single_upload_size_mb=_first_set(
                limits.max_single_upload_size_mb, self.settings.default_max_upload_size_mb
            ),
            max_total_storage_mb=_first_set(limits.max_total_storage_mb, self.settings.default_max_total_storage_mb),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load_target(self, actor: User, user_id: str) -> User:
        _require_admin(actor)
        target = self.store.get_by_id(user_id)
        if target is None:
            raise NotFoundError()
        return target

    def _transition(self, actor: User, user_id: str, new_status: Status, allowed_from: set[Status]) -> User:
        target = self._load_target(actor, user_id)
        if target.id == actor.id:
            raise ConflictError("You cannot change the status of your own account.")
        updated = self.store.update_status(user_id, new_status, allowed_from=allowed_from)
        if updated is None:
            raise NotFoundError()
        logger.info(
            "Admin %s moved user %s from %s to %s",
            actor.id,
            user_id,
            target.status.value,
            new_status.value,
        )
        return updated

    def _run_cascade(self, user_id: str) -> None:
        for hook in self._cascade_hooks:
            hook(user_id)


def _require_admin(actor: User | None) -> None:
    if actor is None or not actor.is_admin or not actor.is_approved:
        raise AuthorizationError()


def _first_set(override, default):
    return override if override is not None else default
