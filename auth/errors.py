"""
auth/errors.py -- Exception taxonomy for the auth subsystem.

Every error the lifecycle, store, and gate raise derives from AuthError and
carries a machine-readable code plus the HTTP status the API layer maps it
to. api/main.py registers one exception handler for AuthError, so route
handlers never translate these by hand.

Two errors are never shown to a client:
  IntegrityMismatchError -- token claims disagree with the store. The gate
      catches it and silently invalidates the session.
  InvalidTokenError -- bad signature, malformed token, or expiry. Same
      treatment as above.

Layer rule: no imports from api/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class. Subclasses override code and status_code."""

    code = "auth_error"
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(AuthError):
    """Malformed email or password shape."""

    code = "validation_error"
    status_code = 422


class AuthenticationError(AuthError):
    """Unknown email or wrong password. One message for both cases."""

    code = "bad_credentials"
    status_code = 401

    def __init__(self, message: str = "Invalid email or password.") -> None:
        super().__init__(message)


class StatusBlockedError(AuthError):
    """Correct credentials, but the account is not approved."""

    status_code = 403

    def __init__(self, status: str, message: str) -> None:
        super().__init__(message)
        self.status = status
        self.code = f"account_{status}"


class AuthorizationError(AuthError):
    """Caller lacks the admin role. The message never says why."""

    code = "forbidden"
    status_code = 403

    def __init__(self, message: str = "Admin access required.") -> None:
        super().__init__(message)


class ConflictError(AuthError):
    """Duplicate email, self-targeting, illegal transition, or last-admin guard."""

    code = "conflict"
    status_code = 409


class NotFoundError(AuthError):
    code = "not_found"
    status_code = 404

    def __init__(self, message: str = "User not found.") -> None:
        super().__init__(message)


class InvalidTokenError(AuthError):
    code = "invalid_token"
    status_code = 401


class IntegrityMismatchError(AuthError):
    code = "session_mismatch"
    status_code = 401


class StoreIntegrityError(AuthError):
    """A stored row failed schema validation (unknown role/status value)."""

    code = "internal_error"
    status_code = 500
