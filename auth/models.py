"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Dataclasses own
domain shape; the store, lifecycle manager, and routes do the work.

Role and Status are str-enums so they compare equal to their stored string
values and serialize to JSON without a custom encoder. The store converts
raw column values into these enums at the boundary -- nothing past
auth/store.py sees a free-form role or status string.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class Role(str, Enum):
    admin = "admin"
    user = "user"


class Status(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


@dataclass(frozen=True)
class UserLimits:
    """Per-user quota overrides. None means "inherit the global default".

    Consumed by the image upload collaborator; this package only stores and
    resolves them.
    """

    max_images: Optional[int] = None
    max_single_upload_size_mb: Optional[float] = None
    max_total_storage_mb: Optional[float] = None


@dataclass
class User:
    """Hash-stripped projection of a user record.

    This is the only user shape that leaves auth/store.py. The bcrypt hash is
    returned solely by UserStore.get_credentials() for the login path.
    """

    id: str
    email: str
    role: Role
    status: Status
    limits: UserLimits = field(default_factory=UserLimits)
    created_at: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.admin

    @property
    def is_approved(self) -> bool:
        return self.status == Status.approved


@dataclass(frozen=True)
class SessionClaims:
    """Data carried inside a signed session token.

    issued_at / expires_at are Unix epoch seconds (JWT iat / exp).
    """

    user_id: str
    email: str
    role: Role
    status: Status
    issued_at: int
    expires_at: int


@dataclass(frozen=True)
class GateResult:
    """Outcome of resolving a session token for one request.

    invalidate=True tells the HTTP layer to delete the session cookie. It is
    False for anonymous requests that presented no token at all.
    """

    user: Optional[User] = None
    invalidate: bool = False


@dataclass
class SignupResult:
    """Returned by UserLifecycleManager.signup().

    The first user gets a session right away (token + redirect_to). Everyone
    else gets message and no token until an admin approves them.
    """

    user: User
    token: Optional[str] = None
    redirect_to: Optional[str] = None
    message: Optional[str] = None

    @property
    def session_issued(self) -> bool:
        return self.token is not None


@dataclass
class LoginResult:
    user: User
    token: str
    redirect_to: str = "/"


@dataclass(frozen=True)
class EffectiveLimits:
    """Per-user overrides resolved against global defaults."""

    max_images: Optional[int]
    max_single_upload_size_mb: Optional[float]
    max_total_storage_mb: Optional[float]
