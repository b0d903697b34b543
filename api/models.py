"""
API request and response models for ImageDrop auth REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Separation of concerns: auth/ models = domain truth; api/ models = API contract.
No response model has a password or hash field.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import EffectiveLimits, User

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RoleEnum(str, Enum):
    admin = "admin"
    user = "user"


class StatusEnum(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class CredentialsRequest(BaseModel):
    """Request body for POST /api/v1/auth/signup and /login.

    Only transport-level bounds here. Email shape and password length rules
    live in UserLifecycleManager so every caller gets the same checks.
    """

    model_config = ConfigDict(str_strip_whitespace=False)

    email: str = Field(max_length=255)
    password: str = Field(max_length=255)


class LimitsPatch(BaseModel):
    """Request body for PATCH /api/v1/users/{id}/limits.

    Partial update: omitted fields are left as they are, explicit null clears
    the override so the user inherits the global default.
    """

    model_config = ConfigDict(extra="forbid")

    max_images: Optional[int] = Field(default=None, ge=0)
    max_single_upload_size_mb: Optional[float] = Field(default=None, ge=0)
    max_total_storage_mb: Optional[float] = Field(default=None, ge=0)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class LimitsResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_images: Optional[int] = None
    max_single_upload_size_mb: Optional[float] = None
    max_total_storage_mb: Optional[float] = None


class UserResponse(BaseModel):
    """Public view of a user. Used by /auth/me and the admin user table."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    role: RoleEnum
    status: StatusEnum
    limits: LimitsResponse
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        """Factory Method -- the mapping lives next to the output model."""
        return cls(
            id=user.id,
            email=user.email,
            role=RoleEnum(user.role.value),
            status=StatusEnum(user.status.value),
            limits=LimitsResponse(
                max_images=user.limits.max_images,
                max_single_upload_size_mb=user.limits.max_single_upload_size_mb,
                max_total_storage_mb=user.limits.max_total_storage_mb,
            ),
            created_at=user.created_at or "",
        )


class SignupResponse(BaseModel):
    """Response for POST /api/v1/auth/signup.

    session_issued is true only for the first user (approved admin). Pending
    users get message and no cookie.
    """

    model_config = ConfigDict(frozen=True)

    user: UserResponse
    session_issued: bool
    redirect_to: Optional[str] = None
    message: Optional[str] = None


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: UserResponse
    redirect_to: str


class MeResponse(BaseModel):
    """Response for GET /api/v1/auth/me: the identity plus resolved quotas."""

    model_config = ConfigDict(frozen=True)

    user: UserResponse
    effective_limits: LimitsResponse

    @classmethod
    def build(cls, user: User, limits: EffectiveLimits) -> "MeResponse":
        return cls(
            user=UserResponse.from_user(user),
            effective_limits=LimitsResponse(
                max_images=limits.max_images,
                max_single_upload_size_mb=limits.max_single_upload_size_mb,
                max_total_storage_mb=limits.max_total_storage_mb,
            ),
        )


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    redirect_to: Optional[str] = None


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
