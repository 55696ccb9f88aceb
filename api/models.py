"""
API request and response models for ProfileAuth REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Request bodies are the validation schemas from auth/validation.py, re-exported
here so routes import their whole contract from one place. No response model
has a password or hash field, so neither can leak through serialization.
"""

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict

from auth.models import User
from auth.service import public_view
from auth.validation import LoginRequest, PasswordChange, ProfileUpdate, RegisterRequest

__all__ = [
    "AuthResponse",
    "ErrorDetail",
    "ErrorResponse",
    "FieldErrorItem",
    "HealthResponse",
    "LoginRequest",
    "MessageResponse",
    "PasswordChange",
    "ProfileUpdate",
    "RegisterRequest",
    "TokenResponse",
    "UserEnvelope",
    "UserPublic",
]

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class FieldErrorItem(BaseModel):
    """One failed field in a validation error."""

    model_config = ConfigDict(frozen=True)

    field: str
    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[Union[str, list[FieldErrorItem]]] = None


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


class MessageResponse(BaseModel):
    message: str


# ---------------------------------------------------------------------------
# Users and sessions
# ---------------------------------------------------------------------------


class UserPublic(BaseModel):
    """Outward-facing view of a user record."""

    id: int
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    location: Optional[str] = None
    bio: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    last_login: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserPublic":
        return cls(**public_view(user))


class UserEnvelope(BaseModel):
    """Response for GET /auth/verify, GET and PUT /users/profile."""

    user: UserPublic


class TokenResponse(BaseModel):
    """Response for POST /auth/refresh."""

    token: str
    token_type: str = "bearer"
    expires_in: int


class AuthResponse(TokenResponse):
    """Response for POST /auth/register and POST /auth/login."""

    user: UserPublic
