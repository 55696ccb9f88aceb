"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and services do
the work; api/models.py owns the HTTP contract.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

# Profile attributes a user may edit. The credential hash is never in this set.
PROFILE_FIELDS: tuple[str, ...] = ("first_name", "last_name", "phone", "location", "bio")


@dataclass
class User:
    """A registered account.

    email is stored normalized (trimmed, lower-cased); uniqueness is therefore
    case-insensitive. hashed_password never leaves the auth layer -- use
    public_view() in auth/service.py to build outward-facing representations.
    """

    email: str
    hashed_password: str
    first_name: str = ""
    last_name: str = ""
    id: int | None = None
    phone: str | None = None
    location: str | None = None
    bio: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    last_login: str | None = None


@dataclass(frozen=True)
class TokenClaims:
    """Claims recovered from a verified session token."""

    subject_id: int
    issued_at: datetime
    expires_at: datetime
    token_id: str
    email: str | None = None


@dataclass
class AuthResult:
    """Outcome of a successful registration or login."""

    user: User
    token: str
    expires_in: int = 0
