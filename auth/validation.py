"""
auth/validation.py -- The single input policy for registration, login and profile edits.

One canonical rule set, chosen once:
  password    8..128 chars (minimum configurable via PASSWORD_MIN_LENGTH),
              at least one lowercase, one uppercase, one digit, one symbol
  email       valid address, at most 255 chars, stored trimmed + lower-cased
  names       2..50 chars after trimming
  phone       optional, ^\\+?[1-9]\\d{1,14}$
  location    optional, at most 255 chars
  bio         optional, at most 1000 chars

The Pydantic models below double as FastAPI request bodies (api/ imports them)
and as the input to validate(), which returns a ValidationResult with
structured field errors for callers outside the HTTP layer (CLI, scripts).

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Annotated, Any, Generic, Optional, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    StringConstraints,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_core import PydanticCustomError

from auth.passwords import MAX_PASSWORD_LENGTH
from core.config import get_settings

PHONE_PATTERN = r"^\+?[1-9]\d{1,14}$"
MAX_EMAIL_LENGTH = 255

# ---------------------------------------------------------------------------
# Password policy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PasswordPolicy:
    """Complexity rules for new passwords. Existing passwords are never re-checked at login."""

    min_length: int = 8
    max_length: int = MAX_PASSWORD_LENGTH
    require_lower: bool = True
    require_upper: bool = True
    require_digit: bool = True
    require_symbol: bool = True

    def problems(self, password: str) -> list[str]:
        """Return human-readable violations, empty when the password is acceptable."""
        found: list[str] = []
        if len(password) < self.min_length:
            found.append(f"Password must be at least {self.min_length} characters long.")
        if len(password) > self.max_length:
            found.append(f"Password must be at most {self.max_length} characters long.")
        if self.require_lower and not re.search(r"[a-z]", password):
            found.append("Password must contain at least one lowercase letter.")
        if self.require_upper and not re.search(r"[A-Z]", password):
            found.append("Password must contain at least one uppercase letter.")
        if self.require_digit and not re.search(r"[0-9]", password):
            found.append("Password must contain at least one number.")
        if self.require_symbol and not re.search(r"[^a-zA-Z0-9]", password):
            found.append("Password must contain at least one special character.")
        return found


@lru_cache
def get_password_policy() -> PasswordPolicy:
    return PasswordPolicy(min_length=get_settings().password_min_length)


def _check_new_password(value: str) -> str:
    problems = get_password_policy().problems(value)
    if problems:
        raise PydanticCustomError("password_policy", problems[0])
    return value


def _normalize_email(value: str) -> str:
    value = value.strip().lower()
    if len(value) > MAX_EMAIL_LENGTH:
        raise PydanticCustomError("email_too_long", f"Email must be at most {MAX_EMAIL_LENGTH} characters.")
    return value


# ---------------------------------------------------------------------------
# Field types
# ---------------------------------------------------------------------------

Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=50)]
Phone = Annotated[str, StringConstraints(strip_whitespace=True, pattern=PHONE_PATTERN)]
Location = Annotated[str, StringConstraints(strip_whitespace=True, max_length=255)]
Bio = Annotated[str, StringConstraints(strip_whitespace=True, max_length=1000)]


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Body for POST /api/v1/auth/register."""

    model_config = ConfigDict(extra="ignore")

    email: EmailStr
    password: str
    first_name: Name
    last_name: Name
    phone: Optional[Phone] = None
    location: Optional[Location] = None
    bio: Optional[Bio] = None

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return _normalize_email(value)

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        return _check_new_password(value)

    def profile(self) -> dict:
        """Profile attributes only -- never includes the password."""
        return self.model_dump(exclude={"email", "password"})


class LoginRequest(BaseModel):
    """Body for POST /api/v1/auth/login.

    No complexity rules here: a password set under an older policy must still
    be able to log in.
    """

    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return _normalize_email(value)


class ProfileUpdate(BaseModel):
    """Body for PUT /api/v1/users/profile. Only the fields sent are changed."""

    model_config = ConfigDict(extra="forbid")

    first_name: Optional[Name] = None
    last_name: Optional[Name] = None
    phone: Optional[Phone] = None
    location: Optional[Location] = None
    bio: Optional[Bio] = None

    @model_validator(mode="after")
    def require_one_field(self) -> "ProfileUpdate":
        if not self.model_fields_set:
            raise PydanticCustomError("no_fields", "At least one field must be provided for update.")
        for name in ("first_name", "last_name"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise PydanticCustomError("required_field", f"{name} cannot be cleared.")
        return self

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class PasswordChange(BaseModel):
    """Body for PUT /api/v1/users/password."""

    current_password: str = Field(min_length=1)
    new_password: str

    @field_validator("new_password")
    @classmethod
    def check_new_password(cls, value: str) -> str:
        return _check_new_password(value)

    @model_validator(mode="after")
    def must_differ(self) -> "PasswordChange":
        if self.current_password == self.new_password:
            raise PydanticCustomError("password_unchanged", "New password must differ from the current password.")
        return self


# ---------------------------------------------------------------------------
# validate()
# ---------------------------------------------------------------------------

M = TypeVar("M", bound=BaseModel)


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str


@dataclass
class ValidationResult(Generic[M]):
    ok: bool
    data: Optional[M] = None
    field_errors: list[FieldError] = field(default_factory=list)


def field_errors(errors: list[dict], strip_prefix: tuple[str, ...] = ()) -> list[FieldError]:
    """Convert Pydantic error dicts into FieldError entries.

    strip_prefix drops leading location parts such as FastAPI's "body".
    Errors raised by a model_validator have no field location and are
    reported under "__root__".
    """
    result: list[FieldError] = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ())]
        while loc and loc[0] in strip_prefix:
            loc.pop(0)
        result.append(FieldError(field=".".join(loc) or "__root__", message=err.get("msg", "Invalid value.")))
    return result


def validate(schema: type[M], raw: Any) -> ValidationResult[M]:
    """Validate raw input against schema without raising.

    Usage:
        result = validate(RegisterRequest, {"email": "a@x.com", ...})
        if not result.ok:
            for err in result.field_errors: print(err.field, err.message)
    """
    try:
        return ValidationResult(ok=True, data=schema.model_validate(raw))
    except ValidationError as exc:
        return ValidationResult(ok=False, field_errors=field_errors(exc.errors()))
