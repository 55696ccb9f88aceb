"""
auth/service.py -- Registration, login and session operations.

These functions join the credential manager (auth/passwords.py), the token
service (auth/tokens.py) and the user store (auth/store.py). Route handlers
call them and translate AuthError subclasses into HTTP responses; the CLI and
tests call them directly.

  register_user   hash -> store.create_user -> tokens.issue
  login_user      store.get_by_email -> verify_password -> tokens.issue
  authenticate    tokens.verify (the caller re-checks the subject in the store)

Security:
  [T1] login_user() always runs bcrypt, whether or not the email exists. An
       unknown email verifies against a dummy hash, so response time does not
       reveal which emails are registered. Unknown email and wrong password
       raise the same InvalidCredentialsError.
  [T2] Store failures (SQLAlchemyError) are logged here with traceback and
       re-raised as InternalError, which carries no internal detail.
  [T3] Log lines name users by id or normalized email only -- never by
       password, hash or token.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict

from sqlalchemy.exc import SQLAlchemyError

from auth.errors import (
    DuplicateEmailError,
    InternalError,
    InvalidCredentialsError,
    InvalidInputError,
    UnauthenticatedError,
)
from auth.models import PROFILE_FIELDS, AuthResult, TokenClaims, User
from auth.passwords import dummy_verify, hash_password, needs_rehash, verify_password
from auth.store import UserStore, normalize_email
from auth.tokens import TokenService

logger = logging.getLogger("profileauth.auth")


@contextmanager
def _store_errors(action: str) -> Iterator[None]:
    """Convert unexpected persistence failures into an opaque InternalError [T2]."""
    try:
        yield
    except SQLAlchemyError as exc:
        logger.exception("User store failure during %s", action)
        raise InternalError() from exc


def public_view(user: User) -> dict:
    """Return the user as a plain dict without the credential hash."""
    data = asdict(user)
    data.pop("hashed_password", None)
    return data


# ---------------------------------------------------------------------------
# Registration / login
# ---------------------------------------------------------------------------


def register_user(
    store: UserStore,
    tokens: TokenService,
    email: str,
    password: str,
    profile: dict | None = None,
) -> AuthResult:
    """Create an account and open a session for it.

    Raises:
        InvalidInputError:   email is blank, or password is empty or too long.
        DuplicateEmailError: the email (compared case-insensitively) is taken.
        InternalError:       the store failed unexpectedly.
    """
    normalized = normalize_email(email or "")
    if not normalized:
        raise InvalidInputError("Email is required.")
    hashed = hash_password(password)
    fields = {k: v for k, v in (profile or {}).items() if k in PROFILE_FIELDS and v is not None}

    with _store_errors("registration"):
        try:
            user_id = store.create_user(User(email=normalized, hashed_password=hashed, **fields))
        except DuplicateEmailError:
            logger.info("Registration rejected: email already registered (%s)", normalized)
            raise
        user = store.get_by_id(user_id)
    if user is None:
        raise InternalError()

    logger.info("Registered user %d", user_id)
    token = tokens.issue(user_id, email=user.email)
    return AuthResult(user=user, token=token, expires_in=tokens.expire_seconds)


def login_user(store: UserStore, tokens: TokenService, email: str, password: str) -> AuthResult:
    """Verify email + password and open a session [T1].

    Raises InvalidCredentialsError for an unknown email and for a wrong
    password alike -- do not split these cases.
    """
    with _store_errors("login"):
        user = store.get_by_email(email or "")
    if user is None:
        dummy_verify(password)
        logger.info("Login failed for unknown account")
        raise InvalidCredentialsError()
    if not verify_password(password, user.hashed_password):
        logger.info("Login failed for user %d", user.id)
        raise InvalidCredentialsError()

    with _store_errors("login"):
        if needs_rehash(user.hashed_password):
            store.update_user(user.id, hashed_password=hash_password(password))
        store.update_last_login(user.id)
        user = store.get_by_id(user.id) or user

    token = tokens.issue(user.id, email=user.email)
    return AuthResult(user=user, token=token, expires_in=tokens.expire_seconds)


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


def authenticate(tokens: TokenService, bearer_token: str | None) -> TokenClaims:
    """Return the claims of a valid token, or raise UnauthenticatedError.

    Missing, malformed, forged, expired and revoked tokens all raise the same
    error. Subject freshness (does the account still exist?) is the caller's
    check -- see auth/dependencies.py.
    """
    claims = tokens.verify(bearer_token) if bearer_token else None
    if claims is None:
        raise UnauthenticatedError()
    return claims


def refresh_session(store: UserStore, tokens: TokenService, claims: TokenClaims) -> AuthResult:
    """Issue a fresh token for a still-valid session and revoke the presented one."""
    with _store_errors("refresh"):
        user = store.get_by_id(claims.subject_id)
    if user is None:
        raise UnauthenticatedError()
    token = tokens.issue(user.id, email=user.email)
    tokens.revoke(claims)
    return AuthResult(user=user, token=token, expires_in=tokens.expire_seconds)


def logout(tokens: TokenService, claims: TokenClaims) -> bool:
    """Revoke the presented token. Returns False if revocation is not configured."""
    revoked = tokens.revoke(claims)
    logger.info(
        "User %d logged out (revoked=%s, %ds left on token)",
        claims.subject_id,
        revoked,
        tokens.remaining_seconds(claims),
    )
    return revoked


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


def update_profile(store: UserStore, user_id: int, changes: dict) -> User:
    """Apply profile changes and return the updated user.

    Only PROFILE_FIELDS are accepted; the credential hash and email cannot be
    changed through this path.
    """
    unknown = set(changes) - set(PROFILE_FIELDS)
    if unknown:
        raise InvalidInputError(f"Unknown profile fields: {', '.join(sorted(unknown))}.")
    if not changes:
        raise InvalidInputError("At least one field must be provided for update.")
    with _store_errors("profile update"):
        if not store.update_user(user_id, **changes):
            raise UnauthenticatedError()
        user = store.get_by_id(user_id)
    if user is None:
        raise UnauthenticatedError()
    return user


def change_password(store: UserStore, user_id: int, current_password: str, new_password: str) -> None:
    """Replace the user's password after re-verifying the current one.

    Raises InvalidCredentialsError if current_password is wrong.
    Existing tokens stay valid until they expire.
    """
    with _store_errors("password change"):
        user = store.get_by_id(user_id)
    if user is None:
        raise UnauthenticatedError()
    if not verify_password(current_password, user.hashed_password):
        logger.info("Password change rejected for user %d", user_id)
        raise InvalidCredentialsError()
    hashed = hash_password(new_password)
    with _store_errors("password change"):
        store.update_user(user_id, hashed_password=hashed)
    logger.info("Password changed for user %d", user_id)
