"""
auth/errors.py -- Error taxonomy for credential and session operations.

Every error carries a stable machine-readable code, a message that is safe to
show to an end user, and the HTTP status the API layer maps it to. Messages
never include plaintext passwords, hashes, tokens, secrets, or the reason a
token was rejected.

  InvalidInputError       -- malformed or oversized plaintext (422)
  DuplicateEmailError     -- registration conflict (409)
  InvalidCredentialsError -- wrong email OR wrong password, deliberately one error (401)
  UnauthenticatedError    -- missing, invalid, expired or revoked token (401)
  InternalError           -- collaborator failure; details logged, never returned (500)

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for all errors the auth layer lets escape to callers."""

    code: str = "auth_error"
    message: str = "Authentication error."
    status_code: int = 400

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class InvalidInputError(AuthError):
    code = "invalid_input"
    message = "Invalid input."
    status_code = 422


class DuplicateEmailError(AuthError):
    code = "email_exists"
    message = "Email already registered."
    status_code = 409


class InvalidCredentialsError(AuthError):
    # Same message for unknown email and wrong password -- do not specialize.
    code = "invalid_credentials"
    message = "Invalid email or password."
    status_code = 401


class UnauthenticatedError(AuthError):
    code = "unauthorized"
    message = "Authentication required."
    status_code = 401


class InternalError(AuthError):
    code = "internal_error"
    message = "An unexpected error occurred."
    status_code = 500
