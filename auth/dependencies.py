"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Tokens arrive as `Authorization: Bearer <token>`. That header format is the
one wire convention existing clients rely on; no cookie or query-string
fallback is accepted.

get_token_claims() verifies the token and returns its claims.
get_current_user() additionally re-loads the subject from the store, so an
account removed after the token was issued is rejected even though the
token itself is still valid.

Both raise UnauthenticatedError; api/main.py renders it as a 401 with a
WWW-Authenticate: Bearer header.

Layer rule: no imports from api/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Depends, Request

from auth.errors import UnauthenticatedError
from auth.models import TokenClaims, User
from auth.service import authenticate
from auth.store import UserStore
from auth.tokens import TokenService

_BEARER_PREFIX = "bearer "


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token from an Authorization header value, or None.

    The scheme is matched case-insensitively; surrounding whitespace is ignored.
    """
    if not authorization:
        return None
    value = authorization.strip()
    if value[: len(_BEARER_PREFIX)].lower() != _BEARER_PREFIX:
        return None
    token = value[len(_BEARER_PREFIX) :].strip()
    return token or None


def get_token_claims(request: Request) -> TokenClaims:
    """Require a valid Bearer token. Raises UnauthenticatedError otherwise."""
    tokens: TokenService = request.app.state.token_service
    token = extract_bearer_token(request.headers.get("Authorization"))
    return authenticate(tokens, token)


def get_current_user(request: Request, claims: TokenClaims = Depends(get_token_claims)) -> User:
    """Require a valid token whose subject still exists.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(get_current_user)): ...
    """
    user_store: UserStore = request.app.state.user_store
    user = user_store.get_by_id(claims.subject_id)
    if user is None:
        raise UnauthenticatedError()
    return user
