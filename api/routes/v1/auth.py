"""
api/routes/v1/auth.py -- Registration, login and session endpoints.

Routes:
  POST /api/v1/auth/register   -- create account; returns user + token (201)
  POST /api/v1/auth/login      -- password login; returns user + token
  GET  /api/v1/auth/verify     -- validate the Bearer token; returns the user
  POST /api/v1/auth/refresh    -- swap a valid token for a fresh one
  POST /api/v1/auth/logout     -- revoke the presented token

Security:
  [H1] /register and /login are rate-limited per client IP (slowapi).
  [H2] login_user() provides timing equalization -- use it, never inline
       get_by_email() + verify_password().
  [H3] Cache-Control: no-store on every response that carries a token.
  Errors raised by auth/service.py (DuplicateEmailError,
  InvalidCredentialsError, UnauthenticatedError, ...) are rendered by the
  AuthError handler in api/main.py; handlers here only cover the happy path.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_limit, register_limit
from api.models import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    TokenResponse,
    UserEnvelope,
    UserPublic,
)
from auth.dependencies import get_current_user, get_token_claims
from auth.models import AuthResult, TokenClaims, User
from auth.service import login_user, logout, refresh_session, register_user
from auth.store import UserStore
from auth.tokens import TokenService

# Auth policy:
# - POST /api/v1/auth/register: public, rate limited
# - POST /api/v1/auth/login:    public, rate limited
# - GET  /api/v1/auth/verify:   requires Bearer token (get_current_user)
# - POST /api/v1/auth/refresh:  requires Bearer token (get_token_claims)
# - POST /api/v1/auth/logout:   requires Bearer token (get_token_claims)
router = APIRouter()


def _no_store(resp: JSONResponse) -> JSONResponse:
    resp.headers["Cache-Control"] = "no-store"  # [H3]
    return resp


def _auth_response(result: AuthResult, status_code: int = 200) -> JSONResponse:
    body = AuthResponse(
        token=result.token,
        token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
        expires_in=result.expires_in,
        user=UserPublic.from_user(result.user),
    )
    return _no_store(JSONResponse(status_code=status_code, content=body.model_dump()))


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=AuthResponse, status_code=201)
@limiter.limit(register_limit)  # [H1] below @router so the registered endpoint is the limited wrapper
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create an account and return it with a fresh session token.

    Email is compared case-insensitively; a taken email yields 409
    email_exists.
    """
    user_store: UserStore = request.app.state.user_store
    tokens: TokenService = request.app.state.token_service
    result = register_user(user_store, tokens, body.email, body.password, body.profile())
    return _auth_response(result, status_code=201)


@router.post("/auth/login", response_model=AuthResponse)
@limiter.limit(login_limit)  # [H1]
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password.

    Wrong password and unknown email return the same 401
    invalid_credentials [H2].
    """
    user_store: UserStore = request.app.state.user_store
    tokens: TokenService = request.app.state.token_service
    result = login_user(user_store, tokens, body.email, body.password)
    return _auth_response(result)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/verify", response_model=UserEnvelope)
def verify(current_user: User = Depends(get_current_user)) -> UserEnvelope:
    """Return the user the presented token belongs to."""
    return UserEnvelope(user=UserPublic.from_user(current_user))


@router.post("/auth/refresh", response_model=TokenResponse)
def refresh(request: Request, claims: TokenClaims = Depends(get_token_claims)) -> JSONResponse:
    """Issue a new token and revoke the one presented."""
    user_store: UserStore = request.app.state.user_store
    tokens: TokenService = request.app.state.token_service
    result = refresh_session(user_store, tokens, claims)
    body = TokenResponse(token=result.token, expires_in=result.expires_in)
    return _no_store(JSONResponse(content=body.model_dump()))


@router.post("/auth/logout", response_model=MessageResponse)
def logout_route(request: Request, claims: TokenClaims = Depends(get_token_claims)) -> MessageResponse:
    """Revoke the presented token. Clients should also discard it locally."""
    tokens: TokenService = request.app.state.token_service
    logout(tokens, claims)
    return MessageResponse(message="Logged out.")
