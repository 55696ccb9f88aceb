"""
auth/tokens.py -- Session token issuance and verification.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       sub (user id), iat, exp, jti, iss, aud and optionally email.
       verify() returns None on ANY failure -- bad structure, bad signature,
       wrong algorithm, wrong issuer/audience, missing claims, expired,
       revoked. The caller cannot tell which check failed, so the endpoint
       is not an oracle for forgery attempts. The route layer turns None
       into a 401.

  Algorithm confusion: decode() is called with algorithms=[HS256] only.
       A token whose header declares "none", HS512, RS256, ... is rejected
       before its signature is even considered.

  Expiry: checked here against the injected clock rather than by jose, so
       tests can advance time and the boundary is exact: valid while
       now < exp, invalid from now >= exp onward.

  Revocation: optional RevokedTokenStore collaborator keyed by jti. Without
       one, tokens stay valid until they expire.

  SECRET_KEY: sourced from core.config.get_settings(). Settings refuses to
       load without a key in production and rejects short keys, so a
       TokenService can never be built on a guessable default.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from jose import JWTError, jwt

from auth.models import TokenClaims

if TYPE_CHECKING:
    from auth.denylist import RevokedTokenStore
    from core.config import Settings

logger = logging.getLogger("profileauth.auth")

ALGORITHM = "HS256"

# One year. Settings.token_expire_seconds carries the same ceiling.
MAX_EXPIRE_SECONDS = 365 * 86400

# Expiry is enforced against self._clock below. The require_* options are not
# used: jose turns each one back into the matching verify_* check.
_DECODE_OPTIONS = {"verify_exp": False}

_REQUIRED_CLAIMS = ("sub", "iat", "exp", "jti", "iss", "aud")


def _check_ttl(seconds: int) -> None:
    if not 0 <= seconds <= MAX_EXPIRE_SECONDS:
        raise ValueError(f"expire_seconds must be between 0 and {MAX_EXPIRE_SECONDS}.")


class TokenService:
    """Issues and verifies signed, expiring session tokens.

    Stateless apart from read-only configuration; one instance is built at
    startup and shared by every request.

    Usage:
        tokens = TokenService.from_settings(get_settings())
        token = tokens.issue(user.id, email=user.email)
        claims = tokens.verify(token)   # TokenClaims or None
    """

    def __init__(
        self,
        secret_key: str,
        expire_seconds: int = 86400,
        issuer: str = "profileauth",
        audience: str = "profileauth-users",
        denylist: RevokedTokenStore | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not secret_key:
            raise ValueError("TokenService requires a non-empty secret key.")
        _check_ttl(expire_seconds)
        self._secret_key = secret_key
        self.expire_seconds = expire_seconds
        self.issuer = issuer
        self.audience = audience
        self._denylist = denylist
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        denylist: RevokedTokenStore | None = None,
        clock: Callable[[], float] = time.time,
    ) -> TokenService:
        return cls(
            secret_key=settings.secret_key,
            expire_seconds=settings.token_expire_seconds,
            issuer=settings.token_issuer,
            audience=settings.token_audience,
            denylist=denylist,
            clock=clock,
        )

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def issue(self, subject_id: int, email: str | None = None, expire_seconds: int | None = None) -> str:
        """Encode a signed token for subject_id.

        Args:
            subject_id:     Stable user identifier (database primary key).
            email:          Optional email claim, informational only.
            expire_seconds: Override for the configured TTL. 0 issues a token
                            that is already expired.
        """
        ttl = self.expire_seconds if expire_seconds is None else expire_seconds
        _check_ttl(ttl)
        issued_at = int(self._clock())
        payload = {
            "sub": str(subject_id),
            "iat": issued_at,
            "exp": issued_at + ttl,
            "jti": secrets.token_urlsafe(16),
            "iss": self.issuer,
            "aud": self.audience,
        }
        if email is not None:
            payload["email"] = email
        return jwt.encode(payload, self._secret_key, algorithm=ALGORITHM)

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    def verify(self, token: str) -> TokenClaims | None:
        """Decode and verify a token. Returns its claims, or None on any failure."""
        if not isinstance(token, str) or not token:
            return None
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[ALGORITHM],
                audience=self.audience,
                issuer=self.issuer,
                options=_DECODE_OPTIONS,
            )
        except JWTError as exc:
            logger.debug("Rejected session token (%s)", type(exc).__name__)
            return None

        if any(claim not in payload for claim in _REQUIRED_CLAIMS):
            return None

        try:
            subject_id = int(payload["sub"])
            issued_at = int(payload["iat"])
            expires_at = int(payload["exp"])
        except (KeyError, TypeError, ValueError):
            return None

        now = self._clock()
        if now >= expires_at:
            return None

        token_id = payload["jti"]
        if self._denylist is not None and self._denylist.contains(token_id, now=now):
            return None

        try:
            issued = datetime.fromtimestamp(issued_at, tz=timezone.utc)
            expires = datetime.fromtimestamp(expires_at, tz=timezone.utc)
        except (OverflowError, ValueError, OSError):
            return None

        email = payload.get("email")
        return TokenClaims(
            subject_id=subject_id,
            issued_at=issued,
            expires_at=expires,
            token_id=token_id,
            email=email if isinstance(email, str) else None,
        )

    # ------------------------------------------------------------------
    # Revoke
    # ------------------------------------------------------------------

    def revoke(self, claims: TokenClaims) -> bool:
        """Deny the token identified by claims until it expires.

        Returns False when no denylist is configured (revocation unsupported).
        """
        if self._denylist is None:
            return False
        self._denylist.add(claims.token_id, claims.expires_at.timestamp())
        return True

    def remaining_seconds(self, claims: TokenClaims) -> int:
        """Seconds until claims expire, clamped at zero."""
        return max(0, int(claims.expires_at.timestamp() - self._clock()))
