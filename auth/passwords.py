"""
auth/passwords.py -- Credential hashing and verification.

Security design decisions:
  bcrypt, used directly (no passlib wrapper). Each call to hash_password()
       draws a fresh salt from bcrypt.gensalt(), so hashing the same password
       twice yields two different strings. The cost factor comes from
       Settings.bcrypt_rounds and is deliberately expensive.

  72-byte limit: bcrypt only reads the first 72 bytes of its input (and
       bcrypt >= 4.1 raises on longer input). Plaintext is therefore reduced to
       base64(SHA-256(plaintext)) -- 44 ASCII bytes -- before it reaches bcrypt,
       so every character of a long password contributes to the hash.

  Length bounds: empty passwords and passwords over MAX_PASSWORD_LENGTH are
       rejected before hashing. The upper bound caps the CPU an attacker can
       burn with an oversized payload.

  Verification never raises. A malformed stored hash returns False, exactly
       like a wrong password, so a corrupt record cannot be told apart from a
       failed login. Comparison is bcrypt.checkpw's constant-time compare.

  Nothing in this module logs plaintext or hashes.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import base64
import hashlib

import bcrypt

from auth.errors import InvalidInputError
from core.config import get_settings

MAX_PASSWORD_LENGTH = 128


def _prehash(plain: str) -> bytes:
    digest = hashlib.sha256(plain.encode("utf-8")).digest()
    return base64.b64encode(digest)


def check_password_bounds(plain: str) -> None:
    """Raise InvalidInputError unless 0 < len(plain) <= MAX_PASSWORD_LENGTH."""
    if not isinstance(plain, str) or not plain:
        raise InvalidInputError("Password must not be empty.")
    if len(plain) > MAX_PASSWORD_LENGTH:
        raise InvalidInputError(f"Password must be at most {MAX_PASSWORD_LENGTH} characters.")


def hash_password(plain: str, rounds: int | None = None) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    Args:
        plain:  The plaintext password. Must be 1..MAX_PASSWORD_LENGTH characters.
        rounds: bcrypt cost factor. Defaults to Settings.bcrypt_rounds.

    Raises:
        InvalidInputError: plaintext is empty or too long.
    """
    check_password_bounds(plain)
    cost = rounds if rounds is not None else get_settings().bcrypt_rounds
    return bcrypt.hashpw(_prehash(plain), bcrypt.gensalt(rounds=cost)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the stored bcrypt hash."""
    try:
        check_password_bounds(plain)
        return bcrypt.checkpw(_prehash(plain), hashed.encode("utf-8"))
    except (InvalidInputError, ValueError, TypeError, AttributeError):
        return False


_dummy_hash: str | None = None


def prepare_dummy_hash() -> str:
    """Build the dummy hash used by dummy_verify(), once, at the configured cost.

    The API lifespan calls this at startup so the first unknown-email login
    costs one bcrypt check like every later one.
    """
    global _dummy_hash
    if _dummy_hash is None:
        _dummy_hash = hash_password("profileauth-timing-dummy")
    return _dummy_hash


def dummy_verify(plain: str) -> None:
    """Spend one bcrypt verification without a real account.

    Called when a login names an email that does not exist, so the response
    takes as long as a wrong-password attempt.
    """
    verify_password(plain, prepare_dummy_hash())


def needs_rehash(hashed: str, rounds: int | None = None) -> bool:
    """Return True if the stored hash was produced with a different cost factor.

    Lets login transparently upgrade hashes after BCRYPT_ROUNDS is raised.
    Malformed hashes report False; they will fail verification anyway.
    """
    cost = rounds if rounds is not None else get_settings().bcrypt_rounds
    parts = hashed.split("$") if isinstance(hashed, str) else []
    if len(parts) < 4 or not parts[2].isdigit():
        return False
    return int(parts[2]) != cost
