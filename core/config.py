"""
core/config.py -- ProfileAuth settings, read once from the environment.

Every tunable (signing key, token lifetime, bcrypt cost, database location,
rate limits, CORS origins) is a field on Settings. Modules obtain values via
get_settings(); nothing else reads os.environ.

Sources, highest priority first: constructor keyword arguments, environment
variables (upper-cased field names, e.g. TOKEN_EXPIRE_SECONDS), then a .env
file in the working directory, then the defaults below.

Signing key policy:
  [S1] A SECRET_KEY under 32 characters is refused in every mode. Token
       forgery is only as hard as guessing this key.

  [S2] Outside DEBUG a missing SECRET_KEY stops the process at load time.
       With DEBUG=true a throwaway key is generated and a warning logged;
       tokens issued under it die with the process.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("profileauth.config")

_AUTH_DIR = Path(__file__).resolve().parent.parent / "auth"


class Settings(BaseSettings):
    """Effective ProfileAuth configuration.

    Every field has a default, so tests can build Settings(...) with keyword
    overrides and no .env file. validate_secret_key() applies [S1] and [S2].
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # "" means unset; validate_secret_key replaces it or raises.
    secret_key: str = ""

    # ------------------------------------------------------------------
    # Session tokens
    # ------------------------------------------------------------------

    # 24 hours, at most one year. The login response reports this value as expires_in.
    token_expire_seconds: int = Field(default=86400, ge=0, le=365 * 86400)
    token_issuer: str = "profileauth"
    token_audience: str = "profileauth-users"

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    # bcrypt accepts 4..31. 12 costs a few hundred ms on commodity hardware.
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)
    password_min_length: int = Field(default=8, ge=8, le=128)

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    database_url: str = f"sqlite:///{_AUTH_DIR / 'profileauth.db'}"
    denylist_path: Path = _AUTH_DIR / "revoked_tokens.db"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    register_rate_limit: str = "5/minute"
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Fill in or reject SECRET_KEY according to [S1] and [S2]."""
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("Using auto-generated SECRET_KEY. Issued tokens will not survive a restart.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Export a key of at least 32 characters (python main.py gen-secret prints one), "
                    "or set DEBUG=true for local development."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    def public_summary(self) -> dict:
        """Return the effective configuration with the secret redacted."""
        data = self.model_dump()
        data["secret_key"] = "<redacted>"
        data["denylist_path"] = str(self.denylist_path)
        return data


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings, built on first call.

    Tests that change environment variables must call get_settings.cache_clear().
    """
    return Settings()
