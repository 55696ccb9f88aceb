"""Unit tests for auth/tokens.py -- session token issuance and verification.

Covers:
- issued claims round-trip (subject, email, iat, exp, jti)
- expiry boundary: valid for t0 <= now < t0+T, invalid from t0+T on
- TTL 0 yields an already-expired token
- any single-character change in the signed payload invalidates the token
- tokens signed with another secret, issuer or audience are rejected
- algorithm confusion: "none" and HS512 headers are rejected
- missing claims and non-numeric subjects are rejected
- revocation through the denylist
"""

import base64
import json
import re
from datetime import datetime, timezone

import pytest
from jose import jwt

from auth.tokens import ALGORITHM, MAX_EXPIRE_SECONDS, TokenService

T0 = 1_700_000_000.0


def _b64url(data: dict) -> str:
    raw = json.dumps(data, separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def _claims(**overrides) -> dict:
    payload = {
        "sub": "1",
        "iat": int(T0),
        "exp": int(T0) + 3600,
        "jti": "fixed-jti",
        "iss": "profileauth",
        "aud": "profileauth-users",
    }
    payload.update(overrides)
    return payload


class TestIssue:
    def test_round_trip(self, tokens, clock):
        token = tokens.issue(42, email="a@x.com")
        claims = tokens.verify(token)
        assert claims is not None
        assert claims.subject_id == 42
        assert claims.email == "a@x.com"
        assert claims.issued_at == datetime.fromtimestamp(int(clock.now), tz=timezone.utc)
        assert claims.expires_at == datetime.fromtimestamp(int(clock.now) + 3600, tz=timezone.utc)
        assert claims.token_id

    def test_email_is_optional(self, tokens):
        claims = tokens.verify(tokens.issue(7))
        assert claims is not None
        assert claims.email is None

    def test_token_is_header_safe(self, tokens):
        token = tokens.issue(1)
        assert re.fullmatch(r"[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+", token)

    def test_each_token_has_unique_id(self, tokens):
        first = tokens.verify(tokens.issue(1))
        second = tokens.verify(tokens.issue(1))
        assert first.token_id != second.token_id

    def test_header_declares_configured_algorithm(self, tokens):
        assert jwt.get_unverified_header(tokens.issue(1))["alg"] == ALGORITHM

    def test_negative_ttl_rejected(self, tokens):
        with pytest.raises(ValueError):
            tokens.issue(1, expire_seconds=-1)

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            TokenService(secret_key="")


class TestExpiry:
    def test_valid_until_exactly_ttl(self, tokens, clock):
        token = tokens.issue(1, expire_seconds=60)
        assert tokens.verify(token) is not None
        clock.advance(59)
        assert tokens.verify(token) is not None
        clock.advance(1)
        assert tokens.verify(token) is None
        clock.advance(3600)
        assert tokens.verify(token) is None

    def test_zero_ttl_is_born_expired(self, tokens):
        assert tokens.verify(tokens.issue(1, expire_seconds=0)) is None

    def test_default_ttl_applies(self, tokens, clock):
        token = tokens.issue(1)
        clock.advance(3599)
        assert tokens.verify(token) is not None
        clock.advance(1)
        assert tokens.verify(token) is None

    def test_remaining_seconds(self, tokens, clock):
        claims = tokens.verify(tokens.issue(1, expire_seconds=100))
        clock.advance(40)
        assert tokens.remaining_seconds(claims) == 60
        clock.advance(1000)
        assert tokens.remaining_seconds(claims) == 0


class TestTampering:
    def test_every_single_character_change_in_payload_fails(self, tokens):
        header, payload, signature = tokens.issue(1, email="a@x.com").split(".")
        for i, ch in enumerate(payload):
            replacement = "A" if ch != "A" else "B"
            forged = ".".join([header, payload[:i] + replacement + payload[i + 1 :], signature])
            assert tokens.verify(forged) is None, f"payload change at index {i} was accepted"

    def test_resigned_payload_with_new_subject_fails(self, tokens):
        header, _payload, signature = tokens.issue(1).split(".")
        forged = ".".join([header, _b64url(_claims(sub="2")), signature])
        assert tokens.verify(forged) is None

    def test_other_secret_fails(self, tokens, clock):
        other = TokenService(secret_key="y" * 64, expire_seconds=3600, clock=clock)
        assert tokens.verify(other.issue(1)) is None

    def test_other_audience_fails(self, tokens, secret_key, clock):
        other = TokenService(secret_key=secret_key, audience="someone-else", clock=clock)
        assert tokens.verify(other.issue(1)) is None

    def test_other_issuer_fails(self, tokens, secret_key, clock):
        other = TokenService(secret_key=secret_key, issuer="someone-else", clock=clock)
        assert tokens.verify(other.issue(1)) is None

    @pytest.mark.parametrize("garbage", ["", "abc", "a.b.c", "a.b", "....", "Bearer x.y.z"])
    def test_malformed_tokens_fail(self, tokens, garbage):
        assert tokens.verify(garbage) is None

    def test_non_string_fails(self, tokens):
        assert tokens.verify(None) is None  # type: ignore[arg-type]
        assert tokens.verify(b"bytes") is None  # type: ignore[arg-type]


class TestAlgorithmConfusion:
    def test_alg_none_rejected(self, tokens, clock):
        clock.now = T0
        header = _b64url({"alg": "none", "typ": "JWT"})
        forged = f"{header}.{_b64url(_claims())}."
        assert tokens.verify(forged) is None

    def test_other_hmac_algorithm_with_same_secret_rejected(self, tokens, secret_key, clock):
        clock.now = T0
        forged = jwt.encode(_claims(), secret_key, algorithm="HS512")
        assert tokens.verify(forged) is None

    def test_same_algorithm_and_secret_accepted(self, tokens, secret_key, clock):
        """Control case for the two tests above."""
        clock.now = T0
        genuine = jwt.encode(_claims(), secret_key, algorithm=ALGORITHM)
        assert tokens.verify(genuine) is not None


class TestRequiredClaims:
    @pytest.mark.parametrize("missing", ["sub", "iat", "exp", "jti", "iss", "aud"])
    def test_missing_claim_rejected(self, tokens, secret_key, clock, missing):
        clock.now = T0
        payload = _claims()
        del payload[missing]
        assert tokens.verify(jwt.encode(payload, secret_key, algorithm=ALGORITHM)) is None

    def test_non_numeric_subject_rejected(self, tokens, secret_key, clock):
        clock.now = T0
        token = jwt.encode(_claims(sub="admin"), secret_key, algorithm=ALGORITHM)
        assert tokens.verify(token) is None


class TestRevocation:
    def test_revoked_token_fails(self, tokens):
        token = tokens.issue(1)
        claims = tokens.verify(token)
        assert tokens.revoke(claims) is True
        assert tokens.verify(token) is None

    def test_revocation_is_per_token(self, tokens):
        first = tokens.issue(1)
        second = tokens.issue(1)
        tokens.revoke(tokens.verify(first))
        assert tokens.verify(first) is None
        assert tokens.verify(second) is not None

    def test_revoke_without_denylist_is_unsupported(self, secret_key, clock):
        service = TokenService(secret_key=secret_key, clock=clock)
        token = service.issue(1)
        assert service.revoke(service.verify(token)) is False
        assert service.verify(token) is not None


def test_from_settings_uses_configured_values():
    from core.config import get_settings

    settings = get_settings()
    service = TokenService.from_settings(settings)
    assert service.expire_seconds == settings.token_expire_seconds
    assert service.issuer == settings.token_issuer
    assert service.audience == settings.token_audience


class TestLifetimeBounds:
    def test_ttl_above_one_year_rejected(self, secret_key):
        with pytest.raises(ValueError):
            TokenService(secret_key=secret_key, expire_seconds=MAX_EXPIRE_SECONDS + 1)

    def test_issue_override_above_one_year_rejected(self, tokens):
        with pytest.raises(ValueError):
            tokens.issue(1, expire_seconds=10**12)

    def test_one_year_ttl_verifies(self, secret_key, clock):
        service = TokenService(secret_key=secret_key, expire_seconds=MAX_EXPIRE_SECONDS, clock=clock)
        assert service.verify(service.issue(1)) is not None

    @pytest.mark.parametrize(
        "overrides",
        [{"exp": 10**20}, {"exp": 10**12}, {"iat": 10**20}, {"iat": -(10**20)}],
        ids=["exp-overflow", "exp-past-year-9999", "iat-overflow", "iat-negative-overflow"],
    )
    def test_out_of_range_timestamps_fail_closed(self, tokens, secret_key, clock, overrides):
        clock.now = T0
        token = jwt.encode(_claims(**overrides), secret_key, algorithm=ALGORITHM)
        assert tokens.verify(token) is None
