"""Unit tests for auth/tokens.py -- JWT issue / verify.

Covers:
- round-trip: issue then verify returns the same (user_id, email)
- expiry claim is token_expire_seconds after issuance (7 days by default)
- tampered, foreign-key, garbage, expired and claim-less tokens are rejected
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.errors import ExpiredToken, InvalidToken
from auth.tokens import TokenIssuer
from core.config import Settings
from tests.conftest import TEST_SECRET_KEY, make_settings


class TestTokenRoundTrip:
    def test_issue_then_verify(self, settings: Settings) -> None:
        issuer = TokenIssuer(settings)
        token = issuer.issue("user-1", "a@x.com")
        claims = issuer.verify(token)
        assert claims.user_id == "user-1"
        assert claims.email == "a@x.com"

    def test_default_expiry_is_seven_days(self, settings: Settings) -> None:
        token = TokenIssuer(settings).issue("user-1", "a@x.com")
        payload = jwt.get_unverified_claims(token)
        assert payload["exp"] - payload["iat"] == 7 * 24 * 60 * 60
        assert payload["sub"] == "user-1"


class TestTokenRejection:
    def test_signed_with_other_key(self, settings: Settings) -> None:
        other = TokenIssuer(make_settings(secret_key="another-signing-key-fedcba9876543210fedcba"))
        token = other.issue("user-1", "a@x.com")
        with pytest.raises(InvalidToken):
            TokenIssuer(settings).verify(token)

    def test_tampered_payload(self, settings: Settings) -> None:
        """Swapping in another token's payload keeps the old signature, which no longer matches."""
        issuer = TokenIssuer(settings)
        header, _payload, signature = issuer.issue("user-1", "a@x.com").split(".")
        _h, forged_payload, _s = issuer.issue("user-2", "b@x.com").split(".")
        with pytest.raises(InvalidToken):
            issuer.verify(f"{header}.{forged_payload}.{signature}")

    def test_garbage(self, settings: Settings) -> None:
        with pytest.raises(InvalidToken):
            TokenIssuer(settings).verify("not.a.jwt")

    def test_expired(self, settings: Settings) -> None:
        past = datetime.now(timezone.utc) - timedelta(days=8)
        token = jwt.encode(
            {"sub": "user-1", "email": "a@x.com", "iat": past, "exp": past + timedelta(days=7)},
            TEST_SECRET_KEY,
            algorithm="HS256",
        )
        with pytest.raises(ExpiredToken):
            TokenIssuer(settings).verify(token)

    def test_missing_email_claim(self, settings: Settings) -> None:
        token = jwt.encode(
            {"sub": "user-1", "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
            TEST_SECRET_KEY,
            algorithm="HS256",
        )
        with pytest.raises(InvalidToken):
            TokenIssuer(settings).verify(token)
