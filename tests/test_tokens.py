"""
Tests for the token service
"""

import pytest
from datetime import datetime, timedelta, timezone

import jwt

from daybook.errors import UnauthorizedError
from daybook.tokens import TokenService


SECRET = "test-secret-key-that-is-long-enough-for-hs256"


class TestTokenService:

    def setup_method(self):
        self.tokens = TokenService(SECRET)

    def test_sign_and_verify(self):
        token = self.tokens.sign("user-1", "a@example.com", "accountant", "Dearcare")
        claims = self.tokens.verify(token)

        assert claims.user_id == "user-1"
        assert claims.email == "a@example.com"
        assert claims.role == "accountant"
        assert claims.tenant == "Dearcare"
        assert claims.expires_at - claims.issued_at == timedelta(hours=24)

    def test_payload_carries_user_id_claims(self):
        token = self.tokens.sign("user-1", "a@example.com", "admin")
        payload = jwt.decode(token, SECRET, algorithms=["HS256"])

        assert payload["userId"] == "user-1"
        assert payload["sub"] == "user-1"
        assert "tenant" not in payload

    def test_expired_token(self):
        tokens = TokenService(SECRET, expires_in=timedelta(seconds=-10))
        token = tokens.sign("user-1", "a@example.com")

        with pytest.raises(UnauthorizedError, match="Token expired"):
            self.tokens.verify(token)

    def test_wrong_secret(self):
        other = TokenService("another-secret-key-that-is-long-enough-too")
        token = other.sign("user-1", "a@example.com")

        with pytest.raises(UnauthorizedError, match="Invalid token"):
            self.tokens.verify(token)

    def test_malformed_token(self):
        with pytest.raises(UnauthorizedError, match="Invalid token"):
            self.tokens.verify("not-a-token")

    def test_token_without_user_id(self):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"email": "a@example.com", "iat": now, "exp": now + timedelta(hours=1)},
            SECRET, algorithm="HS256"
        )
        with pytest.raises(UnauthorizedError, match="Invalid token"):
            self.tokens.verify(token)

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            TokenService("")
