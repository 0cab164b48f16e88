"""
Tests for the token codec and credential verifier.

Run with: pytest tests/test_security.py -v
"""

import base64
import json
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from jose import jwt

from app.core.exceptions import InvalidToken
from app.core.security import (
    ACCESS_TOKEN_TYPE,
    REFRESH_TOKEN_TYPE,
    CredentialVerifier,
    TokenCodec,
)


def _tamper_payload(token: str, **changes) -> str:
    header, payload, signature = token.split(".")
    padded = payload + "=" * (-len(payload) % 4)
    claims = json.loads(base64.urlsafe_b64decode(padded))
    claims.update(changes)
    new_payload = base64.urlsafe_b64encode(json.dumps(claims).encode()).rstrip(b"=").decode()
    return f"{header}.{new_payload}.{signature}"


# ============================================
# TokenCodec Tests
# ============================================

class TestTokenCodec:
    """Tests for TokenCodec."""

    def test_issue_and_verify(self, codec):
        token = codec.issue({"sub": "user-1", "email": "a@b.com"}, timedelta(minutes=5))
        claims = codec.verify(token)

        assert claims["sub"] == "user-1"
        assert claims["email"] == "a@b.com"
        assert claims["exp"] > claims["iat"]
        assert claims["jti"]

    def test_access_and_refresh_claims(self, codec):
        pair = codec.issue_pair("user-1", "a@b.com")

        access = codec.verify(pair.access_token, expected_type=ACCESS_TOKEN_TYPE)
        refresh = codec.verify(pair.refresh_token, expected_type=REFRESH_TOKEN_TYPE)

        assert access["email"] == "a@b.com"
        assert "email" not in refresh
        assert access["exp"] - access["iat"] == 15 * 60
        assert refresh["exp"] - refresh["iat"] == 7 * 24 * 3600
        assert pair.expires_in == 15 * 60

    def test_tokens_issued_together_are_distinct(self, codec):
        first = codec.issue_refresh("user-1")
        second = codec.issue_refresh("user-1")
        assert first != second

    def test_wrong_type_rejected(self, codec):
        pair = codec.issue_pair("user-1", "a@b.com")

        with pytest.raises(InvalidToken):
            codec.verify(pair.access_token, expected_type=REFRESH_TOKEN_TYPE)
        with pytest.raises(InvalidToken):
            codec.verify(pair.refresh_token, expected_type=ACCESS_TOKEN_TYPE)

    def test_tampered_payload_rejected(self, codec):
        token = codec.issue_refresh("user-1")
        forged = _tamper_payload(token, sub="user-2")

        with pytest.raises(InvalidToken):
            codec.verify(forged)

    def test_other_secret_rejected(self, codec):
        other = TokenCodec(secret_key="another-secret")
        token = other.issue_refresh("user-1")

        with pytest.raises(InvalidToken):
            codec.verify(token)

    def test_other_algorithm_rejected(self, codec):
        now = int(datetime.now(timezone.utc).timestamp())
        token = jwt.encode(
            {"sub": "user-1", "type": "refresh", "iat": now, "exp": now + 600},
            codec.secret_key,
            algorithm="HS512",
        )

        with pytest.raises(InvalidToken):
            codec.verify(token)

    def test_expired_token_rejected(self, codec):
        token = codec.issue({"sub": "user-1"}, timedelta(minutes=-1))

        with pytest.raises(InvalidToken):
            codec.verify(token)

    def test_token_rejected_at_exact_expiry(self, codec):
        token = codec.issue({"sub": "user-1"}, timedelta(minutes=10))
        exp = codec.verify(token)["exp"]

        with patch("app.core.security.datetime") as mock_datetime:
            mock_datetime.now.return_value = datetime.fromtimestamp(exp, tz=timezone.utc)
            with pytest.raises(InvalidToken):
                codec.verify(token)

    def test_missing_identity_rejected(self, codec):
        token = codec.issue({"email": "a@b.com"}, timedelta(minutes=5))

        with pytest.raises(InvalidToken):
            codec.verify(token)

    @pytest.mark.parametrize("garbage", ["", "not-a-token", "a.b.c"])
    def test_malformed_token_rejected(self, codec, garbage):
        with pytest.raises(InvalidToken):
            codec.verify(garbage)

    def test_from_settings(self, settings):
        codec = TokenCodec.from_settings(settings)

        assert codec.secret_key == "test-secret-key"
        assert codec.algorithm == "HS256"
        assert codec.access_lifetime == timedelta(minutes=15)
        assert codec.refresh_lifetime == timedelta(days=7)


# ============================================
# CredentialVerifier Tests
# ============================================

class TestCredentialVerifier:
    """Tests for CredentialVerifier."""

    def test_password_hashing(self, verifier):
        """Test password hashing and verification."""
        password = "securePassword123!"
        hashed = verifier.hash(password)

        assert hashed != password
        assert verifier.verify(password, hashed) is True
        assert verifier.verify("wrongPassword", hashed) is False

    def test_cost_is_embedded_in_hash(self, verifier):
        hashed = verifier.hash("Str0ng!Pass", cost=5)

        assert hashed.startswith("$2b$05$")
        # A verifier configured with another cost still checks it
        assert verifier.verify("Str0ng!Pass", hashed) is True
        assert CredentialVerifier(rounds=6).verify("Str0ng!Pass", hashed) is True

    def test_default_cost(self, verifier):
        assert verifier.hash("Str0ng!Pass").startswith("$2b$04$")

    @pytest.mark.parametrize("stored", [None, "", "not-a-bcrypt-hash", "$2b$04$short"])
    def test_missing_or_malformed_hash_is_a_mismatch(self, verifier, stored):
        assert verifier.verify("Str0ng!Pass", stored) is False

    def test_missing_hash_still_runs_a_comparison(self, verifier):
        """Unknown accounts must cost the same bcrypt work as wrong passwords."""
        with patch.object(verifier._context, "verify", wraps=verifier._context.verify) as spy:
            assert verifier.verify("Str0ng!Pass", None) is False

        spy.assert_called_once()
        assert spy.call_args.args[1] == verifier._dummy_hash

    @pytest.mark.parametrize("stored", ["real", None, "not-a-bcrypt-hash"])
    def test_oversized_secret_is_a_mismatch(self, verifier, stored):
        hashed = verifier.hash("Str0ng!Pass") if stored == "real" else stored
        assert verifier.verify("Aa1!" * 1100, hashed) is False
