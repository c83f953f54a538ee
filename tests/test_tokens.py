"""Token issuer and password hashing tests."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from tradejournal.auth.passwords import hash_password, verify_password
from tradejournal.auth.tokens import ISSUER, REFRESH, TokenManager
from tradejournal.utils.exceptions import InvalidTokenError, TokenIssuerError

SECRET = "another-test-secret-that-is-32-chars-or-more"


@pytest.fixture
def manager() -> TokenManager:
    return TokenManager(SECRET, 15, 10080)


def _claims(**overrides):
    now = datetime.now(timezone.utc)
    claims = {
        "user_id": "0b6f7f7e-6d4e-4f63-9d2f-4c1f0a3f0a11",
        "email": "t@example.com",
        "username": "trader",
        "type": "access",
        "iss": ISSUER,
        "iat": now,
        "nbf": now,
        "exp": now + timedelta(minutes=5),
    }
    claims.update(overrides)
    return claims


class TestTokenManager:

    def test_short_secret_rejected(self):
        with pytest.raises(TokenIssuerError):
            TokenManager("too-short")
        with pytest.raises(TokenIssuerError):
            TokenManager("")

    def test_pair_carries_identity(self, manager):
        pair = manager.issue_token_pair("u-1", "t@example.com", "trader")
        claims = manager.validate_token(pair.access_token)
        assert claims.user_id == "u-1"
        assert claims.email == "t@example.com"
        assert claims.username == "trader"
        assert pair.expires_at - datetime.now(timezone.utc) <= timedelta(minutes=15)

    def test_refresh_token_not_accepted_as_access(self, manager):
        pair = manager.issue_token_pair("u-1", "t@example.com", "trader")
        with pytest.raises(InvalidTokenError):
            manager.validate_token(pair.refresh_token)
        assert manager.validate_token(pair.refresh_token, expected_type=REFRESH).user_id == "u-1"

    def test_expired_token_rejected(self, manager):
        past = datetime.now(timezone.utc) - timedelta(hours=1)
        token = jwt.encode(_claims(iat=past - timedelta(minutes=5), nbf=past - timedelta(minutes=5), exp=past),
                           SECRET, algorithm="HS256")
        with pytest.raises(InvalidTokenError, match="expired"):
            manager.validate_token(token)

    def test_immature_token_rejected(self, manager):
        future = datetime.now(timezone.utc) + timedelta(hours=1)
        token = jwt.encode(_claims(nbf=future, exp=future + timedelta(minutes=5)), SECRET, algorithm="HS256")
        with pytest.raises(InvalidTokenError):
            manager.validate_token(token)

    def test_bad_signature_rejected(self, manager):
        token = jwt.encode(_claims(), "x" * 40, algorithm="HS256")
        with pytest.raises(InvalidTokenError):
            manager.validate_token(token)

    @pytest.mark.parametrize("alg", ["HS384", "HS512"])
    def test_other_hmac_algorithms_accepted(self, manager, alg):
        token = jwt.encode(_claims(), SECRET, algorithm=alg)
        assert manager.validate_token(token).username == "trader"

    def test_unsigned_token_rejected(self, manager):
        token = jwt.encode(_claims(), None, algorithm="none")
        with pytest.raises(InvalidTokenError):
            manager.validate_token(token)

    def test_wrong_issuer_rejected(self, manager):
        token = jwt.encode(_claims(iss="someone-else"), SECRET, algorithm="HS256")
        with pytest.raises(InvalidTokenError):
            manager.validate_token(token)

    def test_refresh_keeps_refresh_token(self, manager):
        pair = manager.issue_token_pair("u-1", "t@example.com", "trader")
        refreshed = manager.refresh_access_token(pair.refresh_token)
        assert refreshed.refresh_token == pair.refresh_token
        assert manager.validate_token(refreshed.access_token).user_id == "u-1"

    def test_garbage_rejected(self, manager):
        with pytest.raises(InvalidTokenError):
            manager.validate_token("not.a.jwt")


class TestPasswords:

    def test_hash_and_verify(self):
        hashed = hash_password("s3cret-password")
        assert hashed != "s3cret-password"
        assert verify_password("s3cret-password", hashed)
        assert not verify_password("wrong-password", hashed)

    def test_salted(self):
        assert hash_password("same-password") != hash_password("same-password")

    def test_malformed_hash_does_not_verify(self):
        assert not verify_password("anything", "not-a-bcrypt-hash")
