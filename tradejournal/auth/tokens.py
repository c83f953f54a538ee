"""
JWT issuance and validation.

Access and refresh tokens share one HMAC secret and carry the same identity
claims; the ``type`` claim keeps a refresh token from being used as an
access token and vice versa.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt

from tradejournal.utils.exceptions import InvalidTokenError, TokenIssuerError

ISSUER = "tradejournal"
SIGNING_ALGORITHM = "HS256"
ALLOWED_ALGORITHMS = ["HS256", "HS384", "HS512"]
MIN_SECRET_LENGTH = 32

ACCESS = "access"
REFRESH = "refresh"


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str
    expires_at: datetime

    def to_dict(self) -> dict:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at.isoformat(),
        }


@dataclass
class Claims:
    user_id: str
    email: str
    username: str
    token_type: str
    issued_at: datetime
    expires_at: datetime


class TokenManager:

    def __init__(self, secret: str, access_expiry_minutes: int = 15,
                 refresh_expiry_minutes: int = 10080):
        if not secret:
            raise TokenIssuerError("secret key cannot be empty")
        if len(secret) < MIN_SECRET_LENGTH:
            raise TokenIssuerError(f"secret key must be at least {MIN_SECRET_LENGTH} characters")
        self._secret = secret
        self._access_expiry = timedelta(minutes=access_expiry_minutes)
        self._refresh_expiry = timedelta(minutes=refresh_expiry_minutes)

    def issue_token_pair(self, user_id: str, email: str, username: str) -> TokenPair:
        access_token, expires_at = self._issue(user_id, email, username, ACCESS, self._access_expiry)
        refresh_token, _ = self._issue(user_id, email, username, REFRESH, self._refresh_expiry)
        return TokenPair(access_token=access_token, refresh_token=refresh_token, expires_at=expires_at)

    def refresh_access_token(self, refresh_token: str) -> TokenPair:
        """New access token from a valid refresh token; the refresh token is reused."""
        claims = self.validate_token(refresh_token, expected_type=REFRESH)
        access_token, expires_at = self._issue(
            claims.user_id, claims.email, claims.username, ACCESS, self._access_expiry)
        return TokenPair(access_token=access_token, refresh_token=refresh_token, expires_at=expires_at)

    def _issue(self, user_id: str, email: str, username: str, token_type: str,
               expiry: timedelta) -> tuple[str, datetime]:
        now = datetime.now(timezone.utc)
        expires_at = now + expiry
        payload = {
            "user_id": str(user_id),
            "email": email,
            "username": username,
            "type": token_type,
            "iss": ISSUER,
            "iat": now,
            "nbf": now,
            "exp": expires_at,
        }
        try:
            token = jwt.encode(payload, self._secret, algorithm=SIGNING_ALGORITHM)
        except jwt.PyJWTError as e:
            raise TokenIssuerError("failed to sign token") from e
        return token, expires_at

    def validate_token(self, token: str, expected_type: str = ACCESS) -> Claims:
        """Decode and verify a token. Anything but an HMAC-signed, live token is rejected."""
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=ALLOWED_ALGORITHMS,
                issuer=ISSUER,
                options={"require": ["exp", "iat", "nbf", "iss"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise InvalidTokenError("token expired") from e
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError("invalid token") from e

        if payload.get("type") != expected_type:
            raise InvalidTokenError(f"expected {expected_type} token")
        if not payload.get("user_id"):
            raise InvalidTokenError("token missing user_id")

        return Claims(
            user_id=payload["user_id"],
            email=payload.get("email", ""),
            username=payload.get("username", ""),
            token_type=payload["type"],
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )
