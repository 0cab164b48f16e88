"""
Security primitives: signed session tokens and password hashing.

TokenCodec signs and verifies expiring JWTs (python-jose). CredentialVerifier
hashes and checks passwords with bcrypt (passlib). Both are plain objects
built from settings and handed to the services that need them.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from passlib.exc import PasswordSizeError

from app.core.config import Settings
from app.core.exceptions import InvalidToken

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int  # access token lifetime, seconds


class TokenCodec:
    """Issues and verifies HMAC-signed JWTs carrying a user identity claim."""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        access_lifetime: timedelta = timedelta(minutes=15),
        refresh_lifetime: timedelta = timedelta(days=7),
    ):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.access_lifetime = access_lifetime
        self.refresh_lifetime = refresh_lifetime

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenCodec":
        return cls(
            secret_key=settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
            access_lifetime=timedelta(minutes=settings.access_token_expire_minutes),
            refresh_lifetime=timedelta(days=settings.refresh_token_expire_days),
        )

    # ─── Encode / Decode ────────────────────────
    def issue(self, claims: Dict[str, Any], lifetime: timedelta) -> str:
        """
        Sign `claims` with an absolute expiry `now + lifetime`.

        A random `jti` is added so that two tokens with otherwise identical
        claims, issued in the same second, are still distinct.
        """
        now = datetime.now(timezone.utc)
        payload = dict(claims)
        payload.update(
            {
                "jti": uuid.uuid4().hex,
                "iat": int(now.timestamp()),
                "exp": int((now + lifetime).timestamp()),
            }
        )
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify(self, token: str, expected_type: Optional[str] = None) -> Dict[str, Any]:
        """
        Return the claims of a valid token.

        Raises InvalidToken on a bad signature, a foreign algorithm, a
        malformed payload, a missing identity claim, a wrong `type`, or when
        the current time is at or past `exp`.
        """
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            raise InvalidToken() from e

        exp = payload.get("exp")
        if not isinstance(exp, (int, float)):
            raise InvalidToken()
        if datetime.now(timezone.utc).timestamp() >= exp:
            raise InvalidToken()
        if not payload.get("sub"):
            raise InvalidToken()
        if expected_type is not None and payload.get("type") != expected_type:
            raise InvalidToken()
        return payload

    # ─── Access / Refresh ───────────────────────
    def issue_access(self, user_id: str, email: str) -> str:
        claims = {"sub": str(user_id), "email": email, "type": ACCESS_TOKEN_TYPE}
        return self.issue(claims, self.access_lifetime)

    def issue_refresh(self, user_id: str) -> str:
        claims = {"sub": str(user_id), "type": REFRESH_TOKEN_TYPE}
        return self.issue(claims, self.refresh_lifetime)

    def issue_pair(self, user_id: str, email: str) -> TokenPair:
        return TokenPair(
            access_token=self.issue_access(user_id, email),
            refresh_token=self.issue_refresh(user_id),
            expires_in=int(self.access_lifetime.total_seconds()),
        )


class CredentialVerifier:
    """bcrypt password hashing with a constant-cost failure path."""

    def __init__(self, rounds: int = 12):
        self.rounds = rounds
        self._context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)
        # Verified instead of a real hash when the account or hash is missing
        self._dummy_hash = self._context.hash("this_is_a_fake_user_that_never_exists_2025")

    @classmethod
    def from_settings(cls, settings: Settings) -> "CredentialVerifier":
        return cls(rounds=settings.bcrypt_rounds)

    def hash(self, plaintext: str, cost: Optional[int] = None) -> str:
        """Hash `plaintext`; the cost factor is embedded in the result."""
        if cost is None or cost == self.rounds:
            return self._context.hash(plaintext)
        return self._context.handler().using(rounds=cost).hash(plaintext)

    def verify(self, plaintext: str, hashed: Optional[str]) -> bool:
        try:
            if not hashed or not self._context.identify(hashed):
                self._context.verify(plaintext, self._dummy_hash)
                return False
            return self._context.verify(plaintext, hashed)
        except PasswordSizeError:
            # Rejected before any hashing, for real and dummy hashes alike
            return False
        except (ValueError, TypeError):
            self._context.verify(plaintext, self._dummy_hash)
            return False
