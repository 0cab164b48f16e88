"""Authentication Service: Credential Login + JWT Refresh Token Rotation"""

import logging
from dataclasses import dataclass

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import (
    AccountInactive,
    Conflict,
    InvalidCredentials,
    InvalidToken,
    ValidationError,
)
from app.core.security import (
    ACCESS_TOKEN_TYPE,
    REFRESH_TOKEN_TYPE,
    CredentialVerifier,
    TokenCodec,
    TokenPair,
)
from app.models.user import User
from app.repositories.user_repository import UserRepository
from app.schemas.user import EmailCheck, password_problems

logger = logging.getLogger(__name__)


def mask_email(email: str) -> str:
    return f"{email[:3]}***"


@dataclass(frozen=True)
class LoginResult:
    tokens: TokenPair
    user: User


class AuthService:
    """
    Issues, verifies and rotates a user's access/refresh token pair.

    The stored refresh token on the user row is the only one that can be
    exchanged; every successful refresh replaces it, so a token that has
    been rotated out is rejected even before it expires.
    """

    def __init__(self, users: UserRepository, codec: TokenCodec, verifier: CredentialVerifier):
        self.users = users
        self.codec = codec
        self.verifier = verifier

    # ─── Registration ───────────────────────────
    async def register(
        self,
        *,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        phone: str,
        organization_id: str,
    ) -> User:
        try:
            email = EmailCheck(email=email).email.lower()
        except PydanticValidationError:
            raise ValidationError("Invalid email format")

        problems = password_problems(password)
        if problems:
            raise ValidationError(problems[0])

        if await self.users.exists_with_email_or_phone(email, phone):
            raise Conflict("User with this email or phone already exists")

        try:
            user = await self.users.create(
                email=email,
                password_hash=self.verifier.hash(password),
                first_name=first_name,
                last_name=last_name,
                phone=phone,
                organization_id=organization_id,
            )
        except IntegrityError:
            # Lost a race against a concurrent registration
            raise Conflict("User with this email or phone already exists")

        logger.info(f"User registered successfully: {user.id[:8]}...")
        return user

    # ─── Login ──────────────────────────────────
    async def login(self, email: str, password: str) -> LoginResult:
        logger.info(f"Login attempt for {mask_email(email)}")
        user = await self.users.get_by_email(email)

        if not user or not user.password_hash:
            # Burn the same bcrypt time as a real comparison
            self.verifier.verify(password, None)
            raise InvalidCredentials()

        if not user.is_active:
            raise AccountInactive()

        if not self.verifier.verify(password, user.password_hash):
            logger.info(f"Login failed for user {user.id[:8]}...")
            raise InvalidCredentials()

        tokens = self.codec.issue_pair(user.id, user.email)
        await self.users.record_login(user.id, tokens.refresh_token)

        logger.info(f"User {user.id[:8]}... logged in")
        return LoginResult(tokens=tokens, user=user)

    # ─── Refresh (Rotation) ─────────────────────
    async def refresh(self, refresh_token: str) -> TokenPair:
        claims = self.codec.verify(refresh_token, expected_type=REFRESH_TOKEN_TYPE)
        user_id = claims["sub"]

        user = await self.users.get_by_id(user_id)
        if not user:
            raise InvalidToken("Invalid refresh token")

        if not user.is_active:
            raise AccountInactive()

        if user.refresh_token != refresh_token:
            logger.warning(f"Stale refresh token presented for user {user_id[:8]}...")
            raise InvalidToken("Invalid refresh token")

        tokens = self.codec.issue_pair(user.id, user.email)
        rotated = await self.users.rotate_refresh_token(user.id, refresh_token, tokens.refresh_token)
        if not rotated:
            # A concurrent refresh (or logout) replaced the token first
            logger.warning(f"Refresh token rotation conflict for user {user_id[:8]}...")
            raise InvalidToken("Invalid refresh token")

        return tokens

    # ─── Access Token → User ────────────────────
    async def authenticate(self, access_token: str) -> User:
        claims = self.codec.verify(access_token, expected_type=ACCESS_TOKEN_TYPE)

        user = await self.users.get_by_id(claims["sub"])
        if not user:
            raise InvalidToken()
        if not user.is_active:
            raise AccountInactive()

        await self.users.touch_last_active(user.id)
        return user

    # ─── Logout ─────────────────────────────────
    async def logout(self, user: User) -> None:
        await self.users.clear_refresh_token(user.id)
        logger.info(f"User {user.id[:8]}... logged out")
