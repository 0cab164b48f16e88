"""Reusable FastAPI dependencies (database session, auth service, current user)."""

from typing import Annotated, Optional

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AccountInactive, InvalidToken
from app.core.rate_limiter import RateLimiter
from app.db.session import get_db
from app.models.user import User
from app.repositories.user_repository import UserRepository
from app.services.auth_service import AuthService

DbSession = Annotated[AsyncSession, Depends(get_db)]


def get_auth_service(request: Request, db: DbSession) -> AuthService:
    """Build an AuthService bound to this request's session."""
    state = request.app.state
    return AuthService(
        users=UserRepository(db),
        codec=state.token_codec,
        verifier=state.credential_verifier,
    )


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
RateLimiterDep = Annotated[RateLimiter, Depends(get_rate_limiter)]


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_current_user(
    auth: AuthServiceDep,
    authorization: Optional[str] = Header(default=None),
) -> User:
    token = _bearer_token(authorization)
    if not token:
        raise InvalidToken("Access token is required")
    return await auth.authenticate(token)


async def get_optional_user(
    auth: AuthServiceDep,
    authorization: Optional[str] = Header(default=None),
) -> Optional[User]:
    """Like get_current_user, but anonymous or invalid credentials yield None."""
    token = _bearer_token(authorization)
    if not token:
        return None
    try:
        return await auth.authenticate(token)
    except (InvalidToken, AccountInactive):
        return None


CurrentUser = Annotated[User, Depends(get_current_user)]
OptionalUser = Annotated[Optional[User], Depends(get_optional_user)]
