"""Authentication endpoints."""

import logging

from fastapi import APIRouter, Request, status

from app.core.dependencies import AuthServiceDep, CurrentUser, OptionalUser, RateLimiterDep
from app.core.exceptions import InvalidCredentials, RateLimited, ValidationError
from app.core.rate_limiter import LOGIN_FAILURES_IP, get_client_ip
from app.schemas.user import (
    LoginData,
    LoginRequest,
    RefreshRequest,
    RegisterData,
    RegisterRequest,
    SessionData,
    TokenResponse,
    UserResponse,
    UserSummary,
    envelope,
)

logger = logging.getLogger(__name__)
router = APIRouter()


# ─────────────────────────────────────────────
# Register
# ─────────────────────────────────────────────

@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest, auth: AuthServiceDep):
    """
    Register a new user.
    The account is active but unverified; no tokens are issued.
    """
    required = (body.email, body.password, body.first_name, body.last_name, body.phone, body.organization_id)
    if not all(required):
        raise ValidationError(
            "Email, password, firstName, lastName, phone, and organizationId are required"
        )

    user = await auth.register(
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        phone=body.phone,
        organization_id=body.organization_id,
    )
    return envelope("Registration successful", RegisterData(user=UserResponse.model_validate(user)))


# ─────────────────────────────────────────────
# Login
# ─────────────────────────────────────────────

@router.post("/login")
async def login(body: LoginRequest, request: Request, auth: AuthServiceDep, limiter: RateLimiterDep):
    """
    Authenticate a user.
    Returns access and refresh tokens.

    Rate limited: failed attempts per client IP within a sliding window.
    """
    if not body.email or not body.password:
        raise ValidationError("Email and password are required")

    client_ip = get_client_ip(request, limiter.trusted_proxies)
    allowed, retry_after = limiter.check(LOGIN_FAILURES_IP, client_ip)
    if not allowed:
        logger.warning(f"Login rate limit exceeded for {client_ip}")
        raise RateLimited(retry_after, "Too many login attempts, please try again later")

    try:
        result = await auth.login(body.email, body.password)
    except InvalidCredentials:
        limiter.record_request(LOGIN_FAILURES_IP, client_ip)
        raise

    data = LoginData(
        token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
        expires_in=result.tokens.expires_in,
        user=UserSummary.model_validate(result.user),
    )
    return envelope("Authentication successful", data)


# ─────────────────────────────────────────────
# Refresh Token (Rotation)
# ─────────────────────────────────────────────

@router.post("/refresh")
async def refresh_token(body: RefreshRequest, auth: AuthServiceDep):
    """
    Rotate refresh token and get a new access token + refresh token.
    The presented refresh token cannot be used again.
    """
    if not body.refresh_token:
        raise ValidationError("Refresh token is required")

    logger.info("Token refresh attempt")
    tokens = await auth.refresh(body.refresh_token)

    data = TokenResponse(
        token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        expires_in=tokens.expires_in,
    )
    return envelope("Token refresh successful", data)


# ─────────────────────────────────────────────
# Logout
# ─────────────────────────────────────────────

@router.post("/logout")
async def logout(current_user: CurrentUser, auth: AuthServiceDep):
    """Invalidate the user's refresh token."""
    await auth.logout(current_user)
    return envelope("Logout successful")


# ─────────────────────────────────────────────
# Current User / Session
# ─────────────────────────────────────────────

@router.get("/me")
async def get_current_user(current_user: CurrentUser):
    """Return authenticated user's info."""
    return envelope("OK", RegisterData(user=UserResponse.model_validate(current_user)))


@router.get("/session")
async def get_session(current_user: OptionalUser):
    """Report whether the request carries a valid access token."""
    if current_user is None:
        return envelope("OK", SessionData(authenticated=False))
    return envelope("OK", SessionData(authenticated=True, user=UserSummary.model_validate(current_user)))
