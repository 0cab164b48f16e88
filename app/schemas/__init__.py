"""Pydantic schemas for API request/response validation."""

from app.schemas.user import (
    LoginRequest,
    RegisterRequest,
    RefreshRequest,
    UserResponse,
    UserSummary,
    TokenResponse,
)

__all__ = [
    "LoginRequest",
    "RegisterRequest",
    "RefreshRequest",
    "UserResponse",
    "UserSummary",
    "TokenResponse",
]
