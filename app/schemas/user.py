"""User and auth schemas for API validation."""

import re
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


PASSWORD_RULES = (
    (re.compile(r"[A-Z]"), "Password must contain at least one uppercase letter"),
    (re.compile(r"[a-z]"), "Password must contain at least one lowercase letter"),
    (re.compile(r"[0-9]"), "Password must contain at least one number"),
    (re.compile(r"[^A-Za-z0-9]"), "Password must contain at least one special character"),
)
PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128
# Upper bound accepted at login; stays under the 4096-byte bcrypt input cap in UTF-8
LOGIN_PASSWORD_MAX_LENGTH = 1024


def password_problems(password: str) -> list[str]:
    """Return the password policy rules `password` breaks (empty if none)."""
    problems = []
    if len(password) < PASSWORD_MIN_LENGTH:
        problems.append(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
    elif len(password) > PASSWORD_MAX_LENGTH:
        problems.append(f"Password must be at most {PASSWORD_MAX_LENGTH} characters")
    problems.extend(message for pattern, message in PASSWORD_RULES if not pattern.search(password))
    return problems


class CamelModel(BaseModel):
    """Accepts and emits the camelCase field names used by the web client."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ─────────────────────────────────────────────
# Requests
# ─────────────────────────────────────────────

# Fields are optional at the schema level so a missing field yields the
# endpoint's own 400 message rather than a generic validation error.

class LoginRequest(CamelModel):
    """Schema for user login."""
    email: Optional[str] = None
    password: Optional[str] = Field(None, max_length=LOGIN_PASSWORD_MAX_LENGTH)


class RegisterRequest(CamelModel):
    """Schema for user registration."""
    email: Optional[str] = None
    password: Optional[str] = Field(None, max_length=PASSWORD_MAX_LENGTH)
    first_name: Optional[str] = Field(None, max_length=255)
    last_name: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=32)
    organization_id: Optional[str] = Field(None, max_length=64)


class RefreshRequest(CamelModel):
    """Schema for token refresh."""
    refresh_token: Optional[str] = None


class EmailCheck(BaseModel):
    email: EmailStr


# ─────────────────────────────────────────────
# Responses
# ─────────────────────────────────────────────

class UserSummary(CamelModel):
    """User as returned by login. Never carries the password hash."""
    id: str
    email: str
    first_name: str
    last_name: str
    is_active: bool
    organization_id: str


class UserResponse(CamelModel):
    """Full public view of a user."""
    id: str
    email: str
    first_name: str
    last_name: str
    phone: str
    organization_id: str
    is_active: bool
    is_verified: bool
    created_at: datetime
    last_login_at: Optional[datetime] = None


class TokenResponse(CamelModel):
    """Access/refresh pair. `token` is the access token."""
    token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds


class LoginData(TokenResponse):
    user: UserSummary


class RegisterData(CamelModel):
    user: UserResponse


class SessionData(CamelModel):
    authenticated: bool
    user: Optional[UserSummary] = None


def envelope(message: str, data: Optional[CamelModel] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True, "message": message}
    if data is not None:
        body["data"] = data.model_dump(by_alias=True, mode="json")
    return body
