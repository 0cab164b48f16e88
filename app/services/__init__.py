"""Services for business logic."""

from app.services.auth_service import AuthService, LoginResult

__all__ = ["AuthService", "LoginResult"]
