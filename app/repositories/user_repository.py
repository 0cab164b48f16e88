"""
Persistence of users and their session state.

Each write commits on its own; a single-row update is the only atomicity
the auth flow relies on. Refresh-token rotation is a conditional update so
that two concurrent rotations of the same token cannot both succeed.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User


def _now() -> datetime:
    return datetime.now(timezone.utc)


class UserRepository:
    """Session store adapter over the `users` table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ─── Lookups ─────────────────────────────────
    async def get_by_id(self, user_id: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def exists_with_email_or_phone(self, email: str, phone: str) -> bool:
        result = await self.session.execute(
            select(User.id).where(or_(User.email == email.lower(), User.phone == phone)).limit(1)
        )
        return result.first() is not None

    # ─── Registration ────────────────────────────
    async def create(
        self,
        *,
        email: str,
        password_hash: str,
        first_name: str,
        last_name: str,
        phone: str,
        organization_id: str,
    ) -> User:
        user = User(
            email=email.lower(),
            password_hash=password_hash,
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            organization_id=organization_id,
            is_active=True,
            is_verified=False,
        )
        self.session.add(user)
        try:
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        await self.session.refresh(user)
        return user

    # ─── Session state ───────────────────────────
    async def _update(self, user_id: str, **values) -> int:
        values.setdefault("updated_at", _now())
        result = await self.session.execute(
            update(User)
            .where(User.id == user_id)
            .values(**values)
        )
        await self.session.commit()
        return result.rowcount

    async def set_refresh_token(self, user_id: str, token: str) -> None:
        await self._update(user_id, refresh_token=token)

    async def clear_refresh_token(self, user_id: str) -> None:
        await self._update(user_id, refresh_token=None)

    async def touch_last_active(self, user_id: str) -> None:
        await self._update(user_id, last_active_at=_now())

    async def record_login(self, user_id: str, refresh_token: str) -> None:
        """Store the new refresh token and stamp last-login and last-active."""
        now = _now()
        await self._update(
            user_id,
            refresh_token=refresh_token,
            last_login_at=now,
            last_active_at=now,
        )

    async def rotate_refresh_token(self, user_id: str, expected: str, new: str) -> bool:
        """
        Replace the stored refresh token only if it still equals `expected`.

        Returns False when another request rotated or cleared it first.
        """
        now = _now()
        result = await self.session.execute(
            update(User)
            .where(User.id == user_id, User.refresh_token == expected)
            .values(refresh_token=new, last_active_at=now, updated_at=now)
        )
        await self.session.commit()
        return result.rowcount == 1
