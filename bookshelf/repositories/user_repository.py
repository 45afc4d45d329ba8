"""User persistence."""

from typing import Optional
from uuid import UUID

from sqlalchemy import select

from bookshelf.models.user import User
from bookshelf.repositories.base import BaseRepository


class UserRepository(BaseRepository):
    """Repository for the `users` table."""

    async def get(self, user_id: UUID) -> Optional[User]:
        result = await self._execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[User]:
        """Emails are stored lower-cased; the lookup lower-cases too."""
        result = await self._execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def add(self, user: User) -> User:
        """
        Insert a user. The unique index on email backs up the service's
        existence check when two registrations race.
        """
        self.session.add(user)
        await self._flush(conflict_message=f"A user with email '{user.email}' already exists")
        return user
