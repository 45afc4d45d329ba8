"""
Bookshelf API — User Service
=============================

What:  Registration, login and profile lookup.
Rules:
    - Emails are unique, case-insensitively (409 on duplicates)
    - Login failure gives one message whether the email or the password was
      wrong, so the endpoint cannot be used to discover registered emails
"""

import logging
from uuid import UUID

from bookshelf.exceptions import AuthenticationError, ConflictError, NotFoundError
from bookshelf.models.user import User
from bookshelf.repositories.user_repository import UserRepository
from bookshelf.schemas.user import TokenResponse, UserCreate, UserResponse
from bookshelf.services.auth_service import AuthService

logger = logging.getLogger(__name__)


class UserService:

    def __init__(self, users: UserRepository, auth: AuthService):
        self.users = users
        self.auth = auth

    async def register(self, data: UserCreate) -> UserResponse:
        email = data.email.lower()
        if await self.users.get_by_email(email) is not None:
            raise ConflictError(
                message=f"A user with email '{email}' already exists",
                context={"field": "email"},
            )

        user = User(
            email=email,
            display_name=data.display_name,
            password_hash=self.auth.hash_password(data.password),
        )
        await self.users.add(user)
        logger.info("User registered: %s", user.id)
        return UserResponse.model_validate(user)

    async def authenticate(self, email: str, password: str) -> TokenResponse:
        user = await self.users.get_by_email(email)
        valid = self.auth.verify_password(password, user.password_hash if user else None)
        if user is None or not valid:
            logger.info("Failed login attempt")
            raise AuthenticationError(message="Incorrect email or password")

        return TokenResponse(
            access_token=self.auth.create_access_token(user.id),
            expires_in=self.auth.ttl_seconds,
        )

    async def get(self, user_id: UUID) -> UserResponse:
        user = await self.users.get(user_id)
        if user is None:
            raise NotFoundError(resource="user", resource_id=str(user_id))
        return UserResponse.model_validate(user)
