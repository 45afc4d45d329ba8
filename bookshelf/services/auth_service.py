"""
Bookshelf API — Authentication Service
=======================================

What:  Password hashing and access-token issue/verification.
How:   passlib CryptContext with argon2 for passwords; PyJWT (HS256 by
       default) for stateless bearer tokens.
Who:   UserService (hash/verify), AuthenticationMiddleware (decode).

Token claims:
    sub  — user UUID as a string
    iat  — issued-at
    exp  — expiry (ACCESS_TOKEN_TTL_MINUTES after iat)
    type — always "access"
"""

import logging
from datetime import timedelta
from typing import Optional
from uuid import UUID

import jwt
from passlib.context import CryptContext

from bookshelf.config import settings
from bookshelf.exceptions import AuthenticationError
from bookshelf.models.timestamps import utcnow

logger = logging.getLogger(__name__)


class AuthService:
    """Stateless: holds only configuration and the hashing context."""

    def __init__(
        self,
        secret: Optional[str] = None,
        algorithm: Optional[str] = None,
        ttl_minutes: Optional[int] = None,
    ):
        self.secret = secret or settings.jwt_secret
        self.algorithm = algorithm or settings.jwt_algorithm
        self.ttl_minutes = ttl_minutes or settings.access_token_ttl_minutes
        self.pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

    # ── Passwords ─────────────────────────────────────────────────────────

    def hash_password(self, password: str) -> str:
        return self.pwd_context.hash(password)

    def verify_password(self, password: str, password_hash: Optional[str]) -> bool:
        """
        Check a password against a stored hash.

        With no hash (unknown user) a dummy verification still runs so that
        response time does not reveal whether the email is registered.
        """
        if password_hash is None:
            self.pwd_context.dummy_verify()
            return False
        try:
            return self.pwd_context.verify(password, password_hash)
        except ValueError:
            logger.warning("Stored password hash could not be parsed")
            return False

    # ── Tokens ────────────────────────────────────────────────────────────

    @property
    def ttl_seconds(self) -> int:
        return self.ttl_minutes * 60

    def create_access_token(self, user_id: UUID) -> str:
        now = utcnow()
        payload = {
            "sub": str(user_id),
            "iat": now,
            "exp": now + timedelta(minutes=self.ttl_minutes),
            "type": "access",
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def decode_access_token(self, token: str) -> UUID:
        """
        Validate a bearer token and return its subject.

        Raises:
            AuthenticationError: Expired, wrong signature, malformed, or
                                 missing/invalid `sub`
        """
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            raise AuthenticationError(message="Access token has expired")
        except jwt.InvalidTokenError:
            raise AuthenticationError(message="Invalid access token")

        if payload.get("type") != "access":
            raise AuthenticationError(message="Invalid access token")
        try:
            return UUID(str(payload.get("sub")))
        except ValueError:
            raise AuthenticationError(message="Invalid access token")


# Singleton instance; configuration is immutable after startup
auth_service = AuthService()
