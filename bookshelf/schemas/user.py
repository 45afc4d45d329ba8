"""
Bookshelf API — User and Token Schemas
=======================================

What:  Contracts for registration, the current-user endpoint and token issue.
Security: UserResponse never includes the password hash.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator

from bookshelf.models.timestamps import as_utc


class UserCreate(BaseModel):
    """Body of POST /api/v1/users."""
    email: EmailStr
    display_name: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=8, max_length=128)

    model_config = {"str_strip_whitespace": True}


class UserResponse(BaseModel):
    id: uuid.UUID
    email: str
    display_name: str
    created_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class TokenRequest(BaseModel):
    """Body of POST /api/v1/auth/token."""
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Token lifetime in seconds")
