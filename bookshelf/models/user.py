"""
Bookshelf API — User SQLAlchemy Model
======================================

What:  ORM model for the `users` table.
Why:   Books are owned by users; ownership drives the 403 rules.
How:   Portable SQLAlchemy 2.0 types (Uuid, DateTime(timezone=True)) so the
       same model runs on PostgreSQL in production and SQLite in tests.

Table Design:
    - UUID primary key: non-sequential, cannot be enumerated
    - email: unique, stored lower-cased so lookups are case-insensitive
    - password_hash: argon2 hash produced by AuthService; never the password
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from bookshelf.database import Base
from bookshelf.models.timestamps import utcnow


class User(Base):
    """A registered API user."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    email: Mapped[str] = mapped_column(
        String(320),
        nullable=False,
        unique=True,
        index=True,
        comment="Lower-cased email address, unique per user",
    )

    display_name: Mapped[str] = mapped_column(String(100), nullable=False)

    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="argon2 password hash",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}')>"
