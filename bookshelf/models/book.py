"""
Bookshelf API — Book SQLAlchemy Model
======================================

What:  ORM model for the `books` table.
Why:   The example resource of the API: listed with pagination, created
       idempotently, modified only by its owner.

Table Design:
    - isbn: optional but unique when present (duplicate → 409 Conflict)
    - owner_id: the user who created the book; only they may modify it
    - updated_at: bumped by the service on every PUT/PATCH

    Indexes:
        created_at — default list order (newest first)
        author     — the `author` list filter
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from bookshelf.database import Base
from bookshelf.models.timestamps import utcnow


class Book(Base):
    """
    A book on somebody's shelf.

    Query Patterns:
        - List: ORDER BY created_at DESC LIMIT :limit OFFSET :offset
        - Filter: WHERE lower(author) = :author
        - Get: WHERE id = :uuid (primary key)
    """

    __tablename__ = "books"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)

    author: Mapped[str] = mapped_column(String(255), nullable=False)

    isbn: Mapped[Optional[str]] = mapped_column(
        String(13),
        nullable=True,
        unique=True,
        comment="Normalised ISBN-10 or ISBN-13 (digits, trailing X allowed)",
    )

    published_year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    __table_args__ = (
        Index("idx_books_created_at", created_at.desc()),
        Index("idx_books_author", "author"),
    )

    def __repr__(self) -> str:
        return f"<Book(id={self.id}, title='{self.title}')>"
