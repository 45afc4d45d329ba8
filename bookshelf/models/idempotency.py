"""
Bookshelf API — Idempotency Record Model
=========================================

What:  Stores the response of a POST made with an Idempotency-Key header.
Why:   Clients retry requests after timeouts. Without a stored response a
       retried POST /books creates a second book; with it the retry receives
       the original 201 and the server state is unchanged.
How:   One row per (user_id, key). The row is written in the same
       transaction as the side effect, so a crash cannot leave a book
       without its record or a record without its book.

Row lifetime:
    Rows expire after IDEMPOTENCY_TTL_HOURS. Expired rows are ignored on
    lookup and removed by IdempotencyService.purge_expired().
"""

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, DateTime, Index, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from bookshelf.database import Base
from bookshelf.models.timestamps import utcnow


class IdempotencyRecord(Base):
    """A remembered response for one (user, Idempotency-Key) pair."""

    __tablename__ = "idempotency_records"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    key: Mapped[str] = mapped_column(String(255), nullable=False)

    # sha256 of method + path + canonical body; detects key reuse with a new payload
    request_fingerprint: Mapped[str] = mapped_column(String(64), nullable=False)

    status_code: Mapped[int] = mapped_column(Integer, nullable=False)

    response_body: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)

    resource_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "key", name="uq_idempotency_user_key"),
        Index("idx_idempotency_expires_at", "expires_at"),
    )

    def __repr__(self) -> str:
        return f"<IdempotencyRecord(user_id={self.user_id}, key='{self.key}')>"
