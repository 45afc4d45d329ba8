"""Persistence for remembered Idempotency-Key responses."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import delete, select

from bookshelf.models.idempotency import IdempotencyRecord
from bookshelf.repositories.base import BaseRepository


class IdempotencyRepository(BaseRepository):
    """Repository for the `idempotency_records` table."""

    async def get(self, user_id: UUID, key: str) -> Optional[IdempotencyRecord]:
        result = await self._execute(
            select(IdempotencyRecord).where(
                IdempotencyRecord.user_id == user_id,
                IdempotencyRecord.key == key,
            )
        )
        return result.scalar_one_or_none()

    async def add(self, record: IdempotencyRecord) -> IdempotencyRecord:
        """
        Insert a record. Losing a race on (user_id, key) raises ConflictError:
        the other request holding this key is still in flight or just finished.
        """
        self.session.add(record)
        await self._flush(
            conflict_message=(
                "A request with this Idempotency-Key is already being processed. "
                "Retry after it completes."
            )
        )
        return record

    async def delete(self, record: IdempotencyRecord) -> None:
        await self.session.delete(record)
        await self._flush()

    async def purge_expired(self, now: datetime) -> int:
        """Delete every record whose expiry has passed. Returns rows removed."""
        result = await self._execute(
            delete(IdempotencyRecord).where(IdempotencyRecord.expires_at <= now)
        )
        return result.rowcount or 0
