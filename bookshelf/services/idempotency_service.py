"""
Bookshelf API — Idempotency Service
====================================

What:  Makes POST safe to retry via the `Idempotency-Key` request header.
Why:   GET, PUT and DELETE are idempotent by definition; POST is not. A
       client that times out on POST /books cannot know whether the book
       was created. With a key, it can simply send the same request again.

Protocol (per authenticated user):
    1. No key                      → normal processing, nothing stored
    2. Unknown key                 → process, then remember(status, body) in
                                     the same transaction as the side effect
    3. Known key, same request     → replay the stored status and body;
                                     no side effect happens again
    4. Known key, different request → 422 IdempotencyKeyMismatchError
    5. Two requests racing on a new key → the second loses on the unique
                                     constraint at remember() → 409
    6. Expired record              → deleted, treated as unknown

"Same request" means the same fingerprint: sha256 over the method, the path
and the body serialised as canonical JSON (sorted keys, no whitespace), so
key order and formatting in the client's JSON do not matter.
"""

import hashlib
import json
import logging
from datetime import timedelta
from typing import Any, Dict, Optional
from uuid import UUID

from bookshelf.config import settings
from bookshelf.exceptions import IdempotencyKeyMismatchError, ValidationError
from bookshelf.models.idempotency import IdempotencyRecord
from bookshelf.models.timestamps import as_utc, utcnow
from bookshelf.repositories.idempotency_repository import IdempotencyRepository

logger = logging.getLogger(__name__)

MAX_KEY_LENGTH = 255


class IdempotencyService:

    def __init__(self, records: IdempotencyRepository, ttl_hours: Optional[int] = None):
        self.records = records
        self.ttl = timedelta(hours=ttl_hours or settings.idempotency_ttl_hours)

    @staticmethod
    def validate_key(key: str) -> str:
        key = key.strip()
        if not key or len(key) > MAX_KEY_LENGTH:
            raise ValidationError(
                message=f"Idempotency-Key must be 1-{MAX_KEY_LENGTH} characters",
                field="Idempotency-Key",
            )
        return key

    @staticmethod
    def fingerprint(method: str, path: str, body: Any) -> str:
        canonical = json.dumps(body, sort_keys=True, separators=(",", ":"), default=str)
        digest = hashlib.sha256()
        digest.update(method.upper().encode())
        digest.update(b"\n")
        digest.update(path.encode())
        digest.update(b"\n")
        digest.update(canonical.encode())
        return digest.hexdigest()

    async def lookup(
        self, user_id: UUID, key: str, fingerprint: str
    ) -> Optional[IdempotencyRecord]:
        """
        Find a replayable response for this key.

        Returns:
            The stored record when the same request was already processed,
            None when the key is new (or its record expired).

        Raises:
            IdempotencyKeyMismatchError: key already bound to another request
        """
        record = await self.records.get(user_id, key)
        if record is None:
            return None

        if as_utc(record.expires_at) <= utcnow():
            logger.info("Idempotency record expired, discarding: %s", key)
            await self.records.delete(record)
            return None

        if record.request_fingerprint != fingerprint:
            logger.warning("Idempotency-Key reused with a different payload: %s", key)
            raise IdempotencyKeyMismatchError(key=key)

        logger.info("Replaying stored response for Idempotency-Key %s", key)
        return record

    async def remember(
        self,
        user_id: UUID,
        key: str,
        fingerprint: str,
        status_code: int,
        body: Dict[str, Any],
        resource_id: Optional[UUID] = None,
    ) -> IdempotencyRecord:
        now = utcnow()
        record = IdempotencyRecord(
            user_id=user_id,
            key=key,
            request_fingerprint=fingerprint,
            status_code=status_code,
            response_body=body,
            resource_id=resource_id,
            created_at=now,
            expires_at=now + self.ttl,
        )
        return await self.records.add(record)

    async def purge_expired(self) -> int:
        removed = await self.records.purge_expired(utcnow())
        if removed:
            logger.info("Purged %d expired idempotency records", removed)
        return removed
