"""Shared session handling and error translation for repositories."""

import logging
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bookshelf.exceptions import ConflictError, DatabaseError

logger = logging.getLogger(__name__)


class BaseRepository:
    """Holds the request-scoped session and flushes with error translation."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _flush(self, conflict_message: Optional[str] = None) -> None:
        """
        Flush pending changes so constraint violations surface now, inside
        the handler, instead of at commit time after the response is built.
        """
        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning("Integrity violation on flush: %s", str(e.orig))
            raise ConflictError(
                message=conflict_message or "The resource conflicts with an existing one",
            )
        except SQLAlchemyError as e:
            logger.error("Database error on flush: %s", str(e), exc_info=True)
            raise DatabaseError(context={"error_type": type(e).__name__})

    async def _execute(self, statement: Any):
        try:
            return await self.session.execute(statement)
        except SQLAlchemyError as e:
            logger.error("Database error executing query: %s", str(e), exc_info=True)
            raise DatabaseError(context={"error_type": type(e).__name__})
