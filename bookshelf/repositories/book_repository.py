"""
Bookshelf API — Book Repository
================================

What:  All SQL touching the `books` table.
Who:   Used by BookService only.

Listing uses offset pagination (LIMIT/OFFSET) with a separate COUNT query
sharing the same filters, so `total` always describes the filtered set.
Every sort has `id` as a tiebreaker: without it rows with equal sort keys
can swap between pages and appear twice or not at all.
"""

from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import asc, desc, func, select
from sqlalchemy.sql import Select

from bookshelf.models.book import Book
from bookshelf.repositories.base import BaseRepository

# sort key → (column, descending)
SORT_OPTIONS: Dict[str, Tuple[object, bool]] = {
    "created_at": (Book.created_at, False),
    "-created_at": (Book.created_at, True),
    "title": (Book.title, False),
    "-title": (Book.title, True),
    "published_year": (Book.published_year, False),
    "-published_year": (Book.published_year, True),
}

DEFAULT_SORT = "-created_at"


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class BookRepository(BaseRepository):
    """Repository for the `books` table."""

    async def get(self, book_id: UUID) -> Optional[Book]:
        result = await self._execute(select(Book).where(Book.id == book_id))
        return result.scalar_one_or_none()

    async def get_by_isbn(self, isbn: str) -> Optional[Book]:
        result = await self._execute(select(Book).where(Book.isbn == isbn))
        return result.scalar_one_or_none()

    def _apply_filters(
        self,
        query: Select,
        author: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Select:
        if author:
            query = query.where(func.lower(Book.author) == author.lower())
        if search:
            query = query.where(
                Book.title.ilike(f"%{_escape_like(search)}%", escape="\\")
            )
        return query

    async def list(
        self,
        offset: int = 0,
        limit: int = 20,
        author: Optional[str] = None,
        search: Optional[str] = None,
        sort: str = DEFAULT_SORT,
    ) -> List[Book]:
        """
        One page of books.

        Query plan (default sort, no filters):
            SELECT * FROM books ORDER BY created_at DESC, id DESC
            LIMIT :limit OFFSET :offset
        """
        column, descending = SORT_OPTIONS[sort]
        direction = desc if descending else asc

        query = self._apply_filters(select(Book), author=author, search=search)
        query = (
            query.order_by(direction(column), direction(Book.id))
            .offset(offset)
            .limit(limit)
        )
        result = await self._execute(query)
        return list(result.scalars().all())

    async def count(
        self,
        author: Optional[str] = None,
        search: Optional[str] = None,
    ) -> int:
        query = self._apply_filters(select(func.count(Book.id)), author=author, search=search)
        result = await self._execute(query)
        return result.scalar() or 0

    async def add(self, book: Book) -> Book:
        self.session.add(book)
        await self._flush(conflict_message=f"A book with ISBN '{book.isbn}' already exists")
        return book

    async def save(self, book: Book) -> Book:
        """Flush changes made to an already-loaded book."""
        await self._flush(conflict_message=f"A book with ISBN '{book.isbn}' already exists")
        return book

    async def delete(self, book: Book) -> None:
        await self.session.delete(book)
        await self._flush()
