"""
Bookshelf API — Book Service (Business Rules)
==============================================

What:  Everything the API may do to books, independent of HTTP.
Why:   Handlers stay thin; these rules can be tested with mocked repositories.
Who:   Called by the books route handlers.

Rules:
    - Anyone may read; only authenticated users may create
    - Only a book's owner may replace, update or delete it (403 otherwise)
    - Existence is checked before ownership: a missing book is 404 for
      everyone, so 403 is reserved for books that really exist
    - ISBNs are unique across all books (409 on collision)
    - updated_at moves on every modification

Error mapping:
    Missing book       → NotFoundError (404)
    Not the owner      → PermissionDeniedError (403)
    ISBN taken         → ConflictError (409)
    Unknown sort key   → ValidationError (400)
"""

import logging
from typing import Any, Dict, Optional
from uuid import UUID

from bookshelf.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from bookshelf.models.book import Book
from bookshelf.models.timestamps import utcnow
from bookshelf.repositories.book_repository import DEFAULT_SORT, SORT_OPTIONS, BookRepository
from bookshelf.schemas.book import BookCreate, BookReplace, BookResponse, BookUpdate
from bookshelf.schemas.common import Page, PaginationParams
from bookshelf.services.pagination import build_pagination, offset_for

logger = logging.getLogger(__name__)


class BookService:

    def __init__(self, books: BookRepository):
        self.books = books

    # ── Reads ─────────────────────────────────────────────────────────────

    async def list_books(
        self,
        params: PaginationParams,
        author: Optional[str] = None,
        search: Optional[str] = None,
        sort: str = DEFAULT_SORT,
    ) -> Page[BookResponse]:
        """
        One page of books plus pagination metadata.

        Raises:
            ValidationError: sort is not one of SORT_OPTIONS
        """
        if sort not in SORT_OPTIONS:
            raise ValidationError(
                message=f"Invalid sort '{sort}'. Must be one of: {', '.join(SORT_OPTIONS)}",
                field="sort",
                context={"allowed": list(SORT_OPTIONS)},
            )

        total = await self.books.count(author=author, search=search)
        items = []
        # Skip the page query when the offset is already past the end
        offset = offset_for(params.page, params.limit)
        if offset < total:
            items = await self.books.list(
                offset=offset,
                limit=params.limit,
                author=author,
                search=search,
                sort=sort,
            )

        return Page[BookResponse](
            data=[BookResponse.model_validate(book) for book in items],
            pagination=build_pagination(params.page, params.limit, total),
        )

    async def get_book(self, book_id: UUID) -> BookResponse:
        return BookResponse.model_validate(await self._get_existing(book_id))

    # ── Writes ────────────────────────────────────────────────────────────

    async def create_book(self, owner_id: UUID, data: BookCreate) -> BookResponse:
        await self._ensure_isbn_available(data.isbn)

        book = Book(
            title=data.title,
            author=data.author,
            isbn=data.isbn,
            published_year=data.published_year,
            owner_id=owner_id,
        )
        await self.books.add(book)
        logger.info("Book created: %s by user %s", book.id, owner_id)
        return BookResponse.model_validate(book)

    async def replace_book(
        self, book_id: UUID, user_id: UUID, data: BookReplace
    ) -> BookResponse:
        """PUT semantics: every field takes the value sent, including nulls."""
        book = await self._get_owned(book_id, user_id)
        await self._ensure_isbn_available(data.isbn, exclude_id=book.id)
        return await self._apply(book, data.model_dump())

    async def update_book(
        self, book_id: UUID, user_id: UUID, data: BookUpdate
    ) -> BookResponse:
        """PATCH semantics: only fields present in the request body change."""
        book = await self._get_owned(book_id, user_id)
        changes = data.model_dump(exclude_unset=True)
        if "isbn" in changes:
            await self._ensure_isbn_available(changes["isbn"], exclude_id=book.id)
        return await self._apply(book, changes)

    async def delete_book(self, book_id: UUID, user_id: UUID) -> None:
        book = await self._get_owned(book_id, user_id)
        await self.books.delete(book)
        logger.info("Book deleted: %s by user %s", book_id, user_id)

    # ── Helpers ───────────────────────────────────────────────────────────

    async def _apply(self, book: Book, changes: Dict[str, Any]) -> BookResponse:
        for name, value in changes.items():
            setattr(book, name, value)
        book.updated_at = utcnow()
        await self.books.save(book)
        return BookResponse.model_validate(book)

    async def _get_existing(self, book_id: UUID) -> Book:
        book = await self.books.get(book_id)
        if book is None:
            raise NotFoundError(resource="book", resource_id=str(book_id))
        return book

    async def _get_owned(self, book_id: UUID, user_id: UUID) -> Book:
        book = await self._get_existing(book_id)
        if book.owner_id != user_id:
            raise PermissionDeniedError(
                message="Only the owner of this book can modify it",
                context={"book_id": str(book_id)},
            )
        return book

    async def _ensure_isbn_available(
        self, isbn: Optional[str], exclude_id: Optional[UUID] = None
    ) -> None:
        if not isbn:
            return
        existing = await self.books.get_by_isbn(isbn)
        if existing is not None and existing.id != exclude_id:
            raise ConflictError(
                message=f"A book with ISBN '{isbn}' already exists",
                context={"field": "isbn", "existing_id": str(existing.id)},
            )
