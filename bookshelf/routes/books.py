"""
Bookshelf API — Books Route Handlers
=====================================

What:  The books resource: list, create, read, replace, update, delete.
How:   Each handler extracts input, calls BookService, and shapes the HTTP
       response (status code, Location, pagination headers). No business
       rules live here.

Endpoints:
    GET    /api/v1/books            200  paginated list {data, pagination}
    POST   /api/v1/books            201  create (Idempotency-Key aware)
    GET    /api/v1/books/{id}       200
    PUT    /api/v1/books/{id}       200  full replacement
    PATCH  /api/v1/books/{id}       200  partial update
    DELETE /api/v1/books/{id}       204  no body

Pagination headers on the list:
    X-Total-Count: total matching items
    Link: RFC 8288 first/prev/next/last URLs, so clients can page without
          building URLs themselves
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Query, Request, Response
from fastapi.responses import JSONResponse

from bookshelf.dependencies import (
    get_book_service,
    get_idempotency_service,
    get_pagination,
    require_user,
)
from bookshelf.repositories.book_repository import DEFAULT_SORT
from bookshelf.schemas.book import BookCreate, BookReplace, BookResponse, BookUpdate
from bookshelf.schemas.common import ErrorResponse, Page, PaginationMeta, PaginationParams
from bookshelf.services.book_service import BookService
from bookshelf.services.idempotency_service import IdempotencyService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["Books"])

IDEMPOTENT_REPLAY_HEADER = "Idempotent-Replayed"


def build_link_header(request: Request, meta: PaginationMeta) -> str:
    """RFC 8288 Link header for a paginated response; empty when there are no pages."""
    if not meta.total_pages:
        return ""

    def page_url(page: int) -> str:
        return str(request.url.include_query_params(page=page, limit=meta.limit))

    links: List[str] = [f'<{page_url(1)}>; rel="first"']
    if meta.has_prev:
        links.append(f'<{page_url(min(meta.page - 1, meta.total_pages))}>; rel="prev"')
    if meta.has_next:
        links.append(f'<{page_url(meta.page + 1)}>; rel="next"')
    links.append(f'<{page_url(meta.total_pages)}>; rel="last"')
    return ", ".join(links)


@router.get(
    "/books",
    response_model=Page[BookResponse],
    responses={400: {"description": "Invalid query parameters", "model": ErrorResponse}},
    summary="List books with pagination",
)
async def list_books(
    request: Request,
    response: Response,
    pagination: PaginationParams = Depends(get_pagination),
    author: Optional[str] = Query(default=None, max_length=255, description="Exact author, case-insensitive"),
    q: Optional[str] = Query(default=None, max_length=255, description="Substring of the title"),
    sort: str = Query(
        default=DEFAULT_SORT,
        description="created_at, title or published_year; prefix with '-' for descending",
    ),
    books: BookService = Depends(get_book_service),
) -> Page[BookResponse]:
    """
    Example client usage:
        GET /api/v1/books?page=1&limit=20
        GET /api/v1/books?author=Ursula%20K.%20Le%20Guin&sort=published_year
        GET /api/v1/books?q=dune&page=2
    """
    result = await books.list_books(pagination, author=author, search=q, sort=sort)

    response.headers["X-Total-Count"] = str(result.pagination.total)
    link = build_link_header(request, result.pagination)
    if link:
        response.headers["Link"] = link
    return result


@router.post(
    "/books",
    status_code=201,
    response_model=BookResponse,
    responses={
        201: {"description": "Book created (or replayed for a repeated Idempotency-Key)"},
        400: {"description": "Invalid body", "model": ErrorResponse},
        401: {"description": "Not authenticated", "model": ErrorResponse},
        409: {"description": "ISBN already used, or key in flight", "model": ErrorResponse},
        422: {"description": "Idempotency-Key reused with another body", "model": ErrorResponse},
    },
    summary="Create a book",
)
async def create_book(
    payload: BookCreate,
    request: Request,
    response: Response,
    idempotency_key: Optional[str] = Header(
        default=None,
        alias="Idempotency-Key",
        description="Client-generated unique key (e.g. a UUID) that makes retries safe",
    ),
    user_id: UUID = Depends(require_user),
    books: BookService = Depends(get_book_service),
    idempotency: IdempotencyService = Depends(get_idempotency_service),
):
    """
    Create a book owned by the caller.

    With an Idempotency-Key, a retry of the same request returns the
    original response (marked `Idempotent-Replayed: true`) instead of
    creating a duplicate.
    """
    if idempotency_key is None:
        book = await books.create_book(user_id, payload)
        response.headers["Location"] = str(request.url_for("get_book", book_id=str(book.id)))
        return book

    key = idempotency.validate_key(idempotency_key)
    fingerprint = idempotency.fingerprint(
        request.method, request.url.path, payload.model_dump(mode="json")
    )

    record = await idempotency.lookup(user_id, key, fingerprint)
    if record is not None:
        headers = {IDEMPOTENT_REPLAY_HEADER: "true"}
        if record.resource_id is not None:
            headers["Location"] = str(
                request.url_for("get_book", book_id=str(record.resource_id))
            )
        return JSONResponse(
            status_code=record.status_code,
            content=record.response_body,
            headers=headers,
        )

    book = await books.create_book(user_id, payload)
    await idempotency.remember(
        user_id=user_id,
        key=key,
        fingerprint=fingerprint,
        status_code=201,
        body=book.model_dump(mode="json"),
        resource_id=book.id,
    )
    response.headers["Location"] = str(request.url_for("get_book", book_id=str(book.id)))
    response.headers[IDEMPOTENT_REPLAY_HEADER] = "false"
    return book


@router.get(
    "/books/{book_id}",
    response_model=BookResponse,
    responses={404: {"description": "Book not found", "model": ErrorResponse}},
    summary="Get a single book",
)
async def get_book(
    book_id: UUID,
    books: BookService = Depends(get_book_service),
) -> BookResponse:
    return await books.get_book(book_id)


@router.put(
    "/books/{book_id}",
    response_model=BookResponse,
    responses={
        401: {"description": "Not authenticated", "model": ErrorResponse},
        403: {"description": "Not the owner", "model": ErrorResponse},
        404: {"description": "Book not found", "model": ErrorResponse},
        409: {"description": "ISBN already used", "model": ErrorResponse},
    },
    summary="Replace a book",
)
async def replace_book(
    book_id: UUID,
    payload: BookReplace,
    user_id: UUID = Depends(require_user),
    books: BookService = Depends(get_book_service),
) -> BookResponse:
    return await books.replace_book(book_id, user_id, payload)


@router.patch(
    "/books/{book_id}",
    response_model=BookResponse,
    responses={
        401: {"description": "Not authenticated", "model": ErrorResponse},
        403: {"description": "Not the owner", "model": ErrorResponse},
        404: {"description": "Book not found", "model": ErrorResponse},
        409: {"description": "ISBN already used", "model": ErrorResponse},
    },
    summary="Partially update a book",
)
async def update_book(
    book_id: UUID,
    payload: BookUpdate,
    user_id: UUID = Depends(require_user),
    books: BookService = Depends(get_book_service),
) -> BookResponse:
    return await books.update_book(book_id, user_id, payload)


@router.delete(
    "/books/{book_id}",
    status_code=204,
    response_class=Response,
    responses={
        401: {"description": "Not authenticated", "model": ErrorResponse},
        403: {"description": "Not the owner", "model": ErrorResponse},
        404: {"description": "Book not found", "model": ErrorResponse},
    },
    summary="Delete a book",
)
async def delete_book(
    book_id: UUID,
    user_id: UUID = Depends(require_user),
    books: BookService = Depends(get_book_service),
) -> Response:
    await books.delete_book(book_id, user_id)
    return Response(status_code=204)
