"""
Bookshelf API — FastAPI Dependencies
=====================================

What:  Wires repositories and services per request, and guards routes.
Why:   Handlers declare what they need (`Depends(get_book_service)`) and
       FastAPI builds it; tests override any piece with
       app.dependency_overrides.

Object graph for one request:
    get_db_session ──► BookRepository ──► BookService
                   ├─► UserRepository ──► UserService ◄── AuthService (singleton)
                   └─► IdempotencyRepository ──► IdempotencyService

All repositories in a request share one session, hence one transaction.
"""

from uuid import UUID

from fastapi import Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from bookshelf.config import settings
from bookshelf.context import get_request_context
from bookshelf.database import get_db_session
from bookshelf.exceptions import AuthenticationError
from bookshelf.repositories import BookRepository, IdempotencyRepository, UserRepository
from bookshelf.schemas.common import PaginationParams
from bookshelf.services.auth_service import AuthService, auth_service
from bookshelf.services.book_service import BookService
from bookshelf.services.idempotency_service import IdempotencyService
from bookshelf.services.user_service import UserService


def get_auth_service() -> AuthService:
    return auth_service


def get_book_service(db: AsyncSession = Depends(get_db_session)) -> BookService:
    return BookService(BookRepository(db))


def get_user_service(
    db: AsyncSession = Depends(get_db_session),
    auth: AuthService = Depends(get_auth_service),
) -> UserService:
    return UserService(UserRepository(db), auth)


def get_idempotency_service(
    db: AsyncSession = Depends(get_db_session),
) -> IdempotencyService:
    return IdempotencyService(IdempotencyRepository(db))


def get_pagination(
    page: int = Query(default=1, ge=1, description="1-based page number"),
    limit: int = Query(
        default=settings.default_page_size,
        ge=1,
        le=settings.max_page_size,
        description=f"Items per page (max {settings.max_page_size})",
    ),
) -> PaginationParams:
    return PaginationParams(page=page, limit=limit)


async def require_user() -> UUID:
    """
    The authenticated user's ID, or 401.

    AuthenticationMiddleware has already looked at the Authorization header;
    this only reads its verdict from the request context. Declared async so
    it runs on the event loop, in the request's own context.
    """
    ctx = get_request_context()
    if ctx is None or ctx.user_id is None:
        reason = ctx.auth_error if ctx and ctx.auth_error else "Authentication required"
        raise AuthenticationError(message=reason)
    return ctx.user_id
