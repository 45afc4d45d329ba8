"""
Bookshelf API — Repositories Package
=====================================

What:  Persistence access, one repository per entity.
Why:   Services express rules ("ISBN must be unique", "only the owner may
       delete") without building SQL; repositories build SQL without
       knowing the rules.

Rules every repository follows:
    - Wrap the request's AsyncSession; never create sessions
    - flush(), never commit(): the transaction belongs to get_db_session()
    - Return None for missing rows; raising NotFoundError is the service's job
    - Translate SQLAlchemy errors: IntegrityError → ConflictError,
      anything else → DatabaseError
"""

from bookshelf.repositories.book_repository import BookRepository
from bookshelf.repositories.idempotency_repository import IdempotencyRepository
from bookshelf.repositories.user_repository import UserRepository

__all__ = ["BookRepository", "IdempotencyRepository", "UserRepository"]
