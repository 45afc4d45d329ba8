"""
Bookshelf API — ORM Models Package
===================================

Importing this package registers every table on `Base.metadata`, which is
what Alembic autogenerate and `create_schema()` rely on.
"""

from bookshelf.models.book import Book
from bookshelf.models.idempotency import IdempotencyRecord
from bookshelf.models.user import User

__all__ = ["Book", "IdempotencyRecord", "User"]
