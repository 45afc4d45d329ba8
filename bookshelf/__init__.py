"""
Bookshelf API — Application Package Initializer
================================================

What: Marks the `bookshelf` directory as a Python package.
Why:  Enables module imports like `from bookshelf.config import settings`.
Who:  Used implicitly by Python's import system and explicitly by Alembic, pytest, and uvicorn.

Architecture Note:
    The service is split into layers, each with a single responsibility:

    ┌─────────────────────────────────────┐
    │        Middleware (Pipeline)        │  ← request ID, rate limit, auth, access log
    ├─────────────────────────────────────┤
    │       Routes (Handlers/API)         │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │      Services (Business Rules)      │  ← ownership, uniqueness, idempotency
    ├─────────────────────────────────────┤
    │     Repositories (Persistence)      │  ← one entity per repository
    ├─────────────────────────────────────┤
    │   Models & Schemas / Database       │  ← SQLAlchemy ORM + Pydantic contracts
    └─────────────────────────────────────┘

    - Routes translate HTTP into service calls and service results back into HTTP
    - Services never see a Request or a status code; they raise domain exceptions
    - Repositories are the only layer that builds SQL
    - Request-scoped data (request ID, user ID) travels in `bookshelf.context`,
      never in module globals
"""

__version__ = "1.0.0"
