"""
Bookshelf API — Middleware Package
===================================

What:  Cross-cutting concerns applied to every request.
Why:   Handled once here instead of in every route handler.

Middleware Chain (order matters!):
    Request → [Request Context] → [Rate Limit] → [Authentication] → [Logging]
            → [GZip] → [CORS] → Route Handler

    Why this order:
    1. Request Context FIRST: every later step (including a 429) can log
       and respond with the request ID
    2. Rate Limit: reject abuse before decoding tokens or touching the DB
    3. Authentication: identify the caller (never rejects; see authentication.py)
    4. Logging: one access line with status, duration and user ID

    Responses travel back through the same chain in reverse.
"""

from bookshelf.middleware.authentication import AuthenticationMiddleware
from bookshelf.middleware.logging import RequestLoggingMiddleware
from bookshelf.middleware.rate_limit import RateLimitMiddleware
from bookshelf.middleware.request_id import RequestContextMiddleware

__all__ = [
    "AuthenticationMiddleware",
    "RateLimitMiddleware",
    "RequestContextMiddleware",
    "RequestLoggingMiddleware",
]
