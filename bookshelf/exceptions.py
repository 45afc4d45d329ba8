"""
Bookshelf API — Custom Exception Hierarchy
===========================================

What:  Application-specific exceptions, one per client-visible failure mode.
Why:   Services express failures in domain terms; a single set of global
       handlers (registered in main.py) turns them into HTTP responses.
How:   Each class carries a user-safe message, a context dict, a
       machine-readable error code and the HTTP status it maps to.
Who:   Raised by services, repositories and dependencies; caught by global handlers.

Exception Hierarchy:
    BookshelfError (base)                → 500 server_error
    ├── ValidationError                  → 400 validation_error
    ├── AuthenticationError              → 401 unauthorized
    ├── PermissionDeniedError            → 403 forbidden
    ├── NotFoundError                    → 404 not_found
    ├── ConflictError                    → 409 conflict
    ├── IdempotencyKeyMismatchError      → 422 idempotency_key_reused
    ├── RateLimitExceededError           → 429 rate_limit_exceeded
    └── DatabaseError                    → 500 server_error

Security Note:
    `context` is logged server-side and returned as `details` for 4xx errors
    only. 5xx responses always carry a generic message.
"""

from typing import Any, Dict, Optional


class BookshelfError(Exception):
    """
    Base exception for all Bookshelf application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional info (returned as `details` for client errors)
    """

    status_code: int = 500
    error_code: str = "server_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)

    @property
    def headers(self) -> Dict[str, str]:
        """Extra response headers required by the status code (e.g. Retry-After)."""
        return {}


class ValidationError(BookshelfError):
    """
    Raised when client input fails a business validation rule.

    Schema-level problems (wrong types, missing fields) are caught by FastAPI
    and rendered with the same 400 envelope; this exception covers rules that
    need the service layer, such as an unknown sort key.
    """

    status_code = 400
    error_code = "validation_error"

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthenticationError(BookshelfError):
    """
    Raised when the caller is not authenticated (missing, invalid or expired token).

    401 means "we don't know who you are"; compare PermissionDeniedError.
    """

    status_code = 401
    error_code = "unauthorized"

    def __init__(
        self,
        message: str = "Authentication required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)

    @property
    def headers(self) -> Dict[str, str]:
        return {"WWW-Authenticate": "Bearer"}


class PermissionDeniedError(BookshelfError):
    """
    Raised when an authenticated caller may not act on a resource.

    When: Modifying or deleting a book owned by another user.
    """

    status_code = 403
    error_code = "forbidden"

    def __init__(
        self,
        message: str = "You do not have permission to perform this action",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(BookshelfError):
    """
    Raised when a requested resource does not exist.

    Repositories return None for missing rows; services convert that
    into NotFoundError so routes stay free of existence checks.
    """

    status_code = 404
    error_code = "not_found"

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(BookshelfError):
    """
    Raised when a request conflicts with the current state of the server.

    When: Duplicate email or ISBN, or two concurrent requests racing on the
    same Idempotency-Key.
    """

    status_code = 409
    error_code = "conflict"

    def __init__(
        self,
        message: str = "The request conflicts with the current state of the resource",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class IdempotencyKeyMismatchError(BookshelfError):
    """
    Raised when an Idempotency-Key is reused with a different request payload.

    422 follows the IETF Idempotency-Key header draft: the request is well
    formed, but cannot be processed under a key bound to another payload.
    """

    status_code = 422
    error_code = "idempotency_key_reused"

    def __init__(
        self,
        key: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["idempotency_key"] = key
        super().__init__(
            message=(
                "This Idempotency-Key was already used with a different request. "
                "Use a new key for a new request."
            ),
            context=ctx,
        )
        self.key = key


class RateLimitExceededError(BookshelfError):
    """
    Raised when a client exceeds the per-IP request rate limit.

    Response includes a Retry-After header with the seconds until a slot frees up.
    """

    status_code = 429
    error_code = "rate_limit_exceeded"

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after

    @property
    def headers(self) -> Dict[str, str]:
        return {"Retry-After": str(self.retry_after)}


class DatabaseError(BookshelfError):
    """
    Raised when database operations fail unexpectedly.

    The message returned to the client is always generic. Details (SQL,
    constraint names) are logged server-side only.
    """

    status_code = 500
    error_code = "server_error"

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
