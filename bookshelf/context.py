"""
Bookshelf API — Request-Scoped Context
=======================================

What:  A per-request key-value store shared by middleware, dependencies,
       services and loggers.
Why:   Data such as the request ID or the authenticated user ID is produced
       by middleware but needed deep in the call stack. Passing it through
       every signature is noisy; storing it in a module global is wrong
       because many requests run concurrently on one event loop.
How:   A ContextVar holds the current RequestContext. asyncio copies the
       context into every task it spawns, so each request sees only its own
       values, and middleware further down the chain can fill in fields
       (e.g. user_id) on the same object the outer middleware created.
Who:   Opened by RequestContextMiddleware; read via the helpers below.

Lifecycle:
    RequestContextMiddleware → start_request_context()
        AuthenticationMiddleware → ctx.user_id = ...
            handlers / services  → current_user_id(), current_request_id()
    RequestContextMiddleware → reset_request_context()
"""

import logging
import time
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from uuid import UUID


@dataclass
class RequestContext:
    """
    Values scoped to a single HTTP request.

    Attributes:
        request_id: Correlation ID (client-supplied X-Request-ID or generated)
        method: HTTP method
        path: URL path
        client_ip: Peer address, "unknown" when not available
        user_id: Authenticated user, None for anonymous requests
        auth_error: Why a presented bearer token was rejected, if it was
        started_at: perf_counter() timestamp at request entry
        extras: Free-form values bound by handlers (see bind())
    """

    request_id: str
    method: str = ""
    path: str = ""
    client_ip: str = "unknown"
    user_id: Optional[UUID] = None
    auth_error: Optional[str] = None
    started_at: float = field(default_factory=time.perf_counter)
    extras: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.started_at) * 1000


_request_context: ContextVar[Optional[RequestContext]] = ContextVar(
    "request_context", default=None
)


def start_request_context(
    request_id: str,
    method: str = "",
    path: str = "",
    client_ip: str = "unknown",
) -> Token:
    """Open a new context for the current request. Returns the token for reset."""
    ctx = RequestContext(
        request_id=request_id,
        method=method,
        path=path,
        client_ip=client_ip,
    )
    return _request_context.set(ctx)


def reset_request_context(token: Token) -> None:
    _request_context.reset(token)


def get_request_context() -> Optional[RequestContext]:
    """The current request's context, or None outside a request (CLI, tests, startup)."""
    return _request_context.get()


def current_request_id() -> str:
    ctx = _request_context.get()
    return ctx.request_id if ctx else ""


def current_user_id() -> Optional[UUID]:
    ctx = _request_context.get()
    return ctx.user_id if ctx else None


def bind(**values: Any) -> None:
    """
    Attach extra values to the current request context.

    No-op outside a request so that services can call it unconditionally.
    """
    ctx = _request_context.get()
    if ctx is not None:
        ctx.extras.update(values)


class RequestIdLogFilter(logging.Filter):
    """
    Stamps every log record with the current request ID.

    Installed on the root handler by setup_logging() so the format string can
    reference %(request_id)s. Records emitted outside a request get "-".
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = current_request_id() or "-"
        return True
