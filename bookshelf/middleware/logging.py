"""
Bookshelf API — Request Logging Middleware
===========================================

What:  One access-log line per HTTP request.
How:   Times the downstream call and logs method, path, status, duration,
       client IP, request ID and user ID.
When:  Inside AuthenticationMiddleware, so the user ID is already known.

Log level by status:
    5xx → ERROR, 4xx → WARNING, everything else → INFO

What we log vs what we DON'T log (privacy):
    ✅ Log: method, path, status, duration, IP, request ID, user ID
    ❌ Don't log: request bodies (passwords, PII), Authorization headers
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from bookshelf.context import get_request_context

logger = logging.getLogger("bookshelf.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs structured information about each HTTP request and response.

    Duration covers everything downstream: validation, handler, database
    and serialization. /health is skipped (probes would drown real traffic).
    """

    SKIP_PATHS = {"/health"}

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in self.SKIP_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            # RequestContextMiddleware builds the 500 envelope further out;
            # the access line is still written here, as a 500
            self._log_access(request, 500, start_time)
            raise

        self._log_access(request, response.status_code, start_time)
        return response

    @staticmethod
    def _log_access(request: Request, status: int, start_time: float) -> None:
        duration_ms = (time.perf_counter() - start_time) * 1000

        ctx = get_request_context()
        rid = ctx.request_id if ctx else ""
        client_ip = ctx.client_ip if ctx else "unknown"
        user_id = str(ctx.user_id) if ctx and ctx.user_id else "-"

        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms from %s user=%s",
            request.method,
            request.url.path,
            status,
            duration_ms,
            client_ip,
            user_id,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": request.url.path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
                "user_id": user_id,
            },
        )
