"""
Bookshelf API — Request Context Middleware
===========================================

What:  Assigns a request ID to each request and opens its request context.
Why:   Every log line and every error body of one request share the ID, and
       downstream middleware/handlers get a per-request store to read from
       and write to (see bookshelf.context).
How:   Accepts a well-formed client X-Request-ID or generates one, opens the
       context, mirrors the ID to request.state, returns it as a header.
When:  Outermost middleware, so even 429 and 500 responses carry the header.

Why validate client-provided IDs:
    The ID is echoed into headers and logs. Limiting it to 64 characters of
    [A-Za-z0-9._-] keeps header injection and log forging out, while still
    letting a frontend or gateway correlate its own IDs with ours.
"""

import re
import uuid
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from bookshelf.context import reset_request_context, start_request_context
from bookshelf.responses import unexpected_error_response

REQUEST_ID_HEADER = "X-Request-ID"
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def resolve_request_id(incoming: Optional[str]) -> str:
    """Use the client's ID when it is well formed, otherwise a new 16-char hex ID."""
    if incoming and _VALID_REQUEST_ID.match(incoming):
        return incoming
    return uuid.uuid4().hex[:16]


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Opens and closes the request context around every request.

    Behavior:
        1. Resolve the request ID (client header or generated)
        2. start_request_context() with method, path and client IP
        3. Store the ID in request.state for handlers that prefer it
        4. Add X-Request-ID to the response
        5. Reset the context so nothing leaks into the next request
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        client_ip = request.client.host if request.client else "unknown"

        token = start_request_context(
            request_id=rid,
            method=request.method,
            path=request.url.path,
            client_ip=client_ip,
        )
        request.state.request_id = rid
        try:
            try:
                response = await call_next(request)
            except Exception as exc:
                # Context is still open here, so the 500 body gets the request ID
                response = unexpected_error_response(exc)
            response.headers[REQUEST_ID_HEADER] = rid
            return response
        finally:
            reset_request_context(token)
