"""
Bookshelf API — Authentication Middleware
==========================================

What:  Resolves the caller's identity from `Authorization: Bearer <jwt>`.
How:   A valid token puts the user ID into the request context (and
       request.state.user_id). An invalid or expired token records why in
       `context.auth_error`. The request continues either way.

Why it never rejects:
    Reads are public, so "is there a user?" and "must there be a user?" are
    separate questions. This middleware answers the first for every
    request; the `require_user` dependency answers the second, per route,
    and raises 401 with the recorded reason.
"""

import logging
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from bookshelf.context import get_request_context
from bookshelf.exceptions import AuthenticationError
from bookshelf.services.auth_service import AuthService, auth_service

logger = logging.getLogger(__name__)


def extract_bearer(authorization: Optional[str]) -> Optional[str]:
    """Token from an `Authorization: Bearer <token>` header value, else None."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class AuthenticationMiddleware(BaseHTTPMiddleware):

    def __init__(self, app, auth: Optional[AuthService] = None):
        super().__init__(app)
        self.auth = auth or auth_service

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request.state.user_id = None
        ctx = get_request_context()

        header = request.headers.get("Authorization")
        token = extract_bearer(header)
        if header and token is None and ctx is not None:
            ctx.auth_error = "Authorization header must use the Bearer scheme"

        if token:
            try:
                user_id = self.auth.decode_access_token(token)
            except AuthenticationError as e:
                logger.info("Rejected bearer token: %s", e.message)
                if ctx is not None:
                    ctx.auth_error = e.message
            else:
                request.state.user_id = user_id
                if ctx is not None:
                    ctx.user_id = user_id

        return await call_next(request)
