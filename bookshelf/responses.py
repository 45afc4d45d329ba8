"""
Bookshelf API — Error Envelope
===============================

What:  Builds the one JSON error shape every failure uses.
Who:   The global exception handlers (main.py), RateLimitMiddleware and
       RequestContextMiddleware's last-resort handler.

    {"error": "<code>", "message": "<text>", "details": {...}|null, "request_id": "<id>"}
"""

import logging
from typing import Any, Dict, Optional

from starlette.responses import JSONResponse

from bookshelf.context import current_request_id

logger = logging.getLogger(__name__)


def error_response(
    status_code: int,
    error: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "message": message,
            "details": details or None,
            "request_id": current_request_id(),
        },
        headers=headers,
    )


def unexpected_error_response(exc: Exception) -> JSONResponse:
    """
    500 for an exception nothing else handled.

    The stack trace goes to the log only; the client gets a generic message
    and the request ID to quote in a support ticket.
    """
    logger.error("Unexpected error: %s", str(exc), exc_info=exc)
    return error_response(
        status_code=500,
        error="internal_server_error",
        message="An unexpected error occurred. Please try again or contact support.",
    )
