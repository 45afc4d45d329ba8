"""
Bookshelf API — Rate Limiting Middleware
=========================================

What:  Per-IP sliding window rate limiter to prevent abuse.
Why:   Protects the API (and the argon2 login endpoint in particular) from
       floods of requests.
How:   Tracks request timestamps per IP in memory.
When:  Directly inside RequestContextMiddleware: rejects abuse before
       authentication or any handler work, but after the request ID exists.

Algorithm: Sliding Window Log
    1. Each IP gets a list of request timestamps
    2. On each request, drop timestamps older than the window
    3. If remaining count >= limit, reject with 429
    4. Otherwise, record the current timestamp and allow through

    Unlike a fixed window, a client cannot burst 2x the limit across a
    window boundary.

Response headers:
    Allowed:  X-RateLimit-Limit, X-RateLimit-Remaining
    Rejected: Retry-After (seconds until the oldest request leaves the window)

Production Upgrade Path:
    State is per process. Multi-worker deployments need a shared store
    (e.g. Redis sorted sets) for the limit to be global.
"""

import logging
import time
from collections import defaultdict
from typing import Dict, List, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from bookshelf.config import settings
from bookshelf.exceptions import RateLimitExceededError
from bookshelf.responses import error_response

logger = logging.getLogger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    In-memory sliding window rate limiter.

    Configuration:
        max_requests / window_seconds default to RATE_LIMIT_REQUESTS and
        RATE_LIMIT_WINDOW; pass them explicitly to override per app.

    Excluded paths:
        /health, /docs, /openapi.json, /redoc
    """

    # Paths never counted: health probes and the API docs stay reachable
    EXCLUDED_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}

    # Inactive IPs are swept every this many recorded requests
    CLEANUP_EVERY = 1000

    def __init__(
        self,
        app,
        max_requests: Optional[int] = None,
        window_seconds: Optional[int] = None,
    ):
        super().__init__(app)
        self.max_requests = max_requests or settings.rate_limit_requests
        self.window_seconds = window_seconds or settings.rate_limit_window
        # What: client IP → timestamps (time.time()) inside the current window
        self._requests: Dict[str, List[float]] = defaultdict(list)
        # Requests recorded since start; drives the periodic sweep
        self._recorded = 0

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in self.EXCLUDED_PATHS:
            return await call_next(request)

        # Behind a proxy this is the proxy's address; run uvicorn with
        # --proxy-headers so request.client reflects X-Forwarded-For
        client_ip = request.client.host if request.client else "unknown"

        # ── Sliding window: drop entries older than the window ──────────────
        now = time.time()
        window_start = now - self.window_seconds

        timestamps = [ts for ts in self._requests[client_ip] if ts > window_start]
        self._requests[client_ip] = timestamps

        # ── Check the limit ────────────────────────────────────────────────
        if len(timestamps) >= self.max_requests:
            # Seconds until the oldest request in the window ages out
            retry_after = int(timestamps[0] + self.window_seconds - now) + 1
            logger.warning(
                "Rate limit exceeded for IP %s: %d requests in %ds window",
                client_ip,
                len(timestamps),
                self.window_seconds,
            )
            # Answered here, before authentication or any handler runs
            exc = RateLimitExceededError(retry_after=retry_after)
            return error_response(
                status_code=exc.status_code,
                error=exc.error_code,
                message=exc.message,
                details=exc.context,
                headers=exc.headers,
            )

        # ── Record this request ────────────────────────────────────────────
        timestamps.append(now)
        remaining = self.max_requests - len(timestamps)

        # ── Periodic sweep of IPs with nothing left in the window ──────────
        self._recorded += 1
        if self._recorded % self.CLEANUP_EVERY == 0:
            self._cleanup_inactive_ips(window_start)

        response = await call_next(request)
        # Tell well-behaved clients how much budget they have left
        response.headers["X-RateLimit-Limit"] = str(self.max_requests)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response

    def _cleanup_inactive_ips(self, window_start: float) -> None:
        """Remove IPs that have no requests within the current window."""
        inactive_ips = [
            ip for ip, timestamps in self._requests.items()
            if not timestamps or timestamps[-1] <= window_start
        ]
        for ip in inactive_ips:
            del self._requests[ip]

        if inactive_ips:
            logger.debug("Cleaned up %d inactive IP entries", len(inactive_ips))
