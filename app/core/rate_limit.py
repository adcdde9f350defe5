"""
Per-client rate limiting for the API routes.
Sliding window kept in process memory, keyed by client IP.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from app.core.timeutils import utc_now

logger = logging.getLogger(__name__)

RATE_LIMITED_PREFIX = "/api/"


@dataclass
class RateLimitRule:
    """Rate limiting rule configuration."""
    requests: int
    window_seconds: int


class RateLimiter:
    """Sliding-window request counter."""

    def __init__(self, rule: RateLimitRule):
        self.rule = rule
        self.requests: Dict[str, List[datetime]] = defaultdict(list)

    def _prune(self, identifier: str, now: datetime) -> List[datetime]:
        window_start = now - timedelta(seconds=self.rule.window_seconds)
        recent = [t for t in self.requests[identifier] if t > window_start]
        self.requests[identifier] = recent
        return recent

    def is_allowed(self, identifier: str, now: Optional[datetime] = None) -> bool:
        """Record the request and tell whether it fits in the current window."""
        now = now or utc_now()
        recent = self._prune(identifier, now)
        if len(recent) >= self.rule.requests:
            return False
        recent.append(now)
        return True

    def retry_after(self, identifier: str, now: Optional[datetime] = None) -> int:
        """Seconds until the oldest request in the window expires."""
        now = now or utc_now()
        recent = self._prune(identifier, now)
        if len(recent) < self.rule.requests:
            return 0
        expires = recent[0] + timedelta(seconds=self.rule.window_seconds)
        return max(1, int((expires - now).total_seconds()))


def get_client_ip(request: Request) -> str:
    """Get client IP address with proxy support."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # first IP in the chain is the client
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Reject API requests over the per-IP limit with 429.

    Only paths under /api/ count; the health check and docs are never limited.
    """

    def __init__(self, app, rate_limiter: RateLimiter, enabled: bool = True):
        super().__init__(app)
        self.rate_limiter = rate_limiter
        self.enabled = enabled

    async def dispatch(self, request: Request, call_next) -> Response:
        if not self.enabled or not request.url.path.startswith(RATE_LIMITED_PREFIX):
            return await call_next(request)

        client_ip = get_client_ip(request)
        if not self.rate_limiter.is_allowed(client_ip):
            logger.warning("Rate limit exceeded for %s on %s %s", client_ip, request.method, request.url.path)
            # raised HTTPExceptions skip the app's handlers here, so build the error body directly
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"error": "Too many requests, please try again later"},
                headers={"Retry-After": str(self.rate_limiter.retry_after(client_ip))},
            )
        return await call_next(request)
