"""
Rate limiting middleware to prevent brute force and DoS attacks.

Uses in-memory storage for simplicity. For production with multiple workers,
consider Redis or similar distributed cache.
"""
import time
import logging
import threading
from collections import defaultdict
from typing import Dict, Tuple
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from stockroom.core.config import settings
from stockroom.core.exceptions import BusinessError

logger = logging.getLogger(__name__)

EXEMPT_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}


class RateLimiter:
    """In-memory rate limiter with sliding window."""

    def __init__(self, requests: int = 100, window: int = 60):
        """
        Args:
            requests: Maximum requests allowed in window
            window: Time window in seconds
        """
        self.requests = requests
        self.window = window
        # Dict[client_id, List[timestamp]]
        self.clients: Dict[str, list] = defaultdict(list)
        self.last_cleanup = time.time()
        self._lock = threading.Lock()

    def is_allowed(self, client_id: str) -> Tuple[bool, int]:
        """
        Check if client is allowed to make request.

        Returns:
            (allowed: bool, remaining: int)
        """
        now = time.time()
        with self._lock:
            # Cleanup old entries every 5 minutes
            if now - self.last_cleanup > 300:
                self._cleanup(now)
                self.last_cleanup = now

            cutoff = now - self.window
            timestamps = [ts for ts in self.clients[client_id] if ts > cutoff]
            self.clients[client_id] = timestamps

            if len(timestamps) < self.requests:
                timestamps.append(now)
                return True, self.requests - len(timestamps)
            return False, 0

    def reset(self):
        with self._lock:
            self.clients.clear()

    def _cleanup(self, now: float):
        """Remove expired entries to prevent memory bloat."""
        cutoff = now - self.window
        for client_id in list(self.clients.keys()):
            timestamps = [ts for ts in self.clients[client_id] if ts > cutoff]
            if timestamps:
                self.clients[client_id] = timestamps
            else:
                del self.clients[client_id]

        logger.info(f"Rate limiter cleanup: {len(self.clients)} active clients")


# Global rate limiter instance
rate_limiter = RateLimiter(
    requests=settings.RATE_LIMIT_REQUESTS,
    window=settings.RATE_LIMIT_WINDOW_SECONDS
)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Middleware to apply rate limiting to all requests."""

    def __init__(self, app, limiter: RateLimiter = None):
        super().__init__(app)
        self.limiter = limiter or rate_limiter

    async def dispatch(self, request: Request, call_next):
        if request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"

        # Authenticated callers get their own bucket even behind a shared IP
        auth_header = request.headers.get("authorization", "")
        if auth_header.startswith("Bearer "):
            client_id = f"user:{auth_header[7:20]}"  # Use token prefix
        else:
            client_id = f"ip:{client_ip}"

        allowed, remaining = self.limiter.is_allowed(client_id)

        if not allowed:
            # Exceptions raised here bypass FastAPI's handlers, so answer directly
            exc = BusinessError.rate_limit_exceeded(
                f"Rate limit exceeded for {client_id} on {request.method} {request.url.path}",
                retry_after=self.limiter.window,
            )
            return JSONResponse(
                status_code=exc.status_code,
                content={"detail": f"Rate limit exceeded. Try again in {self.limiter.window} seconds."},
                headers={
                    **exc.headers,
                    "X-RateLimit-Limit": str(self.limiter.requests),
                    "X-RateLimit-Remaining": "0",
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.limiter.requests)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        response.headers["X-RateLimit-Window"] = str(self.limiter.window)

        return response
