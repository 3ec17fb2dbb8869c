"""
Security middleware: per-IP rate limiting, response headers, CORS and trusted hosts.
"""
from collections import defaultdict, deque
from typing import Deque, Dict, Optional
import time

from fastapi import Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from core.logger import logger

MINUTE = 60
HOUR = 3600


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding-window rate limiting per client IP."""

    def __init__(self, app, requests_per_minute: int = 60, requests_per_hour: int = 1000):
        """
        Initialize rate limiting middleware.

        Args:
            app: FastAPI application
            requests_per_minute: Max requests per minute per IP
            requests_per_hour: Max requests per hour per IP
        """
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.requests_per_hour = requests_per_hour
        self.history: Dict[str, Deque[float]] = defaultdict(deque)
        self.cleanup_interval = 300
        self.last_cleanup = time.time()

    async def dispatch(self, request: Request, call_next):
        client_ip = request.client.host if request.client else "unknown"
        now = time.time()

        if now - self.last_cleanup > self.cleanup_interval:
            self._cleanup(now)
            self.last_cleanup = now

        retry_after = self._check(client_ip, now)
        if retry_after is not None:
            logger.warning(f"Rate limit exceeded for IP: {client_ip}")
            # Raising HTTPException here would bypass the app's handlers
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"detail": "Rate limit exceeded. Please try again later."},
                headers={"Retry-After": str(retry_after)}
            )

        return await call_next(request)

    def _check(self, client_ip: str, now: float) -> Optional[int]:
        """Record the request and return None, or seconds to wait if over a limit."""
        stamps = self.history[client_ip]
        while stamps and now - stamps[0] >= HOUR:
            stamps.popleft()

        if len(stamps) >= self.requests_per_hour:
            return int(HOUR - (now - stamps[0])) + 1

        in_last_minute = [t for t in stamps if now - t < MINUTE]
        if len(in_last_minute) >= self.requests_per_minute:
            return int(MINUTE - (now - in_last_minute[0])) + 1

        stamps.append(now)
        return None

    def _cleanup(self, now: float):
        for ip in list(self.history.keys()):
            stamps = self.history[ip]
            while stamps and now - stamps[0] >= HOUR:
                stamps.popleft()
            if not stamps:
                del self.history[ip]


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if request.url.path.startswith("/api/"):
            # Complaint data is per-user
            response.headers["Cache-Control"] = "no-store"

        return response


def setup_cors(app, allowed_origins: list[str], allow_credentials: bool = True):
    """
    Setup CORS middleware.

    Args:
        app: FastAPI application
        allowed_origins: List of allowed origins
        allow_credentials: Whether browsers may send credentials
    """
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=allow_credentials,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )


def setup_trusted_hosts(app, allowed_hosts: list[str]):
    """Reject requests whose Host header is not listed."""
    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=allowed_hosts
    )
