"""
Authentication middleware that flags requests to protected routes arriving
without credentials. Token validation itself is done by FastAPI dependencies.
"""
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from typing import List

from core.logger import logger

# Public routes that don't require authentication
PUBLIC_ROUTES: List[str] = [
    "/",
    "/health",
    "/docs",
    "/openapi.json",
    "/redoc",
    "/api/auth/signup",
    "/api/auth/login",
    "/api/auth/refresh",
]


def is_public_path(path: str, public_routes: List[str]) -> bool:
    """Exact match for "/", prefix match for everything else."""
    for route in public_routes:
        if route == "/":
            if path == "/":
                return True
        elif path == route or path.startswith(route.rstrip("/") + "/"):
            return True
    return False


class AuthRequiredMiddleware(BaseHTTPMiddleware):
    """
    Early authentication check on all non-public routes.

    Requests are never blocked here so the dependencies can return proper
    401 responses; missing credentials are only logged.
    """

    def __init__(self, app, public_routes: List[str] = None):
        """
        Initialize authentication middleware.

        Args:
            app: FastAPI application
            public_routes: List of public routes (paths) that don't require auth
        """
        super().__init__(app)
        self.public_routes = public_routes or PUBLIC_ROUTES

    async def dispatch(self, request: Request, call_next):
        path = request.url.path

        if request.method == "OPTIONS" or is_public_path(path, self.public_routes):
            return await call_next(request)

        if not request.headers.get("authorization"):
            logger.warning(
                f"Request without authentication headers: {request.method} {path} "
                f"from {request.client.host if request.client else 'unknown'}"
            )

        return await call_next(request)
