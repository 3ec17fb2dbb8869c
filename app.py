"""
BCMS complaint management API.

Students file complaints, staff resolve the ones assigned to them and
admins triage, assign and manage roles.
"""
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError

import config
from database.connection import Database
from core.exceptions import BCMSError, TransientIOError
from core.logger import logger
from middleware.security import (
    RateLimitMiddleware, SecurityHeadersMiddleware,
    setup_cors, setup_trusted_hosts
)
from middleware.auth_middleware import AuthRequiredMiddleware
from routers.auth import router as auth_router
from routers.users import router as users_router
from routers.profile import router as profile_router
from routers.complaints import router as complaints_router
from routers.dashboards import router as dashboards_router


# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan events for FastAPI app.
    Initialize the database on startup and release the pool on shutdown.
    """
    logger.info("=" * 60)
    logger.info(f"Starting {config.APP_NAME}...")
    logger.info("=" * 60)

    try:
        config.db = Database(
            database_url=config.DATABASE_URL,
            pool_size=config.DB_POOL_SIZE,
            max_overflow=config.DB_MAX_OVERFLOW,
            echo=config.DB_ECHO
        )
        # Create tables if they don't exist
        config.db.create_tables()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}", exc_info=True)
        raise

    logger.info(f"Environment: {config.ENVIRONMENT}")
    logger.info("API Docs: http://localhost:8000/docs")

    yield

    logger.info("Shutting down...")
    if config.db:
        config.db.engine.dispose()
        config.db = None
        logger.info("Database connections closed")


# Initialize FastAPI app
app = FastAPI(
    title=config.APP_NAME,
    description="Complaint management API with row-level authorization and role dashboards",
    version=config.APP_VERSION,
    lifespan=lifespan
)

# Setup security middleware
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    RateLimitMiddleware,
    requests_per_minute=config.RATE_LIMIT_PER_MINUTE,
    requests_per_hour=config.RATE_LIMIT_PER_HOUR
)
app.add_middleware(AuthRequiredMiddleware)
setup_cors(app, config.CORS_ORIGINS, config.CORS_ALLOW_CREDENTIALS)
if config.ENVIRONMENT == "production":
    setup_trusted_hosts(app, config.TRUSTED_HOSTS)

# Include routers
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(profile_router)
app.include_router(complaints_router)
app.include_router(dashboards_router)


# Error handling: every failure reaches the client as one notice
@app.exception_handler(BCMSError)
async def bcms_error_handler(request: Request, exc: BCMSError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(OperationalError)
async def operational_error_handler(request: Request, exc: OperationalError):
    logger.error(f"Database unavailable during {request.method} {request.url.path}: {exc}")
    error = TransientIOError()
    return JSONResponse(status_code=error.status_code, content={"detail": error.message})


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning(f"Integrity error on {request.method} {request.url.path}: {exc.orig}")
    return JSONResponse(status_code=409, content={"detail": "Conflicting data"})


@app.get("/")
def root():
    """Root endpoint with API information. Public endpoint."""
    return {
        "message": config.APP_NAME,
        "version": config.APP_VERSION,
        "environment": config.ENVIRONMENT,
        "endpoints": {
            "auth": "/api/auth",
            "complaints": "/api/complaints",
            "dashboard": "/api/dashboard",
            "users": "/api/users",
            "profiles": "/api/profiles"
        },
        "docs": "/docs"
    }


@app.get("/health")
def health_check():
    """Health check endpoint for monitoring. Public endpoint."""
    health_status = {
        "status": "healthy",
        "timestamp": time.time(),
        "checks": {}
    }

    if config.db is None:
        health_status["checks"]["database"] = {"status": "error", "error": "not initialized"}
        health_status["status"] = "degraded"
        return health_status

    try:
        with config.db.get_session() as db:
            db.execute(text("SELECT 1"))
        health_status["checks"]["database"] = {"status": "ok"}
    except TransientIOError as e:
        health_status["checks"]["database"] = {"status": "error", "error": e.message}
        health_status["status"] = "degraded"

    return health_status


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
