"""
FastAPI application factory for the Secure Place API server.

Uses lifespan handler for startup/shutdown with async resource management.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from secureplace.config import settings
from secureplace.db.session import close_db, init_db
from secureplace.logging_config import configure_logging, get_logger
from secureplace.redis.client import close_redis, init_redis

from .health import router as health_router
from .routers.admin import router as admin_router
from .routers.auth import router as auth_router
from .routers.employees import router as employees_router
from .routers.firm_admins import router as firm_admins_router
from .routers.firms import router as firms_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan handler for startup and shutdown."""
    # Startup
    configure_logging(json_logs=settings.json_logs, log_level=settings.log_level)
    logger.info("Starting Secure Place API server", version="0.1.0")

    await init_db()
    logger.info("Database connection initialized")

    await init_redis()
    logger.info("Redis connection initialized")

    yield

    # Shutdown
    logger.info("Shutting down Secure Place API server")
    await close_redis()
    await close_db()


def create_application() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Secure Place API",
        description="Secure Place administrative dashboard - API Server",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request ID middleware
    @app.middleware("http")
    async def add_request_id(request: Request, call_next: Any) -> Any:
        """Add request ID to context for logging correlation."""
        request_id = request.headers.get("X-Request-ID")
        if request_id:
            structlog.contextvars.bind_contextvars(request_id=request_id)

        response = await call_next(request)

        if request_id:
            response.headers["X-Request-ID"] = request_id
            structlog.contextvars.unbind_contextvars("request_id")

        return response

    # Exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled errors."""
        logger.error("Unhandled exception", exc_info=exc, path=str(request.url.path))
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    # Health endpoints (no prefix)
    app.include_router(health_router)

    # API v1 routers
    app.include_router(auth_router, prefix=settings.api_prefix)
    app.include_router(employees_router, prefix=settings.api_prefix)
    app.include_router(firm_admins_router, prefix=settings.api_prefix)
    app.include_router(firms_router, prefix=settings.api_prefix)
    app.include_router(admin_router, prefix=settings.api_prefix)

    return app


# Application instance
app = create_application()
