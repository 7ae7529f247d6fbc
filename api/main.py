"""
FastAPI main application for the Digital Library API.
"""

import traceback
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from motor.motor_asyncio import AsyncIOMotorClient
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.config import APIConfig, config as api_config
from api.database import LibraryDatabaseService
from api.errors import APIError
from api.middleware import (
    InputSanitizerMiddleware, RateLimitMiddleware, RequestLoggingMiddleware,
    SecurityHeadersMiddleware, UploadGuardMiddleware
)
from api.models import ErrorResponse, HealthResponse
from api.rate_limiter import FixedWindowRateLimiter
from api.routes import auth_router, books_router, chatbot_router, events_router, users_router
from api.storage import LocalUploadStorage
from scheduler.sweeper import RateLimitSweeper
from utilities.config import LibraryConfig, config as library_config
from utilities.logger import setup_logging

logger = structlog.get_logger(__name__)


def _field_from_location(location) -> str:
    parts = [str(part) for part in location if part not in ("body", "query", "path")]
    return ".".join(parts) or "request"


def register_exception_handlers(app: FastAPI, settings: APIConfig) -> None:
    """Render every error as an ``ErrorResponse`` body."""

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError):
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_content(),
            headers=exc.headers
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=str(exc.detail)).model_dump(exclude_none=True),
            headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        details = [
            {"field": _field_from_location(error.get("loc", ())), "message": error.get("msg", "Invalid value")}
            for error in exc.errors()
        ]
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Validation failed", "details": details}
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle general exceptions."""
        logger.error("Unhandled exception", error=str(exc), path=request.url.path)
        body = ErrorResponse(error="Internal server error")
        if settings.expose_error_details:
            body.message = str(exc)
            body.stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=body.model_dump(exclude_none=True)
        )


def create_app(
    settings: Optional[APIConfig] = None,
    library_settings: Optional[LibraryConfig] = None
) -> FastAPI:
    """
    Build the application with its own rate limiters, storage and sweeper.

    Args:
        settings: API settings, defaults to the environment configuration
        library_settings: Database, logging and storage settings

    Returns:
        Configured FastAPI application
    """
    settings = settings or api_config
    library_settings = library_settings or library_config

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        setup_logging(
            log_level=library_settings.log_level,
            log_format=library_settings.log_format,
            log_file=library_settings.get_log_file_path(),
            debug=library_settings.debug
        )
        logger.info("Starting Digital Library API", environment=settings.environment)

        client = AsyncIOMotorClient(library_settings.mongodb_url)
        try:
            database = client[library_settings.mongodb_database]
            await database.command("ping")
            logger.info("Database connection established", database=library_settings.mongodb_database)

            app.state.db_service = LibraryDatabaseService(database)
            await app.state.db_service.create_indexes()
        except Exception as e:
            logger.error("Failed to connect to database", error=str(e))
            client.close()
            raise

        app.state.storage.ensure_folders()
        app.state.sweeper.start()

        yield

        logger.info("Shutting down Digital Library API")
        app.state.sweeper.stop()
        client.close()

    app = FastAPI(
        title=settings.api_title,
        description=settings.api_description,
        version=settings.api_version,
        lifespan=lifespan
    )

    app.state.settings = settings
    app.state.rate_limiter = FixedWindowRateLimiter(
        window_seconds=settings.rate_limit_window_seconds,
        max_requests=settings.rate_limit_max_requests,
        name="global"
    )
    app.state.auth_rate_limiter = FixedWindowRateLimiter(
        window_seconds=settings.rate_limit_window_seconds,
        max_requests=settings.auth_rate_limit_max_requests,
        name="auth"
    )
    app.state.sweeper = RateLimitSweeper(
        [app.state.rate_limiter, app.state.auth_rate_limiter],
        interval_seconds=settings.rate_limit_sweep_interval_seconds
    )
    app.state.storage = LocalUploadStorage(library_settings.get_upload_root())
    app.state.db_service = None

    # Last added runs first
    app.add_middleware(
        UploadGuardMiddleware,
        limits={
            "/api/books/upload": settings.max_book_upload_bytes,
            "/api/books/upload-cover": settings.max_image_upload_bytes,
            "/api/events/upload": settings.max_image_upload_bytes,
        }
    )
    app.add_middleware(RateLimitMiddleware, limiter=app.state.rate_limiter)
    app.add_middleware(InputSanitizerMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)

    register_exception_handlers(app, settings)

    @app.get("/api/health", response_model=HealthResponse, tags=["Health"])
    async def health_check(request: Request):
        """Health check endpoint."""
        db_status = "unavailable"
        db_service = request.app.state.db_service
        if db_service:
            health_info = await db_service.health_check()
            db_status = health_info.get("status", "unknown")

        return HealthResponse(
            status="ok",
            timestamp=datetime.utcnow(),
            version=settings.api_version,
            database_status=db_status
        )

    app.include_router(auth_router, prefix="/api/auth", tags=["Auth"])
    app.include_router(books_router, prefix="/api/books", tags=["Books"])
    app.include_router(events_router, prefix="/api/events", tags=["Events"])
    app.include_router(users_router, prefix="/api/users", tags=["Users"])
    app.include_router(chatbot_router, prefix="/api/chatbot", tags=["Chatbot"])

    app.mount(
        "/uploads",
        StaticFiles(directory=str(library_settings.get_upload_root()), check_dir=False),
        name="uploads"
    )

    return app


app = create_app()
