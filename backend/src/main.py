"""
FastAPI application entry point for the Volunteer Hub backend.

This module initializes the FastAPI application with:
- CORS middleware for the frontend
- Exception handlers for consistent error responses
- Startup checks for authentication and AI summary configuration
- Logging configuration
- Recurring series, calendar, and event routers under /api

Environment Variables:
    VHUB_DB_URL: Database URL
    VHUB_JWT_SECRET_KEY: Bearer token signing key
    VHUB_ENV: Environment (production/development, default: development)
    VHUB_LOG_LEVEL: Log level (DEBUG/INFO/WARNING/ERROR/CRITICAL, default: INFO)
"""

from contextlib import asynccontextmanager
from typing import Any, Dict

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError

from backend.src.config.settings import get_settings
from backend.src.db.database import dispose_engine
from backend.src.utils.logging_config import get_logger, init_logging


APP_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Handles startup and shutdown events:
    - Startup: Report authentication and AI summary configuration
    - Shutdown: Dispose database connections

    Args:
        app: FastAPI application instance

    Yields:
        Control to the application
    """
    # Startup
    logger = get_logger("api")
    logger.info("Starting Volunteer Hub backend application")

    settings = get_settings()
    if not settings.jwt_configured:
        logger.warning("VHUB_JWT_SECRET_KEY is not set; authenticated endpoints will reject requests")
    if not settings.ai_summary_configured:
        logger.warning("AI summary endpoint not configured; event summaries are disabled")

    yield

    # Shutdown
    logger.info("Shutting down Volunteer Hub backend application")
    dispose_engine()


# Initialize logging before creating app
init_logging()

# Create FastAPI application
app = FastAPI(
    title="Volunteer Hub API",
    description="Backend API for Volunteer Hub. "
                "Manages recurring volunteer event series, personal calendars, "
                "registrations, and attendance.",
    version=APP_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers


@app.exception_handler(ValidationError)
async def validation_exception_handler(
    request: Request, exc: ValidationError
) -> JSONResponse:
    """
    Handle Pydantic validation errors raised outside request parsing.

    Args:
        request: HTTP request
        exc: Pydantic ValidationError

    Returns:
        JSON response with validation error details
    """
    logger = get_logger("api")
    logger.warning(
        "Validation error",
        extra={
            "path": request.url.path,
            "method": request.method,
            "errors": exc.errors(),
        }
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "Request validation failed",
            "errors": exc.errors(include_url=False, include_context=False),
        }
    )


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(
    request: Request, exc: SQLAlchemyError
) -> JSONResponse:
    """
    Handle SQLAlchemy database errors. Details are logged, never returned.
    """
    logger = get_logger("db")
    logger.error(
        "Database error",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error": str(exc),
        }
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "An error occurred while accessing the database. "
                      "Please try again later.",
        }
    )


@app.exception_handler(Exception)
async def generic_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """Handle all other unhandled exceptions."""
    logger = get_logger("api")
    logger.error(
        "Unhandled exception",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            "error": str(exc),
        },
        exc_info=True,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "An unexpected error occurred. Please try again later.",
        }
    )


# Health check endpoint


@app.get("/health", tags=["Health"])
async def health_check() -> Dict[str, Any]:
    """
    Health check endpoint.

    Returns:
        Health status and application information
    """
    return {
        "status": "healthy",
        "service": "volunteer-hub-backend",
        "version": APP_VERSION,
    }


# API routers
from backend.src.api import calendar, events, recurring_series  # noqa: E402

app.state.limiter = recurring_series.limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.include_router(recurring_series.router, prefix="/api")
app.include_router(calendar.router, prefix="/api")
app.include_router(events.router, prefix="/api")
