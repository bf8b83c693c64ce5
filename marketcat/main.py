"""marketcat main application module.

This module initializes the FastAPI application and configures
core middleware, routers, and startup/shutdown events.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from marketcat.api.categories import router as categories_router
from marketcat.api.health import router as health_router
from marketcat.api.middleware import setup_middleware
from marketcat.catalog.service import EngineRegistry
from marketcat.domain.exceptions import (
    DomainError,
    EmptyTitleError,
    InvalidLeafError,
    MalformedUpstreamDataError,
    UnknownMarketplaceError,
    UpstreamUnavailableError,
)
from marketcat.infrastructure.config import settings
from marketcat.infrastructure.logging_config import configure_logging

logger = structlog.get_logger()

DOMAIN_ERROR_STATUS: dict[type[DomainError], int] = {
    UpstreamUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
    MalformedUpstreamDataError: status.HTTP_502_BAD_GATEWAY,
    InvalidLeafError: status.HTTP_404_NOT_FOUND,
    UnknownMarketplaceError: status.HTTP_404_NOT_FOUND,
    EmptyTitleError: status.HTTP_400_BAD_REQUEST,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup and shutdown events.

    Args:
        app: The FastAPI application instance.

    Yields:
        None after startup, cleanup happens after yield.
    """
    # Startup
    configure_logging()
    logger.info(
        "Starting marketcat",
        version=settings.api_version,
        debug=settings.debug,
    )

    registry = EngineRegistry.from_settings(settings)
    app.state.engines = registry

    yield

    # Shutdown
    logger.info("Shutting down marketcat")
    await registry.close_all()


app = FastAPI(
    title="marketcat",
    description="Marketplace category cache, search and matching",
    version=settings.api_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware (must be added before custom middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Setup custom middleware (request ID, error handling)
setup_middleware(app)

# Include routers
app.include_router(health_router, tags=["Health"])
app.include_router(categories_router)


# ============================================================================
# Custom Exception Handlers
# ============================================================================


def status_for(exc: DomainError) -> int:
    """Map a domain error to its HTTP status code."""
    for error_class in type(exc).__mro__:
        if error_class in DOMAIN_ERROR_STATUS:
            return DOMAIN_ERROR_STATUS[error_class]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@app.exception_handler(DomainError)
async def domain_exception_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Handle domain errors with consistent format."""
    request_id = getattr(request.state, "request_id", None)
    status_code = status_for(exc)

    logger.warning(
        "Domain error",
        path=request.url.path,
        error_code=exc.error_code,
        status_code=status_code,
        error=exc.message,
    )

    return JSONResponse(
        status_code=status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details,
            "request_id": request_id,
        },
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions with consistent format."""
    request_id = getattr(request.state, "request_id", None)

    detail = exc.detail
    if isinstance(detail, dict):
        error_code = detail.get("error_code", "ERROR")
        message = detail.get("message", str(detail))
        details = detail.get("details", {})
    else:
        error_code = "ERROR"
        message = str(detail)
        details = {}

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": message,
            "details": details,
            "request_id": request_id,
        },
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions with consistent format."""
    request_id = getattr(request.state, "request_id", None)

    logger.exception(
        "Unhandled exception in handler",
        path=request.url.path,
        method=request.method,
        error=str(exc),
    )

    return JSONResponse(
        status_code=500,
        content={
            "error_code": "INTERNAL_ERROR",
            "message": "An internal error occurred",
            "details": {},
            "request_id": request_id,
        },
    )
