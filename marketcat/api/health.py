"""Health check endpoints.

Provides endpoints for monitoring service health and readiness.
"""

from fastapi import APIRouter, Request
from pydantic import BaseModel

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: str
    service: str
    version: str


class ReadinessResponse(BaseModel):
    """Readiness response schema."""

    status: str
    categories_cached: dict[str, bool]


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check service health.

    Returns:
        Health status with service name and version.
    """
    from marketcat.infrastructure.config import settings

    return HealthResponse(
        status="healthy",
        service="marketcat",
        version=settings.api_version,
    )


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(request: Request) -> ReadinessResponse:
    """Check if service is ready to accept requests.

    The service is ready once the engines exist; a cold category cache
    is filled on first use and only reported here.

    Returns:
        Readiness status and per-marketplace cache validity.
    """
    registry = getattr(request.app.state, "engines", None)
    if registry is None:
        return ReadinessResponse(status="starting", categories_cached={})

    return ReadinessResponse(
        status="ready",
        categories_cached={e.marketplace: e.store.is_valid() for e in registry},
    )
