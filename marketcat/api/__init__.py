"""API layer module.

Contains FastAPI routers and request/response schemas.
"""

from marketcat.api.categories import router as categories_router
from marketcat.api.health import router as health_router

__all__ = ["categories_router", "health_router"]
