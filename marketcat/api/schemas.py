"""API schemas for marketcat.

Pydantic models for request/response validation and serialization.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from marketcat.domain.models import AttributeType, Confidence
from marketcat.infrastructure.config import settings


# ============================================================================
# Common Schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Standard error response.

    All API errors follow this format for consistency.
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] = Field(
        default_factory=dict, description="Additional error context"
    )
    request_id: str | None = Field(
        default=None, description="Request ID for correlation"
    )


class MarketplaceListResponse(BaseModel):
    """Enabled marketplaces."""

    marketplaces: list[str]
    total: int


# ============================================================================
# Category Schemas
# ============================================================================


class CategorySchema(BaseModel):
    """Category node without its subtree."""

    id: int | str = Field(..., description="Marketplace category ID")
    name: str
    parent_id: int | str | None = None
    path: list[str] = Field(..., description="Names from the root down to this category")
    display_path: str = Field(..., description="Path joined with ' > '")
    is_leaf: bool = Field(..., description="Products can only be listed under leaves")
    child_count: int = 0


class CategoryListResponse(BaseModel):
    """Children of a category, or the root categories."""

    marketplace: str
    parent_id: str | None = None
    categories: list[CategorySchema]
    total: int


class CategorySearchResponse(BaseModel):
    """Category search results."""

    marketplace: str
    query: str
    categories: list[CategorySchema]
    total: int


class PrefetchResponse(BaseModel):
    """Result of warming a category cache."""

    marketplace: str
    node_count: int
    leaf_count: int
    root_count: int
    duration_ms: int
    fetched_at: datetime


class CacheStatusResponse(BaseModel):
    """Category cache state of a marketplace."""

    marketplace: str
    is_valid: bool
    node_count: int
    leaf_count: int
    last_fetched_at: datetime | None = None
    refresh_in_flight: bool
    attributes_cached_for: list[int | str]
    match_cache_size: int


class AttributeSchema(BaseModel):
    """Attribute definition of a leaf category."""

    id: str
    name: str
    mandatory: bool
    type: AttributeType
    allowed_values: list[str] = Field(default_factory=list)
    multi_value: bool = False


class AttributeListResponse(BaseModel):
    """Attributes of a leaf category."""

    marketplace: str
    category_id: str
    attributes: list[AttributeSchema]
    total: int


# ============================================================================
# Matching Schemas
# ============================================================================


class MatchCategoryRequest(BaseModel):
    """Request to suggest categories for a product."""

    title: str = Field(..., max_length=500, description="Product title")
    description: str = Field(default="", max_length=10000, description="Product description")
    top_n: int = Field(
        default=settings.match_default_top_n, ge=1, le=50, description="Maximum suggestions"
    )


class MatchResultSchema(BaseModel):
    """A ranked category suggestion."""

    category_id: int | str
    display_path: str
    score: float = Field(..., ge=0, le=1)
    confidence: Confidence
    matched_keywords: list[str] = Field(default_factory=list)


class MatchCategoryResponse(BaseModel):
    """Ranked category suggestions."""

    marketplace: str
    matches: list[MatchResultSchema]
    total: int
