"""Category API endpoints.

Exposes the category engines of the enabled marketplaces: tree browsing,
search, cache warm-up, leaf attributes and title matching.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status

from marketcat.api.schemas import (
    AttributeListResponse,
    AttributeSchema,
    CacheStatusResponse,
    CategoryListResponse,
    CategorySchema,
    CategorySearchResponse,
    ErrorResponse,
    MarketplaceListResponse,
    MatchCategoryRequest,
    MatchCategoryResponse,
    MatchResultSchema,
    PrefetchResponse,
)
from marketcat.catalog.service import EngineRegistry, MarketplaceCategoryEngine
from marketcat.domain.models import CategoryAttribute, CategoryNode, MatchResult
from marketcat.infrastructure.config import settings

router = APIRouter(tags=["Categories"])


# ============================================================================
# Dependencies
# ============================================================================


def get_registry(request: Request) -> EngineRegistry:
    """Get the engine registry created at startup."""
    return request.app.state.engines


def get_engine(
    marketplace: str,
    registry: Annotated[EngineRegistry, Depends(get_registry)],
) -> MarketplaceCategoryEngine:
    """Get the engine named in the path."""
    return registry.get(marketplace)


Engine = Annotated[MarketplaceCategoryEngine, Depends(get_engine)]


# ============================================================================
# Converters
# ============================================================================


def category_to_schema(node: CategoryNode) -> CategorySchema:
    """Convert CategoryNode to response schema."""
    return CategorySchema(
        id=node.id,
        name=node.name,
        parent_id=node.parent_id,
        path=list(node.path),
        display_path=node.display_path(),
        is_leaf=node.is_leaf,
        child_count=len(node.children),
    )


def attribute_to_schema(attribute: CategoryAttribute) -> AttributeSchema:
    """Convert CategoryAttribute to response schema."""
    return AttributeSchema(
        id=attribute.attribute_id,
        name=attribute.name,
        mandatory=attribute.mandatory,
        type=attribute.type,
        allowed_values=sorted(attribute.allowed_values),
        multi_value=attribute.multi_value,
    )


def match_to_schema(result: MatchResult) -> MatchResultSchema:
    """Convert MatchResult to response schema."""
    return MatchResultSchema(
        category_id=result.category_id,
        display_path=result.display_path,
        score=result.score,
        confidence=result.confidence,
        matched_keywords=list(result.matched_keywords),
    )


# ============================================================================
# Endpoints
# ============================================================================


@router.get(
    "/marketplaces",
    response_model=MarketplaceListResponse,
    summary="List marketplaces",
    description="Get the marketplaces with an enabled category engine.",
)
async def list_marketplaces(
    registry: Annotated[EngineRegistry, Depends(get_registry)],
) -> MarketplaceListResponse:
    """List enabled marketplaces."""
    names = registry.names()
    return MarketplaceListResponse(marketplaces=names, total=len(names))


@router.get(
    "/marketplaces/{marketplace}/categories",
    response_model=CategoryListResponse,
    responses={
        404: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
    summary="List categories",
    description="Get the root categories, or the children of parent_id.",
)
async def list_categories(
    engine: Engine,
    parent_id: Annotated[str | None, Query(description="Parent category ID")] = None,
) -> CategoryListResponse:
    """List root categories or the children of a category.

    Args:
        engine: Marketplace engine.
        parent_id: Optional parent category ID.

    Returns:
        Categories in upstream order.
    """
    if parent_id is None:
        nodes = await engine.get_cached_category_tree()
    else:
        nodes = await engine.get_children(parent_id)

    return CategoryListResponse(
        marketplace=engine.marketplace,
        parent_id=parent_id,
        categories=[category_to_schema(n) for n in nodes],
        total=len(nodes),
    )


@router.get(
    "/marketplaces/{marketplace}/categories/search",
    response_model=CategorySearchResponse,
    responses={
        404: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
    summary="Search categories",
    description="Find categories whose name or path contains the query.",
)
async def search_categories(
    engine: Engine,
    q: Annotated[str, Query(max_length=200, description="Search text")] = "",
    limit: Annotated[int, Query(ge=1, le=200)] = settings.search_default_limit,
) -> CategorySearchResponse:
    """Search categories by name or path.

    Exact name matches come first, then name prefixes, then any other
    match.
    """
    nodes = await engine.search_categories(q, limit)
    return CategorySearchResponse(
        marketplace=engine.marketplace,
        query=q,
        categories=[category_to_schema(n) for n in nodes],
        total=len(nodes),
    )


@router.post(
    "/marketplaces/{marketplace}/categories/prefetch",
    response_model=PrefetchResponse,
    status_code=status.HTTP_200_OK,
    responses={
        404: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
    summary="Prefetch categories",
    description="Warm the category cache. A valid cache is not refetched.",
)
async def prefetch_categories(engine: Engine) -> PrefetchResponse:
    """Warm the category tree cache."""
    report = await engine.prefetch_categories()
    return PrefetchResponse(
        marketplace=report.marketplace,
        node_count=report.node_count,
        leaf_count=report.leaf_count,
        root_count=len(report.roots),
        duration_ms=report.duration_ms,
        fetched_at=report.fetched_at,
    )


@router.get(
    "/marketplaces/{marketplace}/categories/status",
    response_model=CacheStatusResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Category cache status",
)
async def get_cache_status(engine: Engine) -> CacheStatusResponse:
    """Report the category cache state without fetching."""
    engine_status = engine.get_status()
    return CacheStatusResponse(
        marketplace=engine_status.marketplace,
        is_valid=engine_status.is_valid,
        node_count=engine_status.node_count,
        leaf_count=engine_status.leaf_count,
        last_fetched_at=engine_status.last_fetched_at,
        refresh_in_flight=engine_status.refresh_in_flight,
        attributes_cached_for=engine_status.attributes_cached_for,
        match_cache_size=engine_status.match_cache_size,
    )


@router.get(
    "/marketplaces/{marketplace}/categories/{category_id}/attributes",
    response_model=AttributeListResponse,
    responses={
        404: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
    summary="Get category attributes",
    description="Get the attribute definitions of a leaf category.",
)
async def get_category_attributes(category_id: str, engine: Engine) -> AttributeListResponse:
    """Get the attributes of a leaf category.

    Raises:
        InvalidLeafError: Category is unknown or not a leaf (404).
    """
    attributes = await engine.prefetch_attributes(category_id)
    return AttributeListResponse(
        marketplace=engine.marketplace,
        category_id=category_id,
        attributes=[attribute_to_schema(a) for a in attributes],
        total=len(attributes),
    )


@router.post(
    "/marketplaces/{marketplace}/match-category",
    response_model=MatchCategoryResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
    summary="Match category",
    description="Suggest leaf categories for a product title and description.",
)
async def match_category(
    request: MatchCategoryRequest, engine: Engine
) -> MatchCategoryResponse:
    """Suggest leaf categories for a product.

    Raises:
        EmptyTitleError: Title is blank (400).
    """
    results = await engine.match_category(
        title=request.title,
        description=request.description,
        top_n=request.top_n,
    )
    return MatchCategoryResponse(
        marketplace=engine.marketplace,
        matches=[match_to_schema(r) for r in results],
        total=len(results),
    )
