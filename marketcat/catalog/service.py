"""Category engine service.

MarketplaceCategoryEngine is the entry point for everything the listing
tool needs from a marketplace's categories: the cached tree, search,
attributes and title matching. EngineRegistry owns one engine per
enabled marketplace for the lifetime of the process.
"""

import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone

import structlog

from marketcat.catalog.match_cache import MatchResultCache, make_cache_key
from marketcat.catalog.matcher import DEFAULT_TOP_N, CategoryMatcher
from marketcat.catalog.search_index import DEFAULT_SEARCH_LIMIT, CategorySearchIndex
from marketcat.catalog.tree_store import CategoryTreeStore
from marketcat.domain.exceptions import EmptyTitleError, UnknownMarketplaceError
from marketcat.domain.models import CategoryAttribute, CategoryId, CategoryNode, MatchResult
from marketcat.infrastructure.config import Settings
from marketcat.infrastructure.marketplace_client import MarketplaceClient
from marketcat.infrastructure.marketplaces import create_marketplace_clients

logger = structlog.get_logger()


def _utc(timestamp: float) -> datetime:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


@dataclass
class PrefetchReport:
    """Outcome of a tree prefetch.

    Attributes:
        marketplace: Marketplace name.
        node_count: Total nodes in the tree.
        leaf_count: Leaf nodes in the tree.
        duration_ms: Wall time of the call, including any fetch.
        fetched_at: When the served snapshot was fetched.
        roots: Root categories.
    """

    marketplace: str
    node_count: int
    leaf_count: int
    duration_ms: int
    fetched_at: datetime
    roots: list[CategoryNode] = field(default_factory=list)


@dataclass
class EngineStatus:
    """Cache state of one marketplace engine.

    Attributes:
        marketplace: Marketplace name.
        is_valid: Whether an unexpired tree is cached.
        node_count: Nodes in the cached tree (0 if none).
        leaf_count: Leaves in the cached tree (0 if none).
        last_fetched_at: When the cached tree was fetched.
        refresh_in_flight: Whether a tree fetch is running.
        attributes_cached_for: Leaf ids with unexpired attributes.
        match_cache_size: Entries in the match cache.
    """

    marketplace: str
    is_valid: bool
    node_count: int
    leaf_count: int
    last_fetched_at: datetime | None
    refresh_in_flight: bool
    attributes_cached_for: list[CategoryId]
    match_cache_size: int


class MarketplaceCategoryEngine:
    """Category cache, search and matching for one marketplace.

    Example usage:
        engine = MarketplaceCategoryEngine.from_settings(client, settings)
        report = await engine.prefetch_categories()
        results = await engine.match_category("Siyah Deri Telefon Kılıfı")
    """

    def __init__(
        self,
        client: MarketplaceClient,
        store: CategoryTreeStore | None = None,
        matcher: CategoryMatcher | None = None,
        match_cache: MatchResultCache | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize engine.

        Args:
            client: Marketplace adapter.
            store: Tree store (default: one over client with default TTLs).
            matcher: Matcher (default: one using the client's keyword expansions).
            match_cache: Match result cache.
            clock: Time source shared by the default components.
        """
        self.client = client
        self.store = store or CategoryTreeStore(client, clock=clock)
        self.search_index = CategorySearchIndex()
        self.matcher = matcher or CategoryMatcher(keyword_expansions=client.keyword_expansions)
        self.match_cache = match_cache or MatchResultCache(clock=clock)
        self._matched_version: int | None = None

    @classmethod
    def from_settings(
        cls,
        client: MarketplaceClient,
        settings: Settings,
        clock: Callable[[], float] = time.time,
    ) -> "MarketplaceCategoryEngine":
        """Create an engine with TTLs and limits from settings."""
        return cls(
            client,
            store=CategoryTreeStore(
                client,
                ttl=settings.tree_ttl_for(client.name),
                attribute_ttl=settings.attribute_ttl_for(client.name),
                clock=clock,
            ),
            matcher=CategoryMatcher(
                keyword_expansions=client.keyword_expansions,
                min_score=settings.match_min_score,
            ),
            match_cache=MatchResultCache(
                ttl=settings.match_cache_ttl_seconds,
                max_entries=settings.match_cache_max_entries,
                clock=clock,
            ),
        )

    @property
    def marketplace(self) -> str:
        """Marketplace name."""
        return self.client.name

    # ========================================================================
    # Tree
    # ========================================================================

    async def get_cached_category_tree(self) -> list[CategoryNode]:
        """Get the root categories, fetching the tree if needed."""
        return await self.store.get_tree()

    async def get_category(self, category_id: CategoryId) -> CategoryNode | None:
        """Get a single category by id."""
        snapshot = await self.store.get_snapshot()
        return snapshot.find(category_id)

    async def get_children(self, parent_id: CategoryId | None) -> list[CategoryNode]:
        """Get the children of a category, or the roots for None."""
        snapshot = await self.store.get_snapshot()
        return snapshot.children_of(parent_id)

    async def search_categories(
        self, query: str, limit: int = DEFAULT_SEARCH_LIMIT
    ) -> list[CategoryNode]:
        """Search categories by name or path."""
        if not query.strip():
            return []
        snapshot = await self.store.get_snapshot()
        return self.search_index.search(snapshot, query, limit)

    async def prefetch_categories(self) -> PrefetchReport:
        """Warm the tree cache.

        Raises:
            UpstreamUnavailableError: The fetch failed.
            MalformedUpstreamDataError: The payload was invalid.
        """
        started = time.monotonic()
        snapshot = await self.store.prefetch_snapshot()
        report = PrefetchReport(
            marketplace=self.marketplace,
            node_count=snapshot.node_count,
            leaf_count=snapshot.leaf_count,
            duration_ms=round((time.monotonic() - started) * 1000),
            fetched_at=_utc(snapshot.fetched_at),
            roots=list(snapshot.roots),
        )
        logger.info(
            "Categories prefetched",
            marketplace=self.marketplace,
            node_count=report.node_count,
            leaf_count=report.leaf_count,
            duration_ms=report.duration_ms,
        )
        return report

    async def prefetch_attributes(self, leaf_id: CategoryId) -> list[CategoryAttribute]:
        """Get (and cache) the attributes of a leaf category."""
        return await self.store.get_attributes(leaf_id)

    # ========================================================================
    # Matching
    # ========================================================================

    async def match_category(
        self,
        title: str,
        description: str = "",
        top_n: int = DEFAULT_TOP_N,
    ) -> list[MatchResult]:
        """Suggest leaf categories for a product.

        Results are memoized for a short time per normalized input and
        dropped whenever a new tree version is loaded.

        Raises:
            EmptyTitleError: Title is blank.
            UpstreamUnavailableError: No tree could be loaded.
        """
        if not title or not title.strip():
            raise EmptyTitleError()

        snapshot = await self.store.get_snapshot()
        if snapshot.version != self._matched_version:
            self.match_cache.clear()
            self._matched_version = snapshot.version

        key = make_cache_key(title, description, top_n)
        cached = self.match_cache.get(key)
        if cached is not None:
            return cached

        results = self.matcher.match(snapshot, title, description, top_n)
        self.match_cache.put(key, results)
        logger.info(
            "Category matched",
            marketplace=self.marketplace,
            result_count=len(results),
            top_category_id=results[0].category_id if results else None,
            top_score=results[0].score if results else None,
        )
        return results

    # ========================================================================
    # Maintenance
    # ========================================================================

    def get_status(self) -> EngineStatus:
        """Report the cache state without fetching."""
        snapshot = self.store.snapshot
        return EngineStatus(
            marketplace=self.marketplace,
            is_valid=self.store.is_valid(),
            node_count=snapshot.node_count if snapshot else 0,
            leaf_count=snapshot.leaf_count if snapshot else 0,
            last_fetched_at=_utc(snapshot.fetched_at) if snapshot else None,
            refresh_in_flight=self.store.refresh_in_flight,
            attributes_cached_for=self.store.attributes_cached_for(),
            match_cache_size=len(self.match_cache),
        )

    def clear_cache(self) -> None:
        """Drop the cached tree, attributes and match results."""
        self.store.invalidate()
        self.match_cache.clear()

    async def close(self) -> None:
        """Close the marketplace client."""
        await self.client.close()


class EngineRegistry:
    """Engines for the enabled marketplaces, keyed by name."""

    def __init__(self, engines: dict[str, MarketplaceCategoryEngine]) -> None:
        self._engines = engines

    @classmethod
    def from_settings(
        cls, settings: Settings, clock: Callable[[], float] = time.time
    ) -> "EngineRegistry":
        """Create an engine for every enabled marketplace."""
        engines = {
            name: MarketplaceCategoryEngine.from_settings(client, settings, clock=clock)
            for name, client in create_marketplace_clients(settings).items()
        }
        logger.info("Category engines created", marketplaces=list(engines))
        return cls(engines)

    def get(self, marketplace: str) -> MarketplaceCategoryEngine:
        """Get the engine of a marketplace.

        Raises:
            UnknownMarketplaceError: Marketplace is not enabled.
        """
        engine = self._engines.get(marketplace.lower())
        if engine is None:
            raise UnknownMarketplaceError(marketplace, self.names())
        return engine

    def names(self) -> list[str]:
        """Names of the enabled marketplaces."""
        return list(self._engines)

    def __iter__(self) -> Iterator[MarketplaceCategoryEngine]:
        return iter(self._engines.values())

    def __len__(self) -> int:
        return len(self._engines)

    async def close_all(self) -> None:
        """Close every engine's client."""
        for engine in self._engines.values():
            await engine.close()
