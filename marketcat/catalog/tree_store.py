"""Category tree cache.

Holds the current TreeSnapshot of one marketplace plus a per-leaf
attribute sub-cache. Expired data is refetched on demand; concurrent
callers share a single in-flight fetch, and an expired snapshot keeps
being served while the upstream is failing.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import TypeVar

import structlog

from marketcat.catalog.tree import TreeBuilder, TreeSnapshot, id_key
from marketcat.domain.exceptions import (
    InvalidLeafError,
    MalformedUpstreamDataError,
    UpstreamUnavailableError,
)
from marketcat.domain.models import CacheEntry, CategoryAttribute, CategoryId, CategoryNode
from marketcat.infrastructure.marketplace_client import (
    MarketplaceClient,
    MarketplaceClientError,
)

logger = structlog.get_logger()

Clock = Callable[[], float]

DEFAULT_TREE_TTL_SECONDS = 12 * 60 * 60

T = TypeVar("T")

# Raised by adapters reading a payload whose shape they did not expect
PAYLOAD_ERRORS = (KeyError, TypeError, ValueError, AttributeError)


def _retrieve_exception(task: "asyncio.Task") -> None:
    # Every waiter may have been cancelled before the task failed
    if not task.cancelled():
        task.exception()


class CategoryTreeStore:
    """TTL cache of one marketplace's category tree and leaf attributes.

    The snapshot is replaced wholesale by a successful refresh; readers
    holding the previous snapshot keep a consistent view.

    Example usage:
        store = CategoryTreeStore(TrendyolClient.from_settings(settings))
        roots = await store.get_tree()
        attributes = await store.get_attributes(leaf_id)
    """

    def __init__(
        self,
        client: MarketplaceClient,
        ttl: float = DEFAULT_TREE_TTL_SECONDS,
        attribute_ttl: float | None = None,
        clock: Clock = time.time,
    ) -> None:
        """Initialize store.

        Args:
            client: Marketplace adapter used for fetching.
            ttl: Tree lifetime in seconds.
            attribute_ttl: Attribute lifetime in seconds (defaults to ttl).
            clock: Time source returning seconds.
        """
        self.client = client
        self.marketplace = client.name
        self.ttl = ttl
        self.attribute_ttl = attribute_ttl if attribute_ttl is not None else ttl
        self._clock = clock
        self._builder = TreeBuilder(client.name, client.normalize_node)

        self._entry: CacheEntry[TreeSnapshot] | None = None
        self._version = 0
        self._pending: asyncio.Task[TreeSnapshot] | None = None

        self._attributes: dict[str, CacheEntry[list[CategoryAttribute]]] = {}
        self._attributes_pending: dict[str, asyncio.Task[list[CategoryAttribute]]] = {}

    # ========================================================================
    # Tree
    # ========================================================================

    @property
    def snapshot(self) -> TreeSnapshot | None:
        """Current snapshot (possibly expired), without fetching."""
        return self._entry.value if self._entry else None

    @property
    def refresh_in_flight(self) -> bool:
        """Whether a tree refresh is currently running."""
        return self._pending is not None

    def is_valid(self) -> bool:
        """Check whether a snapshot exists and has not expired."""
        return self._entry is not None and self._entry.is_valid(self._clock())

    def refresh(self) -> "asyncio.Task[TreeSnapshot]":
        """Start a refresh, or join the one already running.

        Returns:
            The shared refresh task.
        """
        if self._pending is None:
            self._pending = asyncio.ensure_future(self._run_refresh())
            self._pending.add_done_callback(_retrieve_exception)
        return self._pending

    async def get_snapshot(self) -> TreeSnapshot:
        """Get the current snapshot, refreshing it if missing or expired.

        A failed refresh falls back to the expired snapshot when there
        is one.

        Raises:
            UpstreamUnavailableError: No snapshot and the fetch failed.
            MalformedUpstreamDataError: No snapshot and the payload was invalid.
        """
        if self._entry is not None and self._entry.is_valid(self._clock()):
            return self._entry.value

        try:
            return await asyncio.shield(self.refresh())
        except (MarketplaceClientError, MalformedUpstreamDataError) as e:
            stale = self._entry
            if stale is None:
                if isinstance(e, MarketplaceClientError):
                    raise UpstreamUnavailableError(self.marketplace, e.message) from e
                raise
            logger.warning(
                "Serving stale category tree",
                marketplace=self.marketplace,
                version=stale.value.version,
                age_seconds=round(stale.age(self._clock())),
                error=str(e),
            )
            return stale.value

    async def get_tree(self) -> list[CategoryNode]:
        """Get the root categories, refreshing the tree if needed."""
        snapshot = await self.get_snapshot()
        return list(snapshot.roots)

    async def prefetch_snapshot(self) -> TreeSnapshot:
        """Warm the cache and return the snapshot.

        A valid cache is returned as is. Unlike get_snapshot(), a failed
        refresh is reported even when a stale snapshot exists.

        Raises:
            UpstreamUnavailableError: The fetch failed.
            MalformedUpstreamDataError: The payload was invalid.
        """
        if self._entry is not None and self._entry.is_valid(self._clock()):
            return self._entry.value
        try:
            return await asyncio.shield(self.refresh())
        except MarketplaceClientError as e:
            raise UpstreamUnavailableError(
                self.marketplace,
                e.message,
                stale_fetched_at=self._stale_fetched_at(),
            ) from e

    async def prefetch(self) -> list[CategoryNode]:
        """Warm the cache and return the root categories."""
        snapshot = await self.prefetch_snapshot()
        return list(snapshot.roots)

    def invalidate(self) -> None:
        """Drop the cached tree and attributes.

        A refresh already in flight still completes and stores its result.
        """
        self._entry = None
        self._attributes.clear()
        logger.info("Category cache invalidated", marketplace=self.marketplace)

    async def _run_refresh(self) -> TreeSnapshot:
        started = time.monotonic()
        logger.info("Category tree refresh started", marketplace=self.marketplace)
        try:
            raw_items = await self._read_payload(self.client.fetch_tree())
            fetched_at = self._clock()
            snapshot = self._builder.build(raw_items, fetched_at=fetched_at, version=self._version + 1)
        except (MarketplaceClientError, MalformedUpstreamDataError) as e:
            logger.error(
                "Category tree refresh failed",
                marketplace=self.marketplace,
                error=str(e),
                duration_ms=round((time.monotonic() - started) * 1000),
            )
            raise
        finally:
            self._pending = None

        self._version = snapshot.version
        self._entry = CacheEntry(snapshot, fetched_at, self.ttl)
        logger.info(
            "Category tree refresh completed",
            marketplace=self.marketplace,
            version=snapshot.version,
            node_count=snapshot.node_count,
            leaf_count=snapshot.leaf_count,
            duration_ms=round((time.monotonic() - started) * 1000),
        )
        return snapshot

    async def _read_payload(self, fetch: Awaitable[T]) -> T:
        """Await an adapter call, reporting unreadable payloads as malformed."""
        try:
            return await fetch
        except PAYLOAD_ERRORS as e:
            raise MalformedUpstreamDataError(
                self.marketplace, f"unreadable payload: {e!r}"
            ) from e

    def _stale_fetched_at(self) -> datetime | None:
        if self._entry is None:
            return None
        return datetime.fromtimestamp(self._entry.fetched_at, tz=timezone.utc)

    # ========================================================================
    # Attributes
    # ========================================================================

    async def get_attributes(self, leaf_id: CategoryId) -> list[CategoryAttribute]:
        """Get the attributes of a leaf category.

        Args:
            leaf_id: Leaf category id (native or string form).

        Returns:
            Attribute definitions.

        Raises:
            InvalidLeafError: The id is not a leaf of the current tree.
            UpstreamUnavailableError: Nothing cached and the fetch failed.
            MalformedUpstreamDataError: Nothing cached and the payload was invalid.
        """
        snapshot = await self.get_snapshot()
        node = snapshot.find(leaf_id)
        if node is None or not node.is_leaf:
            raise InvalidLeafError(self.marketplace, leaf_id, exists=node is not None)

        key = id_key(node.id)
        entry = self._attributes.get(key)
        if entry is not None and entry.is_valid(self._clock()):
            return list(entry.value)

        task = self._attributes_pending.get(key)
        if task is None:
            task = asyncio.ensure_future(self._run_attribute_fetch(node))
            task.add_done_callback(_retrieve_exception)
            self._attributes_pending[key] = task

        try:
            return list(await asyncio.shield(task))
        except (MarketplaceClientError, MalformedUpstreamDataError) as e:
            stale = self._attributes.get(key)
            if stale is None:
                if isinstance(e, MarketplaceClientError):
                    raise UpstreamUnavailableError(self.marketplace, e.message) from e
                raise
            logger.warning(
                "Serving stale category attributes",
                marketplace=self.marketplace,
                category_id=node.id,
                error=str(e),
            )
            return list(stale.value)

    def attributes_cached_for(self) -> list[CategoryId]:
        """Ids of the leaves with unexpired cached attributes."""
        now = self._clock()
        snapshot = self.snapshot
        ids: list[CategoryId] = []
        for key, entry in self._attributes.items():
            if not entry.is_valid(now):
                continue
            node = snapshot.find(key) if snapshot else None
            ids.append(node.id if node else key)
        return ids

    async def _run_attribute_fetch(self, node: CategoryNode) -> list[CategoryAttribute]:
        key = id_key(node.id)
        try:
            attributes = await self._read_payload(self.client.fetch_attributes(node.id))
        finally:
            self._attributes_pending.pop(key, None)

        self._attributes[key] = CacheEntry(attributes, self._clock(), self.attribute_ttl)
        logger.info(
            "Category attributes cached",
            marketplace=self.marketplace,
            category_id=node.id,
            attribute_count=len(attributes),
        )
        return attributes
