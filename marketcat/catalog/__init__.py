"""Category catalog.

Provides the cached category trees, search index, title matcher and
match-result cache, plus the per-marketplace engine that combines them.
"""

from marketcat.catalog.match_cache import MatchResultCache, make_cache_key, sweep_expired
from marketcat.catalog.matcher import CategoryMatcher
from marketcat.catalog.search_index import CategorySearchIndex
from marketcat.catalog.service import (
    EngineRegistry,
    EngineStatus,
    MarketplaceCategoryEngine,
    PrefetchReport,
)
from marketcat.catalog.tree import TreeBuilder, TreeSnapshot
from marketcat.catalog.tree_store import CategoryTreeStore

__all__ = [
    # Tree
    "TreeBuilder",
    "TreeSnapshot",
    "CategoryTreeStore",
    # Search and matching
    "CategorySearchIndex",
    "CategoryMatcher",
    "MatchResultCache",
    "make_cache_key",
    "sweep_expired",
    # Service
    "EngineRegistry",
    "EngineStatus",
    "MarketplaceCategoryEngine",
    "PrefetchReport",
]
