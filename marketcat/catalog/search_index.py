"""Substring search over a category tree."""

from dataclasses import dataclass

from marketcat.catalog.text import normalize_query
from marketcat.catalog.tree import TreeSnapshot
from marketcat.domain.models import CategoryNode

DEFAULT_SEARCH_LIMIT = 30


@dataclass(frozen=True)
class _IndexEntry:
    node: CategoryNode
    name: str
    ancestors: tuple[str, ...]


class CategorySearchIndex:
    """Flat, pre-normalized index of every node in a snapshot.

    The index is rebuilt on the first search after the snapshot version
    changes. Results are ranked in three tiers:

        1. name equals the query
        2. name starts with the query
        3. name or any ancestor name contains the query

    Within a tier nodes keep tree traversal order.
    """

    def __init__(self) -> None:
        self._version: int | None = None
        self._entries: list[_IndexEntry] = []

    @property
    def version(self) -> int | None:
        """Snapshot version the index was built from."""
        return self._version

    def search(
        self,
        snapshot: TreeSnapshot,
        query: str,
        limit: int = DEFAULT_SEARCH_LIMIT,
    ) -> list[CategoryNode]:
        """Find nodes whose name or path contains the query.

        Args:
            snapshot: Tree to search.
            query: Free text; case, diacritics and spacing are ignored.
            limit: Maximum number of results.

        Returns:
            Matching nodes, best tier first.
        """
        needle = normalize_query(query)
        if not needle or limit <= 0:
            return []

        self._ensure_built(snapshot)

        exact: list[CategoryNode] = []
        prefix: list[CategoryNode] = []
        substring: list[CategoryNode] = []
        for entry in self._entries:
            if entry.name == needle:
                exact.append(entry.node)
                if len(exact) >= limit:
                    break
            elif entry.name.startswith(needle):
                prefix.append(entry.node)
            elif needle in entry.name or any(needle in a for a in entry.ancestors):
                substring.append(entry.node)

        return (exact + prefix + substring)[:limit]

    def _ensure_built(self, snapshot: TreeSnapshot) -> None:
        if self._version == snapshot.version:
            return
        self._entries = [
            _IndexEntry(
                node=node,
                name=normalize_query(node.name),
                ancestors=tuple(normalize_query(p) for p in node.path[:-1]),
            )
            for node in snapshot.iter_nodes()
        ]
        self._version = snapshot.version
