"""Category tree construction.

Marketplaces return their category trees in different shapes:

    Trendyol     nested: {"id": 1, "name": "Telefon", "subCategories": [...]}
    Hepsiburada  flat:   {"categoryId": 2, "name": "Kılıf", "parentCategoryId": 1}
    Temu         flat:   {"catId": 3, "catName": "Cases", "parentId": 1}

Adapters normalize each raw item into a CategoryRecord; TreeBuilder
validates the records and links them into an immutable TreeSnapshot.
"""

from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from marketcat.domain.exceptions import MalformedUpstreamDataError
from marketcat.domain.models import CategoryId, CategoryNode, CategoryRecord


def id_key(category_id: CategoryId) -> str:
    """Lookup key for a category id.

    Ids are compared by their string form so "123" from a URL resolves
    the integer id 123 returned upstream.
    """
    return str(category_id)


@dataclass(frozen=True)
class TreeSnapshot:
    """An immutable, fully linked category tree.

    Attributes:
        roots: Root nodes in upstream order.
        nodes: All nodes keyed by id_key().
        ordered: All nodes in pre-order traversal order.
        leaves: Leaf nodes in traversal order.
        fetched_at: Clock reading when the tree was fetched.
        version: Increases by one with every successful refresh.
    """

    roots: tuple[CategoryNode, ...]
    nodes: Mapping[str, CategoryNode]
    ordered: tuple[CategoryNode, ...]
    leaves: tuple[CategoryNode, ...]
    fetched_at: float
    version: int

    @property
    def node_count(self) -> int:
        """Total number of nodes."""
        return len(self.ordered)

    @property
    def leaf_count(self) -> int:
        """Number of leaf nodes."""
        return len(self.leaves)

    def find(self, category_id: CategoryId) -> CategoryNode | None:
        """Get a node by id.

        Args:
            category_id: Native or string id.

        Returns:
            Node if present, None otherwise.
        """
        return self.nodes.get(id_key(category_id))

    def is_leaf(self, category_id: CategoryId) -> bool:
        """Check whether the id names a leaf in this snapshot."""
        node = self.find(category_id)
        return node is not None and node.is_leaf

    def children_of(self, parent_id: CategoryId | None) -> list[CategoryNode]:
        """Get the children of a node, or the roots for None.

        Args:
            parent_id: Parent id, None for top level.

        Returns:
            Child nodes (empty for leaves and unknown ids).
        """
        if parent_id is None:
            return list(self.roots)
        node = self.find(parent_id)
        return list(node.children) if node else []

    def iter_nodes(self) -> Iterator[CategoryNode]:
        """Iterate over all nodes in pre-order traversal order."""
        return iter(self.ordered)


class TreeBuilder:
    """Builds a TreeSnapshot from raw upstream items.

    Example usage:
        builder = TreeBuilder("trendyol", adapter.normalize_node)
        snapshot = builder.build(raw_items, fetched_at=time.time(), version=1)
    """

    def __init__(
        self,
        marketplace: str,
        normalize_node: Callable[[Any], CategoryRecord],
    ) -> None:
        """Initialize builder.

        Args:
            marketplace: Marketplace name used in error details.
            normalize_node: Adapter function turning a raw item into a record.
        """
        self.marketplace = marketplace
        self.normalize_node = normalize_node

    def build(self, raw_items: Iterable[Any], fetched_at: float, version: int) -> TreeSnapshot:
        """Validate raw items and link them into a tree.

        Args:
            raw_items: Top-level upstream items (nested or flat).
            fetched_at: Clock reading of the fetch.
            version: Version number for the new snapshot.

        Returns:
            Fully linked snapshot.

        Raises:
            MalformedUpstreamDataError: On missing fields, duplicate ids,
                dangling parents or cycles.
        """
        nodes: dict[str, CategoryNode] = {}

        # First pass: create all nodes
        for record, inherited_parent in self._flatten(raw_items, None):
            if record.id is None or record.id == "":
                raise self._malformed("missing required field 'id'")
            if not isinstance(record.name, str) or not record.name.strip():
                raise self._malformed("missing required field 'name'", record.id)

            key = id_key(record.id)
            if key in nodes:
                raise self._malformed("duplicate category id", record.id)

            parent_id = record.parent_id if record.parent_id is not None else inherited_parent
            if parent_id is not None and id_key(parent_id) == key:
                raise self._malformed("category is its own parent", record.id)

            nodes[key] = CategoryNode(id=record.id, name=record.name.strip(), parent_id=parent_id)

        if not nodes:
            raise self._malformed("empty category tree")

        # Second pass: establish parent-child relationships
        roots: list[CategoryNode] = []
        for node in nodes.values():
            if node.parent_id is None:
                roots.append(node)
                continue
            parent = nodes.get(id_key(node.parent_id))
            if parent is None:
                raise self._malformed(f"parent {node.parent_id} does not exist", node.id)
            parent.children.append(node)

        ordered = self._assign_paths(roots)
        if len(ordered) != len(nodes):
            unreachable = next(n for n in nodes.values() if not n.path)
            raise self._malformed("parent references form a cycle", unreachable.id)

        return TreeSnapshot(
            roots=tuple(roots),
            nodes=nodes,
            ordered=tuple(ordered),
            leaves=tuple(n for n in ordered if n.is_leaf),
            fetched_at=fetched_at,
            version=version,
        )

    def _flatten(
        self, raw_items: Iterable[Any], parent_id: CategoryId | None
    ) -> Iterator[tuple[CategoryRecord, CategoryId | None]]:
        """Yield records depth-first, pairing nested children with their parent."""
        for raw in raw_items:
            try:
                record = self.normalize_node(raw)
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                raise self._malformed(f"unreadable category item: {e}") from e
            yield record, parent_id
            if record.children:
                yield from self._flatten(record.children, record.id)

    @staticmethod
    def _assign_paths(roots: list[CategoryNode]) -> list[CategoryNode]:
        """Set each node's path and return nodes in pre-order.

        Nodes caught in a parent cycle are never reached from a root and
        keep an empty path.
        """
        ordered: list[CategoryNode] = []
        stack: list[tuple[CategoryNode, tuple[str, ...]]] = [
            (root, ()) for root in reversed(roots)
        ]
        while stack:
            node, parent_path = stack.pop()
            node.path = (*parent_path, node.name)
            ordered.append(node)
            for child in reversed(node.children):
                stack.append((child, node.path))
        return ordered

    def _malformed(self, reason: str, category_id: Any | None = None) -> MalformedUpstreamDataError:
        return MalformedUpstreamDataError(self.marketplace, reason, category_id)
