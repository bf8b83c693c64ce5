"""Category data model.

Marketplace-neutral shapes that every adapter normalizes into. Trees are
built once per fetch and never mutated afterwards; match results are
frozen value objects.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

CategoryId = int | str

T = TypeVar("T")


@dataclass(eq=False)
class CategoryNode:
    """A node in a marketplace category tree.

    Attributes:
        id: Marketplace-native identifier.
        name: Display name as returned upstream.
        parent_id: Id of the parent node (None for roots).
        children: Child nodes in upstream order.
        path: Names from the root down to this node.
    """

    id: CategoryId
    name: str
    parent_id: CategoryId | None = None
    children: list["CategoryNode"] = field(default_factory=list, repr=False)
    path: tuple[str, ...] = ()

    @property
    def is_leaf(self) -> bool:
        """Leaf nodes are the only level products are listed under."""
        return not self.children

    @property
    def depth(self) -> int:
        """Depth in the tree (1 = root)."""
        return len(self.path)

    def display_path(self, separator: str = " > ") -> str:
        """Join the path for display.

        Args:
            separator: String placed between path segments.

        Returns:
            Path string, e.g. "Telefon > Aksesuar > Kılıf".
        """
        return separator.join(self.path)


@dataclass(frozen=True)
class CategoryRecord:
    """One upstream category, normalized but not yet validated.

    Attributes:
        id: Category id (None when upstream omitted it).
        name: Category name (None when upstream omitted it).
        parent_id: Declared parent id, None for roots or nested children.
        children: Raw nested children still in upstream shape.
    """

    id: CategoryId | None
    name: str | None
    parent_id: CategoryId | None = None
    children: tuple[Any, ...] = ()


class AttributeType(str, Enum):
    """Input kind of a category attribute."""

    TEXT = "text"
    ENUM = "enum"
    NUMERIC = "numeric"


@dataclass(frozen=True)
class CategoryAttribute:
    """An attribute definition for a leaf category.

    Attributes:
        attribute_id: Marketplace attribute identifier.
        name: Display name.
        mandatory: Whether a listing must provide a value.
        type: Input kind.
        allowed_values: Permitted values (enum attributes only).
        multi_value: Whether more than one value may be selected.
    """

    attribute_id: str
    name: str
    mandatory: bool = False
    type: AttributeType = AttributeType.TEXT
    allowed_values: frozenset[str] = frozenset()
    multi_value: bool = False


@dataclass
class CacheEntry(Generic[T]):
    """A cached value with the time it was fetched and its lifetime.

    Attributes:
        value: Cached payload.
        fetched_at: Clock reading (seconds) when the value was stored.
        ttl: Lifetime in seconds.
    """

    value: T
    fetched_at: float
    ttl: float

    def is_valid(self, now: float) -> bool:
        """Check whether the entry may be served without a refetch.

        Args:
            now: Current clock reading in seconds.

        Returns:
            True while the entry is younger than its TTL.
        """
        return now - self.fetched_at < self.ttl

    def age(self, now: float) -> float:
        """Seconds since the value was fetched."""
        return now - self.fetched_at


class Confidence(str, Enum):
    """Coarse confidence bucket for a match score."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class MatchResult:
    """A ranked category suggestion for a product title.

    Attributes:
        category_id: Id of the suggested leaf category.
        display_path: Path joined with " > ".
        score: Normalized score in [0, 1].
        confidence: Bucket derived from score.
        matched_keywords: Query terms that contributed, in query order.
    """

    category_id: CategoryId
    display_path: str
    score: float
    confidence: Confidence
    matched_keywords: tuple[str, ...] = ()
