"""Domain layer - category model and domain exceptions.

Example usage:
    from marketcat.domain import CategoryNode, MatchResult, InvalidLeafError
"""

from marketcat.domain.exceptions import (
    DomainError,
    EmptyTitleError,
    InvalidLeafError,
    MalformedUpstreamDataError,
    UnknownMarketplaceError,
    UpstreamUnavailableError,
)
from marketcat.domain.models import (
    AttributeType,
    CacheEntry,
    CategoryAttribute,
    CategoryId,
    CategoryNode,
    CategoryRecord,
    Confidence,
    MatchResult,
)

__all__ = [
    # Models
    "AttributeType",
    "CacheEntry",
    "CategoryAttribute",
    "CategoryId",
    "CategoryNode",
    "CategoryRecord",
    "Confidence",
    "MatchResult",
    # Exceptions
    "DomainError",
    "EmptyTitleError",
    "InvalidLeafError",
    "MalformedUpstreamDataError",
    "UnknownMarketplaceError",
    "UpstreamUnavailableError",
]
