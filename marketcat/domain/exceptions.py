"""Domain exceptions.

Errors raised by the category cache and matcher. The route layer maps
each of them to an HTTP status and the standard error envelope; nothing
in the core formats or localizes messages for end users.
"""

from datetime import datetime
from typing import Any


class DomainError(Exception):
    """Base class for all domain exceptions.

    All domain errors inherit from this class so the application layer
    can catch them in one place.
    """

    error_code = "DOMAIN_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize domain error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================================================
# Upstream Errors
# ============================================================================


class UpstreamUnavailableError(DomainError):
    """Raised when the upstream fetch failed and no snapshot can be served.

    An explicit prefetch also raises it while an expired snapshot is
    still being served to readers; details then carry its fetch time.
    """

    error_code = "UPSTREAM_UNAVAILABLE"

    def __init__(
        self,
        marketplace: str,
        reason: str,
        stale_fetched_at: datetime | None = None,
    ) -> None:
        """Initialize upstream unavailable error.

        Args:
            marketplace: Marketplace whose data could not be fetched.
            reason: Description of the underlying failure.
            stale_fetched_at: Fetch time of the expired snapshot still
                being served, if any.
        """
        details: dict[str, Any] = {
            "marketplace": marketplace,
            "reason": reason,
            "stale_available": stale_fetched_at is not None,
        }
        if stale_fetched_at is not None:
            details["stale_fetched_at"] = stale_fetched_at.isoformat()
        super().__init__(f"Category data for {marketplace} is unavailable: {reason}", details)


class MalformedUpstreamDataError(DomainError):
    """Raised when a fetched payload violates the category tree invariants.

    The snapshot being served before the fetch is left untouched.
    """

    error_code = "MALFORMED_UPSTREAM_DATA"

    def __init__(
        self,
        marketplace: str,
        reason: str,
        category_id: Any | None = None,
    ) -> None:
        """Initialize malformed upstream data error.

        Args:
            marketplace: Marketplace that returned the payload.
            reason: Which invariant was violated.
            category_id: Offending category id, when known.
        """
        details: dict[str, Any] = {"marketplace": marketplace, "reason": reason}
        if category_id is not None:
            details["category_id"] = category_id
        super().__init__(f"Malformed category data from {marketplace}: {reason}", details)


# ============================================================================
# Lookup Errors
# ============================================================================


class InvalidLeafError(DomainError):
    """Raised when attributes are requested for an id that is not a leaf."""

    error_code = "INVALID_LEAF"

    def __init__(self, marketplace: str, category_id: Any, exists: bool = False) -> None:
        """Initialize invalid leaf error.

        Args:
            marketplace: Marketplace the lookup was made against.
            category_id: Requested category id.
            exists: Whether the id exists as an inner node.
        """
        reason = "is not a leaf category" if exists else "is not a known category"
        super().__init__(
            f"Category {category_id} {reason} in the {marketplace} tree",
            details={
                "marketplace": marketplace,
                "category_id": str(category_id),
                "exists": exists,
            },
        )


class UnknownMarketplaceError(DomainError):
    """Raised when a marketplace is not configured or not enabled."""

    error_code = "UNKNOWN_MARKETPLACE"

    def __init__(self, marketplace: str, available: list[str] | None = None) -> None:
        """Initialize unknown marketplace error.

        Args:
            marketplace: Requested marketplace name.
            available: Names of the enabled marketplaces.
        """
        available = available or []
        super().__init__(
            f"Unknown marketplace '{marketplace}'. Available: {available}",
            details={"marketplace": marketplace, "available": available},
        )


# ============================================================================
# Matcher Errors
# ============================================================================


class EmptyTitleError(DomainError):
    """Raised when the matcher is called with a blank product title."""

    error_code = "EMPTY_TITLE"

    def __init__(self) -> None:
        super().__init__("Product title must not be empty")
