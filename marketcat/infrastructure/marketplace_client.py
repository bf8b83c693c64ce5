"""Marketplace HTTP clients.

Provides the shared httpx plumbing and the adapter interface every
marketplace integration implements for the category cache:

    fetch_tree()                raw category items (nested or flat)
    fetch_attributes(leaf_id)   normalized attributes of one leaf
    normalize_node(raw)         raw item -> CategoryRecord
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

import httpx
import structlog

from marketcat.domain.models import CategoryAttribute, CategoryId, CategoryRecord

logger = structlog.get_logger()


class MarketplaceClientError(Exception):
    """Error from a marketplace API call."""

    def __init__(
        self, marketplace: str, message: str, status_code: int | None = None
    ) -> None:
        self.marketplace = marketplace
        self.message = message
        self.status_code = status_code
        super().__init__(f"[{marketplace}] {message}")


class MarketplaceClient(ABC):
    """HTTP client and category adapter for a single marketplace.

    Subclasses provide the endpoints and payload normalization; this
    base class owns the httpx client lifecycle and error translation.
    """

    name: str = "marketplace"

    #: Optional query keyword -> extra terms used by the matcher.
    keyword_expansions: Mapping[str, tuple[str, ...]] = {}

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        auth: tuple[str, str] | None = None,
    ) -> None:
        """Initialize marketplace client.

        Args:
            base_url: API base URL.
            timeout: Request timeout in seconds.
            headers: Default request headers.
            auth: Optional basic auth credentials.
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = headers or {}
        self.auth = auth
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={"Accept": "application/json", **self.headers},
                auth=self.auth,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request_json(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        """Make a request and decode the JSON body.

        Args:
            method: HTTP method.
            path: Path relative to the base URL.
            params: Query parameters.
            json: Request body.

        Returns:
            Decoded JSON payload.

        Raises:
            MarketplaceClientError: On transport errors, timeouts,
                non-2xx responses or bodies that are not JSON.
        """
        try:
            client = await self._get_client()
            logger.debug("Marketplace request", marketplace=self.name, method=method, path=path)
            response = await client.request(method, path, params=params, json=json)
        except httpx.TimeoutException as e:
            logger.error("Marketplace request timed out", marketplace=self.name, path=path)
            raise MarketplaceClientError(self.name, f"Request timed out: {path}") from e
        except httpx.RequestError as e:
            logger.error(
                "Marketplace request failed",
                marketplace=self.name,
                path=path,
                error=str(e),
            )
            raise MarketplaceClientError(self.name, f"Request failed: {str(e)}") from e

        if not 200 <= response.status_code < 300:
            raise MarketplaceClientError(
                self.name,
                f"{method} {path} returned {response.status_code}: {response.text[:200]}",
                response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise MarketplaceClientError(
                self.name,
                f"Invalid JSON response from {path}",
                response.status_code,
            ) from e

    @abstractmethod
    async def fetch_tree(self) -> list[Any]:
        """Fetch the raw category tree.

        Returns:
            Top-level raw items, nested or flat.
        """

    @abstractmethod
    async def fetch_attributes(self, leaf_id: CategoryId) -> list[CategoryAttribute]:
        """Fetch attribute definitions for a leaf category.

        Args:
            leaf_id: Leaf category id.

        Returns:
            Normalized attributes.
        """

    @abstractmethod
    def normalize_node(self, raw: Any) -> CategoryRecord:
        """Turn one raw category item into a CategoryRecord."""

    async def __aenter__(self) -> "MarketplaceClient":
        """Context manager entry."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Context manager exit."""
        await self.close()
