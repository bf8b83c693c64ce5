"""Trendyol category adapter.

Trendyol serves the whole tree in one nested response:

    {"categories": [{"id": 403, "name": "Ayakkabı", "parentId": null,
                     "subCategories": [...]}]}

Attributes come from a per-category endpoint under the same prefix.
"""

from typing import Any

import structlog

from marketcat.domain.models import (
    AttributeType,
    CategoryAttribute,
    CategoryId,
    CategoryRecord,
)
from marketcat.infrastructure.config import Settings
from marketcat.infrastructure.marketplace_client import MarketplaceClient

logger = structlog.get_logger()

CATEGORIES_PATH = "/integration/product/product-categories"
ATTRIBUTES_PATH = "/integration/product/product-categories/{category_id}/attributes"


class TrendyolClient(MarketplaceClient):
    """Category adapter for the Trendyol integration API."""

    name = "trendyol"

    @classmethod
    def from_settings(cls, settings: Settings) -> "TrendyolClient":
        """Create client from application settings."""
        auth = None
        if settings.trendyol_api_key and settings.trendyol_api_secret:
            auth = (settings.trendyol_api_key, settings.trendyol_api_secret)
        return cls(
            base_url=settings.trendyol_base_url,
            timeout=settings.request_timeout_seconds,
            headers={"User-Agent": settings.trendyol_user_agent},
            auth=auth,
        )

    async def fetch_tree(self) -> list[Any]:
        """Fetch the nested category tree."""
        data = await self._request_json("GET", CATEGORIES_PATH)
        if isinstance(data, dict):
            return data.get("categories") or []
        return data

    def normalize_node(self, raw: Any) -> CategoryRecord:
        """Normalize a Trendyol category item."""
        return CategoryRecord(
            id=raw.get("id"),
            name=raw.get("name"),
            parent_id=raw.get("parentId"),
            children=tuple(raw.get("subCategories") or ()),
        )

    async def fetch_attributes(self, leaf_id: CategoryId) -> list[CategoryAttribute]:
        """Fetch attribute definitions for a leaf category."""
        data = await self._request_json(
            "GET", ATTRIBUTES_PATH.format(category_id=leaf_id)
        )
        raw_attributes = (data.get("categoryAttributes") or []) if isinstance(data, dict) else []
        attributes = [self.normalize_attribute(raw) for raw in raw_attributes]
        logger.debug(
            "Fetched Trendyol attributes",
            category_id=leaf_id,
            attribute_count=len(attributes),
        )
        return attributes

    @staticmethod
    def normalize_attribute(raw: dict[str, Any]) -> CategoryAttribute:
        """Normalize one entry of "categoryAttributes".

        Attributes with a value list are enums; the rest accept free text.
        """
        attribute = raw.get("attribute") or {}
        values = frozenset(
            str(v["name"]) for v in raw.get("attributeValues") or [] if v.get("name")
        )
        return CategoryAttribute(
            attribute_id=str(attribute.get("id", "")),
            name=attribute.get("name", ""),
            mandatory=bool(raw.get("required", False)),
            type=AttributeType.ENUM if values else AttributeType.TEXT,
            allowed_values=values,
            multi_value=False,
        )
