"""Hepsiburada category adapter.

Hepsiburada returns categories as a paged flat list linked through
"parentCategoryId". Attribute definitions and the values of enum
attributes live on separate endpoints, so one leaf costs 1 + N requests.
"""

import asyncio
from typing import Any

import structlog

from marketcat.domain.exceptions import MalformedUpstreamDataError
from marketcat.domain.models import (
    AttributeType,
    CategoryAttribute,
    CategoryId,
    CategoryRecord,
)
from marketcat.infrastructure.config import Settings
from marketcat.infrastructure.marketplace_client import (
    MarketplaceClient,
    MarketplaceClientError,
)

logger = structlog.get_logger()

CATEGORIES_PATH = "/product/api/categories/get-all-categories"
ATTRIBUTES_PATH = "/product/api/categories/{category_id}/attributes"
ATTRIBUTE_VALUES_PATH = "/product/api/categories/{category_id}/attribute/{attribute_id}/values"

# Base attributes that describe the product; the rest (merchantSku,
# Barcode, Image1...) are listing fields handled outside the category.
PRODUCT_BASE_ATTRIBUTES = frozenset({"Marka", "GarantiSuresi", "tax_vat_rate", "kg"})

NUMERIC_TYPES = frozenset({"integer", "numeric", "decimal"})

# Hepsiburada product titles often use brand or model names that never
# appear in category names.
KEYWORD_EXPANSIONS: dict[str, tuple[str, ...]] = {
    "iphone": ("cep telefonu", "telefon"),
    "samsung": ("cep telefonu", "telefon"),
    "xiaomi": ("cep telefonu", "telefon"),
    "airpods": ("kulaklik", "bluetooth kulaklik"),
    "macbook": ("laptop", "notebook", "bilgisayar"),
    "ipad": ("tablet",),
    "laptop": ("notebook", "dizustu", "bilgisayar"),
    "notebook": ("laptop", "dizustu", "bilgisayar"),
    "powerbank": ("sarj", "tasinabilir sarj"),
    "tshirt": ("tisort",),
    "sneaker": ("spor ayakkabi", "ayakkabi"),
    "jean": ("pantolon", "kot"),
    "deodorant": ("parfum",),
}


class HepsiburadaClient(MarketplaceClient):
    """Category adapter for the Hepsiburada MPOP API."""

    name = "hepsiburada"
    keyword_expansions = KEYWORD_EXPANSIONS

    def __init__(self, *args: Any, page_size: int = 1000, **kwargs: Any) -> None:
        """Initialize client.

        Args:
            page_size: Categories requested per page.
        """
        super().__init__(*args, **kwargs)
        self.page_size = page_size

    @classmethod
    def from_settings(cls, settings: Settings) -> "HepsiburadaClient":
        """Create client from application settings."""
        auth = None
        if settings.hepsiburada_username and settings.hepsiburada_password:
            auth = (settings.hepsiburada_username, settings.hepsiburada_password)
        return cls(
            base_url=settings.hepsiburada_base_url,
            timeout=settings.request_timeout_seconds,
            headers={"User-Agent": settings.hepsiburada_user_agent},
            auth=auth,
            page_size=settings.hepsiburada_page_size,
        )

    async def fetch_tree(self) -> list[Any]:
        """Fetch every category page and concatenate them."""
        categories: list[Any] = []
        page = 0
        while True:
            data = await self._request_json(
                "GET",
                CATEGORIES_PATH,
                params={"page": page, "size": self.page_size},
            )
            if not isinstance(data, dict):
                raise MarketplaceClientError(self.name, "category page is not an object")
            items = data.get("data") or []
            if not isinstance(items, list):
                raise MalformedUpstreamDataError(self.name, f"category page {page} data is not a list")
            categories.extend(items)
            logger.debug(
                "Fetched Hepsiburada category page",
                page=page,
                page_items=len(items),
                total=len(categories),
            )
            if data.get("last", True) or not items:
                break
            page += 1
        return categories

    def normalize_node(self, raw: Any) -> CategoryRecord:
        """Normalize a Hepsiburada category item.

        A parentCategoryId of 0 or null marks a top-level category.
        """
        parent_id = raw.get("parentCategoryId") or None
        return CategoryRecord(
            id=raw.get("categoryId"),
            name=raw.get("displayName") or raw.get("name"),
            parent_id=parent_id,
        )

    async def fetch_attributes(self, leaf_id: CategoryId) -> list[CategoryAttribute]:
        """Fetch attributes, resolving enum value lists concurrently.

        Raises:
            MarketplaceClientError: The definitions could not be fetched.
            MalformedUpstreamDataError: The definitions could not be read.
        """
        data = await self._request_json(
            "GET", ATTRIBUTES_PATH.format(category_id=leaf_id)
        )
        body = data.get("data") if isinstance(data, dict) else None
        if not isinstance(body, dict):
            raise MalformedUpstreamDataError(self.name, "attribute data is not an object", leaf_id)
        base_attributes = _object_list(body.get("baseAttributes"))
        raw_attributes = [a for a in base_attributes if a.get("id") in PRODUCT_BASE_ATTRIBUTES]
        raw_attributes.extend(_object_list(body.get("attributes")))

        return list(
            await asyncio.gather(
                *(self._build_attribute(leaf_id, raw) for raw in raw_attributes)
            )
        )

    async def _build_attribute(
        self, leaf_id: CategoryId, raw: dict[str, Any]
    ) -> CategoryAttribute:
        """Normalize one attribute, fetching values for enum types.

        An enum whose values cannot be loaded is offered as free text.
        """
        values: frozenset[str] = frozenset()
        if str(raw.get("type", "")).lower() == "enum":
            try:
                values = await self.fetch_attribute_values(leaf_id, str(raw["id"]))
            except MarketplaceClientError as e:
                logger.warning(
                    "Could not fetch attribute values, using text input",
                    category_id=leaf_id,
                    attribute_id=raw.get("id"),
                    error=str(e),
                )
        return self.normalize_attribute(raw, values)

    @staticmethod
    def normalize_attribute(
        raw: dict[str, Any], values: frozenset[str] = frozenset()
    ) -> CategoryAttribute:
        """Normalize one attribute definition.

        Args:
            raw: Entry of "baseAttributes" or "attributes".
            values: Permitted values already fetched for enum attributes.
        """
        raw_type = str(raw.get("type", "string")).lower()
        if values:
            attribute_type = AttributeType.ENUM
        elif raw_type in NUMERIC_TYPES:
            attribute_type = AttributeType.NUMERIC
        else:
            attribute_type = AttributeType.TEXT

        return CategoryAttribute(
            attribute_id=str(raw.get("id", "")),
            name=raw.get("name") or raw.get("displayName") or str(raw.get("id", "")),
            mandatory=bool(raw.get("mandatory", False)),
            type=attribute_type,
            allowed_values=values,
            multi_value=bool(raw.get("multiValue", False)),
        )

    async def fetch_attribute_values(
        self, leaf_id: CategoryId, attribute_id: str
    ) -> frozenset[str]:
        """Fetch the permitted values of an enum attribute."""
        data = await self._request_json(
            "GET",
            ATTRIBUTE_VALUES_PATH.format(category_id=leaf_id, attribute_id=attribute_id),
        )
        items = (data.get("data") or []) if isinstance(data, dict) else data
        if not isinstance(items, list):
            raise MarketplaceClientError(self.name, f"values of {attribute_id} are not a list")
        return frozenset(str(v["value"]) for v in _object_list(items) if v.get("value"))


def _object_list(value: Any) -> list[dict[str, Any]]:
    """Keep the object entries of a list field, ignoring anything else."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]
