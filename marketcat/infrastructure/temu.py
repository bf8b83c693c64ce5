"""Temu category adapter.

Temu exposes a single signed router endpoint. Every call is a POST whose
body names the API method in "type", carries the common credentials and
is signed with:

    MD5(app_secret + key1value1key2value2... + app_secret), uppercased

Categories can only be listed one parent at a time, so the tree is
walked breadth-first with a bounded number of parallel requests.
"""

import asyncio
import hashlib
import json
import time
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

CATEGORIES_METHOD = "bg.local.goods.cats.get"
TEMPLATE_METHOD = "bg.local.goods.template.get"

# Router result codes: 1000000 is success, 2000000 and above are errors
ERROR_CODE_THRESHOLD = 2_000_000

ROOT_PARENT_ID = 0

INPUT_TYPE_SELECT = 1
INPUT_TYPE_MULTI_SELECT = 3

# Temu category names are English while product titles are Turkish.
# Keys are folded Turkish keywords.
KEYWORD_EXPANSIONS: dict[str, tuple[str, ...]] = {
    # Clothing
    "tisort": ("t-shirt", "tshirt", "tee", "top"),
    "gomlek": ("shirt", "blouse"),
    "pantolon": ("pants", "trousers", "bottoms"),
    "jean": ("jeans", "denim"),
    "kot": ("jeans", "denim"),
    "elbise": ("dress", "gown"),
    "etek": ("skirt",),
    "ceket": ("jacket", "blazer", "coat", "outerwear"),
    "mont": ("jacket", "coat", "puffer", "outerwear"),
    "kaban": ("coat", "overcoat", "outerwear"),
    "kazak": ("sweater", "pullover", "knitwear"),
    "hirka": ("cardigan", "sweater"),
    "sort": ("shorts",),
    "bluz": ("blouse", "top"),
    "tayt": ("leggings", "tights"),
    "esofman": ("tracksuit", "sweatpants", "joggers"),
    "pijama": ("pajamas", "sleepwear", "nightwear"),
    "corap": ("socks", "stockings", "hosiery"),
    "sutyen": ("bra", "brassiere"),
    # Shoes
    "ayakkabi": ("shoes", "shoe", "footwear"),
    "bot": ("boots", "boot"),
    "cizme": ("boots", "boot"),
    "sandalet": ("sandals", "sandal"),
    "terlik": ("slippers", "slides"),
    "topuklu": ("heels", "pumps"),
    "babet": ("flats", "ballet"),
    # Bags and accessories
    "canta": ("bag", "bags", "handbag", "purse", "tote"),
    "cuzdan": ("wallet", "purse"),
    "kemer": ("belt", "belts"),
    "sapka": ("hat", "cap", "beanie"),
    "atki": ("scarf", "scarves"),
    "eldiven": ("gloves", "mittens"),
    "gozluk": ("glasses", "eyewear", "sunglasses"),
    "saat": ("watch", "watches", "clock"),
    # Jewelry
    "taki": ("jewelry", "jewellery"),
    "kolye": ("necklace", "pendant", "chain"),
    "bileklik": ("bracelet", "bangle"),
    "kupe": ("earrings", "earring"),
    "yuzuk": ("ring", "rings"),
    # Electronics
    "telefon": ("phone", "smartphone", "mobile"),
    "bilgisayar": ("computer", "laptop", "notebook"),
    "kulaklik": ("headphones", "earphones", "earbuds", "headset"),
    "kablosuz": ("wireless", "bluetooth"),
    "sarj": ("charger", "charging", "power"),
    "kilif": ("case", "cover", "protector"),
    "koruyucu": ("protector", "protection", "screen"),
    "ekran": ("screen", "display"),
    "kablo": ("cable", "cord", "wire"),
    "kamera": ("camera", "webcam"),
    # Home and living
    "mutfak": ("kitchen", "cookware"),
    "tencere": ("pot", "pots", "cookware"),
    "tava": ("pan", "skillet"),
    "bicak": ("knife", "knives", "cutlery"),
    "tabak": ("plate", "plates", "dinnerware"),
    "bardak": ("glass", "cup", "mug", "tumbler"),
    "banyo": ("bathroom", "bath"),
    "havlu": ("towel", "towels"),
    "yatak": ("bed", "bedding"),
    "yastik": ("pillow", "pillows", "cushion"),
    "battaniye": ("blanket", "throw"),
    "perde": ("curtain", "curtains", "drapes"),
    "hali": ("rug", "carpet"),
    "lamba": ("lamp", "light", "lighting"),
}


def sign_request(params: dict[str, Any], app_secret: str) -> str:
    """Compute the router signature for a request body.

    Keys are sorted by ASCII order; dict and list values are serialized
    as compact JSON.

    Args:
        params: All body parameters except "sign".
        app_secret: Application secret.

    Returns:
        Uppercase hex MD5 digest.
    """
    parts = []
    for key in sorted(params):
        value = params[key]
        if isinstance(value, (dict, list)):
            value = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
        parts.append(f"{key}{value}")
    payload = f"{app_secret}{''.join(parts)}{app_secret}"
    return hashlib.md5(payload.encode("utf-8")).hexdigest().upper()


class TemuClient(MarketplaceClient):
    """Category adapter for the Temu open API router."""

    name = "temu"
    keyword_expansions = KEYWORD_EXPANSIONS

    def __init__(
        self,
        base_url: str,
        app_key: str = "",
        app_secret: str = "",
        access_token: str = "",
        max_category_requests: int = 500,
        concurrent_requests: int = 10,
        **kwargs: Any,
    ) -> None:
        """Initialize client.

        Args:
            base_url: Router URL.
            app_key: Application key.
            app_secret: Application secret used for signing.
            access_token: Seller access token.
            max_category_requests: Upper bound on category list calls per tree fetch.
            concurrent_requests: Category list calls issued in parallel.
        """
        super().__init__(base_url, **kwargs)
        self.app_key = app_key
        self.app_secret = app_secret
        self.access_token = access_token
        self.max_category_requests = max_category_requests
        self.concurrent_requests = concurrent_requests

    @classmethod
    def from_settings(cls, settings: Settings) -> "TemuClient":
        """Create client from application settings."""
        return cls(
            base_url=settings.temu_base_url,
            app_key=settings.temu_app_key,
            app_secret=settings.temu_app_secret,
            access_token=settings.temu_access_token,
            max_category_requests=settings.temu_max_category_requests,
            concurrent_requests=settings.temu_concurrent_requests,
            timeout=settings.request_timeout_seconds,
        )

    def build_request(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Build a signed router request body.

        Args:
            method: API method name, e.g. "bg.local.goods.cats.get".
            params: Method parameters.

        Returns:
            Body including the common parameters and "sign".
        """
        body: dict[str, Any] = {
            "type": method,
            "app_key": self.app_key,
            "timestamp": str(int(time.time())),
            "access_token": self.access_token,
            "data_type": "JSON",
            **(params or {}),
        }
        body["sign"] = sign_request(body, self.app_secret)
        return body

    async def call(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Call a router method and return its "result" payload.

        Raises:
            MarketplaceClientError: On transport failures or router error codes.
            MalformedUpstreamDataError: The result is not an object.
        """
        # The router URL is the full endpoint, not a base for relative paths
        data = await self._request_json("POST", self.base_url, json=self.build_request(method, params))
        if not isinstance(data, dict):
            raise MarketplaceClientError(self.name, f"{method} returned a non-object response")

        error_code = data.get("errorCode") or data.get("error_code")
        if error_code:
            try:
                failed = int(error_code) >= ERROR_CODE_THRESHOLD
            except (TypeError, ValueError):
                raise MarketplaceClientError(
                    self.name, f"{method} returned unreadable error code {error_code!r}"
                ) from None
            if failed:
                error_msg = data.get("errorMsg") or data.get("error_msg") or "Unknown error"
                raise MarketplaceClientError(self.name, f"{method} failed: {error_code} - {error_msg}")

        result = data.get("result") or {}
        if not isinstance(result, dict):
            raise MalformedUpstreamDataError(self.name, f"{method} result is not an object")
        return result

    async def fetch_children(self, parent_id: CategoryId) -> list[dict[str, Any]]:
        """List the direct children of a category (0 for roots)."""
        result = await self.call(CATEGORIES_METHOD, {"parentCatId": parent_id})
        children = result.get("goodsCatsList") or []
        if not isinstance(children, list):
            raise MalformedUpstreamDataError(self.name, "goodsCatsList is not a list", parent_id)
        for child in children:
            if not isinstance(child, dict) or child.get("catId") is None:
                raise MalformedUpstreamDataError(
                    self.name, "category without catId", parent_id
                )
        # Children do not always echo their parent
        return [{**child, "parentId": child.get("parentId", parent_id)} for child in children]

    async def fetch_tree(self) -> list[Any]:
        """Walk the tree breadth-first and return a flat category list.

        A failed child listing, or a walk cut short by the request limit,
        fails the whole fetch so a partial tree never replaces a complete
        one. Unvisited parents would otherwise look like leaves.

        Raises:
            MarketplaceClientError: A listing failed or the limit was hit.
            MalformedUpstreamDataError: A listing could not be read.
        """
        started = time.monotonic()
        categories = await self.fetch_children(ROOT_PARENT_ID)
        request_count = 1
        pending = [c["catId"] for c in categories if not c.get("leaf")]

        while pending and request_count < self.max_category_requests:
            budget = self.max_category_requests - request_count
            batch = pending[: min(self.concurrent_requests, budget)]
            pending = pending[len(batch):]

            results = await asyncio.gather(*(self.fetch_children(p) for p in batch))
            request_count += len(batch)

            for children in results:
                categories.extend(children)
                pending.extend(c["catId"] for c in children if not c.get("leaf"))

        if pending:
            logger.error(
                "Temu category walk stopped at request limit",
                request_limit=self.max_category_requests,
                unvisited_parents=len(pending),
            )
            raise MarketplaceClientError(
                self.name,
                f"category walk hit the limit of {self.max_category_requests} requests "
                f"with {len(pending)} parents unvisited",
            )

        logger.info(
            "Fetched Temu categories",
            category_count=len(categories),
            request_count=request_count,
            duration_ms=round((time.monotonic() - started) * 1000),
        )
        return categories

    def normalize_node(self, raw: Any) -> CategoryRecord:
        """Normalize a Temu category item. Parent 0 marks a root."""
        return CategoryRecord(
            id=raw.get("catId"),
            name=raw.get("catName"),
            parent_id=raw.get("parentId") or None,
        )

    async def fetch_attributes(self, leaf_id: CategoryId) -> list[CategoryAttribute]:
        """Fetch the property template of a leaf category."""
        result = await self.call(TEMPLATE_METHOD, {"catId": leaf_id})
        properties = result.get("propertyList") or []
        if not isinstance(properties, list):
            raise MalformedUpstreamDataError(self.name, "propertyList is not a list", leaf_id)
        return [self.normalize_attribute(p) for p in properties if isinstance(p, dict)]

    @staticmethod
    def normalize_attribute(raw: dict[str, Any]) -> CategoryAttribute:
        """Normalize one template property.

        Select and multi-select inputs with a value list are enums; every
        other input type is free text.
        """
        input_type = raw.get("inputType")
        values = frozenset(
            str(v["valueName"]) for v in raw.get("valueList") or [] if v.get("valueName")
        )
        is_select = input_type in (INPUT_TYPE_SELECT, INPUT_TYPE_MULTI_SELECT)
        return CategoryAttribute(
            attribute_id=str(raw.get("propertyId", "")),
            name=raw.get("propertyName", ""),
            mandatory=bool(raw.get("required", False)),
            type=AttributeType.ENUM if is_select and values else AttributeType.TEXT,
            allowed_values=values if is_select else frozenset(),
            multi_value=input_type == INPUT_TYPE_MULTI_SELECT,
        )
