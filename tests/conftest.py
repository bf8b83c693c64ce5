"""Shared fixtures for marketcat tests."""

import asyncio
from typing import Any

import pytest

from marketcat.catalog.tree import TreeBuilder, TreeSnapshot
from marketcat.domain.models import (
    AttributeType,
    CategoryAttribute,
    CategoryId,
    CategoryRecord,
)
from marketcat.infrastructure.marketplace_client import MarketplaceClient

START_TIME = 1_700_000_000.0


def sample_tree() -> list[dict[str, Any]]:
    """Nested category tree in Trendyol's shape."""
    return [
        {
            "id": 1,
            "name": "Telefon",
            "subCategories": [
                {
                    "id": 10,
                    "name": "Aksesuar",
                    "subCategories": [
                        {"id": 100, "name": "Kılıf", "subCategories": []},
                        {"id": 101, "name": "Ekran Koruyucu", "subCategories": []},
                        {"id": 102, "name": "Şarj Aleti", "subCategories": []},
                    ],
                },
                {"id": 11, "name": "Cep Telefonu", "subCategories": []},
            ],
        },
        {
            "id": 2,
            "name": "Mutfak",
            "subCategories": [
                {"id": 20, "name": "Tencere", "subCategories": []},
                {"id": 21, "name": "Tava", "subCategories": []},
            ],
        },
        {
            "id": 3,
            "name": "Giyim",
            "subCategories": [
                {
                    "id": 30,
                    "name": "Kadın",
                    "subCategories": [
                        {"id": 300, "name": "Elbise", "subCategories": []},
                        {"id": 301, "name": "Kılıf Elbise", "subCategories": []},
                    ],
                },
                {
                    "id": 31,
                    "name": "Erkek",
                    "subCategories": [{"id": 310, "name": "Tişört", "subCategories": []}],
                },
            ],
        },
        {
            "id": 4,
            "name": "Ev",
            "subCategories": [
                {"id": 40, "name": "Telefon Kılıfı Standı", "subCategories": []},
            ],
        },
    ]


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, now: float = START_TIME) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeMarketplaceClient(MarketplaceClient):
    """In-memory marketplace that counts upstream calls.

    Set `tree`, `attributes` or `error` between calls to change what the
    next fetch returns. When `gate` is set, fetches wait for it.
    """

    name = "fake"

    def __init__(self, tree: list[dict[str, Any]] | None = None) -> None:
        super().__init__("http://marketplace.test")
        self.tree = tree if tree is not None else sample_tree()
        self.attributes: dict[str, list[CategoryAttribute]] = {}
        self.error: Exception | None = None
        self.gate: asyncio.Event | None = None
        self.tree_fetches = 0
        self.attribute_fetches: list[CategoryId] = []

    async def fetch_tree(self) -> list[Any]:
        self.tree_fetches += 1
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return self.tree

    async def fetch_attributes(self, leaf_id: CategoryId) -> list[CategoryAttribute]:
        self.attribute_fetches.append(leaf_id)
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return self.attributes.get(str(leaf_id), [])

    def normalize_node(self, raw: Any) -> CategoryRecord:
        return CategoryRecord(
            id=raw.get("id"),
            name=raw.get("name"),
            parent_id=raw.get("parentId"),
            children=tuple(raw.get("subCategories") or ()),
        )


@pytest.fixture
def clock() -> FakeClock:
    """Create a fake clock."""
    return FakeClock()


@pytest.fixture
def fake_client() -> FakeMarketplaceClient:
    """Create a fake marketplace client with the sample tree."""
    client = FakeMarketplaceClient()
    client.attributes["100"] = [
        CategoryAttribute(
            attribute_id="47",
            name="Renk",
            mandatory=True,
            type=AttributeType.ENUM,
            allowed_values=frozenset({"Siyah", "Beyaz"}),
        ),
        CategoryAttribute(attribute_id="48", name="Materyal"),
    ]
    return client


@pytest.fixture
def make_client() -> type[FakeMarketplaceClient]:
    """Factory for fake clients with a custom tree."""
    return FakeMarketplaceClient


@pytest.fixture
def snapshot(fake_client: FakeMarketplaceClient) -> TreeSnapshot:
    """Build a snapshot of the sample tree."""
    builder = TreeBuilder("fake", fake_client.normalize_node)
    return builder.build(sample_tree(), fetched_at=START_TIME, version=1)
