"""Tests for the Hepsiburada adapter."""

from unittest.mock import AsyncMock, patch

import pytest

from marketcat.domain.exceptions import MalformedUpstreamDataError
from marketcat.domain.models import AttributeType
from marketcat.infrastructure.hepsiburada import (
    ATTRIBUTE_VALUES_PATH,
    ATTRIBUTES_PATH,
    CATEGORIES_PATH,
    HepsiburadaClient,
)
from marketcat.infrastructure.marketplace_client import MarketplaceClientError

ATTRIBUTES = {
    "data": {
        "baseAttributes": [
            {"id": "Marka", "name": "Marka", "mandatory": True, "type": "string"},
            {"id": "merchantSku", "name": "Satıcı Stok Kodu", "mandatory": True},
        ],
        "attributes": [
            {"id": "renk_variant_property", "name": "Renk", "type": "enum", "multiValue": True},
            {"id": "00001", "name": "Ağırlık", "type": "integer"},
        ],
    }
}


@pytest.fixture
def client() -> HepsiburadaClient:
    """Create a test client."""
    return HepsiburadaClient(base_url="https://mpop.hepsiburada.test", page_size=2)


class TestFetchTree:
    """Tests for paged category fetching."""

    @pytest.mark.asyncio
    async def test_pages_until_last(self, client) -> None:
        """Pages are requested until the last flag is set."""
        pages = [
            {"data": [{"categoryId": 1}, {"categoryId": 2}], "last": False},
            {"data": [{"categoryId": 3}], "last": True},
        ]
        with patch.object(client, "_request_json", new_callable=AsyncMock) as mock_request:
            mock_request.side_effect = pages
            categories = await client.fetch_tree()

        assert [c["categoryId"] for c in categories] == [1, 2, 3]
        assert mock_request.await_count == 2
        second_call = mock_request.await_args_list[1]
        assert second_call.args == ("GET", CATEGORIES_PATH)
        assert second_call.kwargs["params"] == {"page": 1, "size": 2}

    @pytest.mark.asyncio
    async def test_empty_page_stops(self, client) -> None:
        """An empty page ends paging even without the last flag."""
        with patch.object(client, "_request_json", new_callable=AsyncMock) as mock_request:
            mock_request.side_effect = [{"data": [], "last": False}]
            categories = await client.fetch_tree()

        assert categories == []
        assert mock_request.await_count == 1

    @pytest.mark.asyncio
    async def test_non_object_page_raises(self, client) -> None:
        """A page that is not an object is a client error."""
        with patch.object(client, "_request_json", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = ["not", "a", "page"]
            with pytest.raises(MarketplaceClientError):
                await client.fetch_tree()

    @pytest.mark.asyncio
    async def test_page_data_not_a_list_is_malformed(self, client) -> None:
        """A page whose data field is not a list is malformed."""
        with patch.object(client, "_request_json", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = {"data": {"categoryId": 1}, "last": True}
            with pytest.raises(MalformedUpstreamDataError, match="not a list"):
                await client.fetch_tree()


class TestNormalizeNode:
    """Tests for category item normalization."""

    def test_top_level_parent(self, client) -> None:
        """Parent 0 marks a root."""
        record = client.normalize_node(
            {"categoryId": 18021982, "name": "Telefon", "parentCategoryId": 0}
        )
        assert record.id == 18021982
        assert record.parent_id is None

    def test_display_name_preferred(self, client) -> None:
        """displayName wins over name."""
        record = client.normalize_node(
            {"categoryId": 5, "name": "kilif", "displayName": "Kılıf", "parentCategoryId": 4}
        )
        assert record.name == "Kılıf"
        assert record.parent_id == 4
        assert record.children == ()


class TestFetchAttributes:
    """Tests for attribute fetching."""

    @staticmethod
    def route(values_response):
        async def handler(method, path, params=None, json=None):
            if path == ATTRIBUTES_PATH.format(category_id=60001):
                return ATTRIBUTES
            if path == ATTRIBUTE_VALUES_PATH.format(
                category_id=60001, attribute_id="renk_variant_property"
            ):
                if isinstance(values_response, Exception):
                    raise values_response
                return values_response
            raise AssertionError(f"unexpected path {path}")

        return handler

    @pytest.mark.asyncio
    async def test_attributes_with_enum_values(self, client) -> None:
        """Enum values are loaded and listing-only base attributes dropped."""
        values = {"data": [{"value": "Siyah"}, {"value": "Beyaz"}, {"value": ""}]}
        with patch.object(client, "_request_json", side_effect=self.route(values)):
            attributes = await client.fetch_attributes(60001)

        by_id = {a.attribute_id: a for a in attributes}
        assert list(by_id) == ["Marka", "renk_variant_property", "00001"]
        assert by_id["Marka"].mandatory is True
        assert by_id["Marka"].type == AttributeType.TEXT
        assert by_id["renk_variant_property"].type == AttributeType.ENUM
        assert by_id["renk_variant_property"].allowed_values == frozenset({"Siyah", "Beyaz"})
        assert by_id["renk_variant_property"].multi_value is True
        assert by_id["00001"].type == AttributeType.NUMERIC

    @pytest.mark.asyncio
    async def test_value_failure_falls_back_to_text(self, client) -> None:
        """An enum whose values cannot be fetched becomes free text."""
        error = MarketplaceClientError("hepsiburada", "boom", 500)
        with patch.object(client, "_request_json", side_effect=self.route(error)):
            attributes = await client.fetch_attributes(60001)

        color = next(a for a in attributes if a.attribute_id == "renk_variant_property")
        assert color.type == AttributeType.TEXT
        assert color.allowed_values == frozenset()

    @pytest.mark.asyncio
    async def test_definition_failure_propagates(self, client) -> None:
        """A failed definition request is not swallowed."""
        with patch.object(client, "_request_json", new_callable=AsyncMock) as mock_request:
            mock_request.side_effect = MarketplaceClientError("hepsiburada", "down", 503)
            with pytest.raises(MarketplaceClientError):
                await client.fetch_attributes(60001)

    @pytest.mark.asyncio
    async def test_definition_body_not_an_object_is_malformed(self, client) -> None:
        """Attribute data that is not an object is malformed."""
        with patch.object(client, "_request_json", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = {"data": [{"id": "Marka"}]}
            with pytest.raises(MalformedUpstreamDataError):
                await client.fetch_attributes(60001)

    @pytest.mark.asyncio
    async def test_non_object_entries_skipped(self, client) -> None:
        """Entries that are not objects are ignored."""
        payload = {"data": {"baseAttributes": "none", "attributes": ["x", {"id": "a1", "name": "Boy"}]}}
        with patch.object(client, "_request_json", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = payload
            attributes = await client.fetch_attributes(60001)

        assert [a.attribute_id for a in attributes] == ["a1"]

    @pytest.mark.asyncio
    async def test_values_not_a_list_fall_back_to_text(self, client) -> None:
        """A value response that is not a list is treated like a failed lookup."""
        with patch.object(client, "_request_json", side_effect=self.route({"data": {"value": "Siyah"}})):
            attributes = await client.fetch_attributes(60001)

        color = next(a for a in attributes if a.attribute_id == "renk_variant_property")
        assert color.type == AttributeType.TEXT
