"""Tests for Category API endpoints."""

from fastapi.testclient import TestClient

from marketcat.infrastructure.marketplace_client import MarketplaceClientError


def ids(response) -> list:
    return [c["id"] for c in response.json()["categories"]]


class TestListMarketplaces:
    """Tests for GET /marketplaces."""

    def test_list_marketplaces(self, client: TestClient) -> None:
        """Enabled marketplaces are listed."""
        response = client.get("/marketplaces")
        assert response.status_code == 200
        assert response.json() == {"marketplaces": ["fake"], "total": 1}


class TestListCategories:
    """Tests for GET /marketplaces/{marketplace}/categories."""

    def test_roots(self, client: TestClient) -> None:
        """Root categories are returned in upstream order."""
        response = client.get("/marketplaces/fake/categories")
        assert response.status_code == 200
        data = response.json()
        assert data["marketplace"] == "fake"
        assert data["total"] == 4
        assert ids(response) == [1, 2, 3, 4]

        phones = data["categories"][0]
        assert phones["name"] == "Telefon"
        assert phones["is_leaf"] is False
        assert phones["child_count"] == 2
        assert phones["path"] == ["Telefon"]

    def test_children(self, client: TestClient) -> None:
        """parent_id selects the children of a category."""
        response = client.get("/marketplaces/fake/categories", params={"parent_id": "10"})
        assert response.status_code == 200
        assert ids(response) == [100, 101, 102]
        case = response.json()["categories"][0]
        assert case["display_path"] == "Telefon > Aksesuar > Kılıf"
        assert case["parent_id"] == 10
        assert case["is_leaf"] is True

    def test_marketplace_name_case_insensitive(self, client: TestClient) -> None:
        """Marketplace names ignore case."""
        response = client.get("/marketplaces/FAKE/categories")
        assert response.status_code == 200

    def test_unknown_marketplace(self, client: TestClient) -> None:
        """Unknown marketplaces return 404."""
        response = client.get("/marketplaces/amazon/categories")
        assert response.status_code == 404
        data = response.json()
        assert data["error_code"] == "UNKNOWN_MARKETPLACE"
        assert data["details"]["available"] == ["fake"]

    def test_upstream_unavailable(self, client: TestClient, fake_client) -> None:
        """A failed fetch with nothing cached returns 503."""
        fake_client.error = MarketplaceClientError("fake", "Request timed out")
        response = client.get("/marketplaces/fake/categories")
        assert response.status_code == 503
        assert response.json()["error_code"] == "UPSTREAM_UNAVAILABLE"

    def test_malformed_upstream(self, client: TestClient, fake_client) -> None:
        """An invalid payload with nothing cached returns 502."""
        fake_client.tree = [{"id": 1, "name": "A"}, {"id": 1, "name": "B"}]
        response = client.get("/marketplaces/fake/categories")
        assert response.status_code == 502
        data = response.json()
        assert data["error_code"] == "MALFORMED_UPSTREAM_DATA"
        assert data["details"]["reason"] == "duplicate category id"

    def test_stale_tree_served_on_failure(self, client: TestClient, fake_client, clock) -> None:
        """An expired tree is still served when the refetch fails."""
        assert client.get("/marketplaces/fake/categories").status_code == 200
        clock.advance(13 * 60 * 60)
        fake_client.error = MarketplaceClientError("fake", "Request timed out")

        response = client.get("/marketplaces/fake/categories")
        assert response.status_code == 200
        assert ids(response) == [1, 2, 3, 4]
        assert fake_client.tree_fetches == 2


class TestSearchCategories:
    """Tests for GET /marketplaces/{marketplace}/categories/search."""

    def test_search(self, client: TestClient) -> None:
        """Exact names rank before prefix and substring matches."""
        response = client.get("/marketplaces/fake/categories/search", params={"q": "kılıf"})
        assert response.status_code == 200
        assert response.json()["query"] == "kılıf"
        assert ids(response) == [100, 301, 40]

    def test_search_limit(self, client: TestClient) -> None:
        """limit caps the results."""
        response = client.get(
            "/marketplaces/fake/categories/search", params={"q": "telefon", "limit": 2}
        )
        assert ids(response) == [1, 40]

    def test_blank_query(self, client: TestClient, fake_client) -> None:
        """A blank query returns nothing without fetching."""
        response = client.get("/marketplaces/fake/categories/search", params={"q": "  "})
        assert response.status_code == 200
        assert response.json()["total"] == 0
        assert fake_client.tree_fetches == 0

    def test_invalid_limit(self, client: TestClient) -> None:
        """Out of range limits are rejected."""
        response = client.get(
            "/marketplaces/fake/categories/search", params={"q": "a", "limit": 0}
        )
        assert response.status_code == 422


class TestPrefetchAndStatus:
    """Tests for cache warm-up and status."""

    def test_status_cold(self, client: TestClient, fake_client) -> None:
        """Status reports an empty cache without fetching."""
        response = client.get("/marketplaces/fake/categories/status")
        assert response.status_code == 200
        data = response.json()
        assert data["is_valid"] is False
        assert data["node_count"] == 0
        assert data["last_fetched_at"] is None
        assert fake_client.tree_fetches == 0

    def test_prefetch(self, client: TestClient) -> None:
        """Prefetch loads the tree and reports its size."""
        response = client.post("/marketplaces/fake/categories/prefetch")
        assert response.status_code == 200
        data = response.json()
        assert data["marketplace"] == "fake"
        assert data["node_count"] == 17
        assert data["leaf_count"] == 10
        assert data["root_count"] == 4

        status = client.get("/marketplaces/fake/categories/status").json()
        assert status["is_valid"] is True
        assert status["node_count"] == 17
        assert status["last_fetched_at"] is not None

    def test_prefetch_does_not_refetch(self, client: TestClient, fake_client) -> None:
        """A valid cache is reused."""
        client.post("/marketplaces/fake/categories/prefetch")
        client.post("/marketplaces/fake/categories/prefetch")
        assert fake_client.tree_fetches == 1

    def test_prefetch_failure(self, client: TestClient, fake_client) -> None:
        """Prefetch reports upstream failures."""
        fake_client.error = MarketplaceClientError("fake", "Request failed")
        response = client.post("/marketplaces/fake/categories/prefetch")
        assert response.status_code == 503


class TestCategoryAttributes:
    """Tests for GET /marketplaces/{marketplace}/categories/{id}/attributes."""

    def test_leaf_attributes(self, client: TestClient, fake_client) -> None:
        """Leaf attributes are returned and cached."""
        response = client.get("/marketplaces/fake/categories/100/attributes")
        assert response.status_code == 200
        data = response.json()
        assert data["category_id"] == "100"
        assert data["total"] == 2

        color = data["attributes"][0]
        assert color["name"] == "Renk"
        assert color["type"] == "enum"
        assert color["mandatory"] is True
        assert color["allowed_values"] == ["Beyaz", "Siyah"]

        client.get("/marketplaces/fake/categories/100/attributes")
        assert fake_client.attribute_fetches == [100]

    def test_inner_node(self, client: TestClient) -> None:
        """Inner nodes have no attributes."""
        response = client.get("/marketplaces/fake/categories/10/attributes")
        assert response.status_code == 404
        data = response.json()
        assert data["error_code"] == "INVALID_LEAF"
        assert data["details"]["exists"] is True

    def test_unknown_category(self, client: TestClient) -> None:
        """Unknown ids return 404."""
        response = client.get("/marketplaces/fake/categories/999/attributes")
        assert response.status_code == 404
        assert response.json()["details"] == {
            "marketplace": "fake",
            "category_id": "999",
            "exists": False,
        }


class TestMatchCategory:
    """Tests for POST /marketplaces/{marketplace}/match-category."""

    def test_match(self, client: TestClient) -> None:
        """Leaves are ranked by score."""
        response = client.post(
            "/marketplaces/fake/match-category",
            json={"title": "Siyah Deri Telefon Kılıfı", "top_n": 3},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert [m["category_id"] for m in data["matches"]] == [100, 11, 40]

        best = data["matches"][0]
        assert best["display_path"] == "Telefon > Aksesuar > Kılıf"
        assert best["score"] == 0.71
        assert best["confidence"] == "high"
        assert "telefon" in best["matched_keywords"]

    def test_no_match(self, client: TestClient) -> None:
        """Titles sharing nothing with the tree get no suggestions."""
        response = client.post("/marketplaces/fake/match-category", json={"title": "Bisiklet"})
        assert response.status_code == 200
        assert response.json() == {"marketplace": "fake", "matches": [], "total": 0}

    def test_blank_title(self, client: TestClient, fake_client) -> None:
        """A blank title returns 400 without fetching."""
        response = client.post("/marketplaces/fake/match-category", json={"title": "   "})
        assert response.status_code == 400
        assert response.json()["error_code"] == "EMPTY_TITLE"
        assert fake_client.tree_fetches == 0

    def test_missing_title(self, client: TestClient) -> None:
        """title is required."""
        response = client.post("/marketplaces/fake/match-category", json={})
        assert response.status_code == 422

    def test_top_n_range(self, client: TestClient) -> None:
        """top_n must be between 1 and 50."""
        response = client.post(
            "/marketplaces/fake/match-category", json={"title": "Kılıf", "top_n": 51}
        )
        assert response.status_code == 422
