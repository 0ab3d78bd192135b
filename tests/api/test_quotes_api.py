"""
API tests for quote endpoints.

Tests cover:
- GET /quotes/{identifier}
- POST /quotes/batch
- GET /quotes/search
- GET /quotes/indices
- GET /quotes/status
- Health and root endpoints
"""

from decimal import Decimal

from fastapi.testclient import TestClient


# =============================================================================
# SINGLE QUOTE
# =============================================================================


class TestGetQuote:
    """Tests for GET /quotes/{identifier}."""

    def test_known_identifier(self, client: TestClient):
        """
        GIVEN the stub source knows AAPL
        WHEN I GET /quotes/AAPL
        THEN the price is returned with its source
        """
        response = client.get("/quotes/AAPL")

        assert response.status_code == 200
        data = response.json()
        assert data["identifier"] == "AAPL"
        assert Decimal(data["price"]) == Decimal("185.50")
        assert data["source"] == "stub"
        assert data["currency"] == "EUR"

    def test_identifier_normalized(self, client: TestClient):
        response = client.get("/quotes/de0007164600")

        assert response.status_code == 200
        assert response.json()["identifier"] == "DE0007164600"

    def test_unknown_identifier_returns_404(self, client: TestClient):
        response = client.get("/quotes/zzzz")

        assert response.status_code == 404
        data = response.json()
        assert data["error"] == "NO_QUOTE"
        assert "ZZZZ" in data["message"]


# =============================================================================
# BATCH
# =============================================================================


class TestBatchQuotes:
    """Tests for POST /quotes/batch."""

    def test_batch(self, client: TestClient):
        response = client.post("/quotes/batch", json={
            "identifiers": ["aapl", "BTC", "NOPE", "AAPL"],
        })

        assert response.status_code == 200
        data = response.json()
        assert set(data["quotes"]) == {"AAPL", "BTC"}
        assert Decimal(data["quotes"]["BTC"]["price"]) == Decimal("61250.00")
        assert data["missing"] == ["NOPE"]

    def test_empty_batch_rejected(self, client: TestClient):
        response = client.post("/quotes/batch", json={"identifiers": []})

        assert response.status_code == 422


# =============================================================================
# SEARCH
# =============================================================================


class TestSearch:
    """Tests for GET /quotes/search."""

    def test_search_default_source(self, client: TestClient):
        response = client.get("/quotes/search", params={"query": "apple"})

        assert response.status_code == 200
        data = response.json()
        assert data["query"] == "apple"
        assert data["source"] == "stub"
        assert data["count"] == 2
        symbols = {r["symbol"] for r in data["results"]}
        assert symbols == {"AAPL", "US0378331005"}
        assert all(r["current_price"] is not None for r in data["results"])

    def test_search_named_source(self, client: TestClient):
        response = client.get("/quotes/search", params={"query": "sap", "source": "stub"})

        assert response.status_code == 200
        data = response.json()
        assert data["source"] == "stub"
        assert {r["symbol"] for r in data["results"]} == {"SAP.DE", "DE0007164600"}

    def test_short_query_returns_nothing(self, client: TestClient):
        response = client.get("/quotes/search", params={"query": "a"})

        assert response.status_code == 200
        assert response.json()["count"] == 0

    def test_unknown_source_rejected(self, client: TestClient):
        response = client.get("/quotes/search", params={"query": "apple", "source": "bloomberg"})

        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"

    def test_query_required(self, client: TestClient):
        response = client.get("/quotes/search")

        assert response.status_code == 422


# =============================================================================
# INDICES AND STATUS
# =============================================================================


class TestIndicesAndStatus:
    """Tests for market indices and cache/rate-limit status."""

    def test_indices(self, client: TestClient):
        response = client.get("/quotes/indices")

        assert response.status_code == 200
        data = response.json()
        assert [i["symbol"] for i in data] == ["^GSPC", "^GDAXI"]
        assert Decimal(data[0]["change"]) == Decimal("22.10")

    def test_status_reports_cache_usage(self, client: TestClient):
        client.get("/quotes/AAPL")
        client.get("/quotes/AAPL")

        response = client.get("/quotes/status")

        assert response.status_code == 200
        data = response.json()
        assert data["cache"]["size"] == 1
        assert data["cache"]["hits"] == 1
        assert data["rate_limits"] == [
            {"source": "stub", "available": 0, "reset_in": 0.0, "limited": False}
        ]


class TestHealth:
    """Tests for health and root endpoints."""

    def test_health(self, client: TestClient):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_root(self, client: TestClient):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["docs"] == "/docs"
