"""
Tests for the HTTP surface.

Dependencies are overridden with the in-memory store, static providers and
a static catalog, so no database or network is needed.
"""

import pytest
from unittest.mock import patch

from fastapi.testclient import TestClient

from src.api import shared
from src.api.main import app
from src.data.config import AnalyticsConfig, IngestionConfig
from src.data.data_models import Product
from src.data.provider_clients import ProviderRegistry
from src.reviews.errors import DatabaseError

from conftest import InMemoryReviewStore, StaticCatalog, StaticProvider, make_payload


class ApiTestCase:
    """Wires the app to in-memory collaborators."""

    def setup_method(self):
        self.store = InMemoryReviewStore()
        self.registry = ProviderRegistry([
            StaticProvider("a", [make_payload("a1", rating=5), make_payload("a2", rating=5)]),
            StaticProvider("b", [make_payload("b1", rating=1)]),
            StaticProvider("broken", error="HTTP 500"),
        ])
        self.catalog = StaticCatalog([Product(id="P", name="Desk Lamp")])

        app.dependency_overrides[shared.get_store] = lambda: self.store
        app.dependency_overrides[shared.get_registry] = lambda: self.registry
        app.dependency_overrides[shared.get_catalog] = lambda: self.catalog
        app.dependency_overrides[shared.get_ingestion_config] = lambda: IngestionConfig(
            batch_size=100, max_workers=4, default_rating=1, catalog_lookup=True,
        )
        app.dependency_overrides[shared.get_analytics_config] = lambda: AnalyticsConfig(
            default_window_days=90, min_window_days=7, max_window_days=365, top_products_limit=6,
        )
        self.client = TestClient(app)

    def teardown_method(self):
        app.dependency_overrides.clear()

    def ingest(self, sources="a,b"):
        return self.client.post("/api/products/P/reviews/fetch", params={"sources": sources})


class TestProductReviewRoutes(ApiTestCase):

    def test_fetch_success(self):
        response = self.ingest()

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["totalFetched"] == 3
        assert body["inserted"] == 3
        assert body["duplicates"] == 0

    def test_fetch_partial_failure_is_200(self):
        response = self.ingest("a,broken")

        assert response.status_code == 200
        body = response.json()
        assert body["inserted"] == 2
        assert [e["source"] for e in body["perSourceErrors"]] == ["broken"]

    def test_fetch_total_failure_is_502(self):
        response = self.ingest("broken")

        assert response.status_code == 502
        assert response.json()["success"] is False
        assert len(response.json()["perSourceErrors"]) == 1

    def test_fetch_unknown_product_is_404(self):
        response = self.client.post("/api/products/NOPE/reviews/fetch")
        assert response.status_code == 404

    def test_list_reviews(self):
        self.ingest()

        response = self.client.get("/api/products/P/reviews", params={"limit": 500})

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 3
        assert body["limit"] == 100
        assert {item["reviewId"] for item in body["items"]} == {"a1", "a2", "b1"}
        assert body["items"][0]["moderationStatus"] == "approved"

    def test_list_paging(self):
        self.ingest()
        body = self.client.get("/api/products/P/reviews", params={"limit": 1, "offset": 2}).json()
        assert len(body["items"]) == 1
        assert body["total"] == 3

    def test_aggregate(self):
        self.ingest()

        body = self.client.get("/api/products/P/reviews/aggregate").json()

        assert body["totalReviews"] == 3
        assert body["overallAverage"] == 3.67
        assert body["ratingHistogram"] == {"1": 1, "2": 0, "3": 0, "4": 0, "5": 2}

    def test_aggregate_unknown_product(self):
        assert self.client.get("/api/products/NOPE/reviews/aggregate").status_code == 404


class TestAdminRoutes(ApiTestCase):

    def setup_method(self):
        super().setup_method()
        self.ingest()

    def test_pending_queue_empty(self):
        body = self.client.get("/api/admin/reviews", params={"status": "pending"}).json()
        assert body["items"] == []
        assert body["total"] == 0

    def test_invalid_status_is_400(self):
        assert self.client.get("/api/admin/reviews", params={"status": "spam"}).status_code == 400

    def test_flag_then_reject(self):
        response = self.client.patch("/api/admin/reviews/1", json={"flagged": True})
        assert response.status_code == 200
        assert response.json() == {"updated": 1}

        self.client.patch("/api/admin/reviews/1", json={"moderationStatus": "rejected"})

        body = self.client.get("/api/admin/reviews", params={"flagged": "true"}).json()
        assert body["total"] == 1
        assert body["items"][0]["moderationStatus"] == "rejected"
        assert body["items"][0]["flagged"] is True

    def test_empty_update_is_400(self):
        assert self.client.patch("/api/admin/reviews/1", json={}).status_code == 400

    def test_non_numeric_id_is_400(self):
        assert self.client.patch("/api/admin/reviews/abc", json={"flagged": True}).status_code == 400

    def test_missing_review_is_404(self):
        assert self.client.patch("/api/admin/reviews/999", json={"flagged": True}).status_code == 404
        assert self.client.delete("/api/admin/reviews/999").status_code == 404

    def test_delete_review(self):
        response = self.client.delete("/api/admin/reviews/2")
        assert response.json() == {"deleted": 1}
        assert self.store.count_by_product("P") == 2

    def test_delete_product_reviews(self):
        assert self.client.delete("/api/admin/products/P/reviews").json() == {"deleted": 3}
        assert self.client.delete("/api/admin/products/P/reviews").json() == {"deleted": 0}


class TestAnalyticsRoutes(ApiTestCase):

    def test_overview(self):
        self.ingest()

        body = self.client.get("/api/analytics/overview").json()

        assert body["windowDays"] == 90
        assert body["totals"]["totalReviews"] == 3
        assert body["topProducts"][0]["id"] == "P"
        assert body["topProducts"][0]["name"] == "Desk Lamp"

    @pytest.mark.parametrize("days,expected", [("3", 7), ("30", 30), ("9999", 365), ("abc", 90)])
    def test_window_clamped(self, days, expected):
        body = self.client.get("/api/analytics/overview", params={"days": days}).json()
        assert body["windowDays"] == expected


class TestFailureMapping(ApiTestCase):

    def test_database_error_is_503(self):
        def broken(*args, **kwargs):
            raise DatabaseError("connection lost")
        self.store.rating_buckets = broken

        assert self.client.get("/api/analytics/overview").status_code == 503

    def test_no_pool_is_503(self):
        app.dependency_overrides.pop(shared.get_store)
        with patch("src.api.shared.db.get_pool", return_value=None):
            response = self.client.get("/api/products/P/reviews")
        assert response.status_code == 503


class TestHealth:

    def test_degraded_without_database(self):
        with patch("src.api.main.db.check_health", return_value={"status": "disconnected"}), \
                patch("src.api.main.get_registry", return_value=ProviderRegistry([StaticProvider("amazon")])):
            response = TestClient(app).get("/api/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "degraded"
        assert body["database"] == "disconnected"
        assert body["sources"] == ["amazon"]
