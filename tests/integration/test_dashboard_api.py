"""Integration tests for GET /api/v1/dashboard/."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

pytestmark = pytest.mark.integration

DASHBOARD_URL = "/api/v1/dashboard/"


class TestDashboardApi:
    def test_snapshot_shape(self, auth_client, make_product):
        product = make_product(name="Lamp", price="10.00", stock=20)
        created = auth_client.post(
            "/api/v1/orders/",
            {"items": [{"productId": str(product.id), "quantity": 2}]},
            format="json",
        ).json()["data"]
        auth_client.patch(
            f"/api/v1/orders/{created['id']}/", {"status": "completed"}, format="json"
        )

        response = auth_client.get(DASHBOARD_URL)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["total_orders"] == 1
        assert data["orders_by_status"]["completed"] == 1
        assert data["total_revenue"] == "20.00"
        assert data["top_selling_products"][0]["name"] == "Lamp"
        assert data["recent_orders"][0]["id"] == created["id"]
        assert data["low_stock_products"] == []

    def test_refreshed_after_committed_order(
        self, auth_client, make_product, django_capture_on_commit_callbacks
    ):
        product = make_product(name="Lamp", stock=20)
        assert auth_client.get(DASHBOARD_URL).json()["data"]["total_orders"] == 0

        with django_capture_on_commit_callbacks(execute=True):
            auth_client.post(
                "/api/v1/orders/",
                {"items": [{"productId": str(product.id), "quantity": 1}]},
                format="json",
            )

        assert auth_client.get(DASHBOARD_URL).json()["data"]["total_orders"] == 1

    def test_requires_authentication(self, api_client):
        assert api_client.get(DASHBOARD_URL).status_code == 401

    def test_served_from_database_when_cache_is_down(self, auth_client, make_product):
        make_product(name="Lamp", stock=3)
        down = MagicMock()
        down.get.side_effect = down.set.side_effect = ConnectionError("redis down")

        # Read-model cache only; request throttling keeps its own backend handle.
        with patch("modules.core.cache.cache", down):
            response = auth_client.get(DASHBOARD_URL)

        assert response.status_code == 200
        assert response.json()["data"]["low_stock_products"][0]["name"] == "Lamp"
