"""Integration tests for the Order API endpoints.

Covers:
- POST /api/v1/orders/ (201, 400, 404, 409).
- GET /api/v1/orders/ (paginated envelope, filters).
- GET /api/v1/orders/{id}/.
- PATCH /api/v1/orders/{id}/ (status transitions).
- DELETE /api/v1/orders/{id}/.
- Authentication enforcement (401 without token).
"""

from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

import pytest

from modules.orders.constants import OrderStatus
from modules.orders.models import Order

pytestmark = pytest.mark.integration

ORDERS_URL = "/api/v1/orders/"


@pytest.fixture()
def product(make_product):
    return make_product(name="API Product", price="5.00", stock=10)


def _create(client, product, quantity=3):
    return client.post(
        ORDERS_URL,
        {
            "userId": None,
            "status": "pending",
            "total": float(product.price * quantity),
            "items": [{"productId": str(product.id), "quantity": quantity, "price": 5.0}],
        },
        format="json",
    )


class TestCreateOrder:
    def test_creates_order_and_reserves_stock(self, auth_client, product):
        response = _create(auth_client, product)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["total"] == "15.00"
        assert body["data"]["items"][0]["quantity"] == 3
        product.refresh_from_db()
        assert product.stock_quantity == 7

    def test_insufficient_stock(self, auth_client, make_product):
        scarce = make_product(name="Scarce", stock=2)

        response = _create(auth_client, scarce, quantity=3)

        assert response.status_code == 409
        body = response.json()
        assert body["success"] is False
        assert body["details"]["available"] == 2
        assert Order.objects.count() == 0

    def test_validation_error_lists_fields(self, auth_client):
        response = auth_client.post(ORDERS_URL, {"items": []}, format="json")

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Validation error"
        assert body["details"][0]["loc"] == ["items"]

    def test_requires_authentication(self, api_client, product):
        response = _create(api_client, product)

        assert response.status_code == 401
        assert response.json()["success"] is False
        product.refresh_from_db()
        assert product.stock_quantity == 10


class TestReadOrders:
    def test_list_is_paginated_envelope(self, auth_client, product):
        _create(auth_client, product, quantity=1)
        _create(auth_client, product, quantity=1)

        response = auth_client.get(ORDERS_URL)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["count"] == 2
        assert len(data["results"]) == 2
        assert data["results"][0]["items"][0]["product_name"] == "API Product"

    def test_list_filters_by_status(self, auth_client, product):
        first = _create(auth_client, product, quantity=1).json()["data"]["id"]
        _create(auth_client, product, quantity=1)
        auth_client.patch(f"{ORDERS_URL}{first}/", {"status": "completed"}, format="json")

        response = auth_client.get(ORDERS_URL, {"status": "completed"})

        results = response.json()["data"]["results"]
        assert [o["id"] for o in results] == [first]

    def test_retrieve(self, auth_client, product):
        order_id = _create(auth_client, product).json()["data"]["id"]

        response = auth_client.get(f"{ORDERS_URL}{order_id}/")

        assert response.status_code == 200
        assert response.json()["data"]["id"] == order_id

    def test_retrieve_missing(self, auth_client):
        response = auth_client.get(f"{ORDERS_URL}{uuid4()}/")
        assert response.status_code == 404
        assert response.json()["success"] is False


class TestUpdateStatus:
    def test_cancel_restores_stock_and_is_idempotent(self, auth_client, product):
        order_id = _create(auth_client, product).json()["data"]["id"]
        url = f"{ORDERS_URL}{order_id}/"

        first = auth_client.patch(url, {"status": "cancelled"}, format="json")
        second = auth_client.patch(url, {"status": "cancelled"}, format="json")

        assert first.status_code == 200
        assert second.status_code == 200
        assert second.json()["data"]["status"] == OrderStatus.CANCELLED
        product.refresh_from_db()
        assert product.stock_quantity == 10

    def test_rejected_transition_is_409(self, auth_client, product):
        order_id = _create(auth_client, product).json()["data"]["id"]
        url = f"{ORDERS_URL}{order_id}/"
        auth_client.patch(url, {"status": "cancelled"}, format="json")

        response = auth_client.patch(url, {"status": "completed"}, format="json")

        assert response.status_code == 409

    def test_unknown_status_is_400(self, auth_client, product):
        order_id = _create(auth_client, product).json()["data"]["id"]
        response = auth_client.patch(
            f"{ORDERS_URL}{order_id}/", {"status": "shipped"}, format="json"
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid status"

    def test_put_is_not_allowed(self, auth_client, product):
        order_id = _create(auth_client, product).json()["data"]["id"]
        response = auth_client.put(
            f"{ORDERS_URL}{order_id}/", {"status": "completed"}, format="json"
        )
        assert response.status_code == 405


class TestDeleteOrder:
    def test_delete_releases_stock(self, auth_client, product):
        order_id = _create(auth_client, product).json()["data"]["id"]

        response = auth_client.delete(f"{ORDERS_URL}{order_id}/")

        assert response.status_code == 200
        assert response.json()["data"]["message"] == "Order deleted successfully"
        product.refresh_from_db()
        assert product.stock_quantity == 10
        assert Order.objects.count() == 0

    def test_delete_missing(self, auth_client):
        response = auth_client.delete(f"{ORDERS_URL}{uuid4()}/")
        assert response.status_code == 404
