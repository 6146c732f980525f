"""Order API views.

Thin HTTP adapters over ``modules.orders.actions``: every handler
delegates to an action and renders the returned envelope.  The list
endpoint is the only one that reads the ORM directly, to reuse DRF
filtering and pagination.
"""

from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter
from rest_framework.mixins import ListModelMixin
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework.viewsets import GenericViewSet

from modules.core.cache import DASHBOARD_CACHE_KEY, read_cached, store_cached
from modules.core.pagination import StandardResultsSetPagination
from modules.core.responses import handle_action_error, success_response
from modules.orders import actions, reports
from modules.orders.filters import OrderFilter
from modules.orders.models import Order
from modules.orders.serializers import OrderSerializer


class OrderViewSet(ListModelMixin, GenericViewSet):
    queryset = Order.objects.prefetch_related("items__product")
    serializer_class = OrderSerializer
    pagination_class = StandardResultsSetPagination
    filterset_class = OrderFilter
    ordering_fields = ["created_at", "total_amount", "status"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    http_method_names = ["get", "post", "patch", "delete", "head", "options"]

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/"""
        return actions.create_order(request.data).to_response()

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        return actions.get_order(pk).to_response()

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/orders/{pk}/ with ``{"status": ...}``"""
        return actions.update_order_status(pk, request.data).to_response()

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        """DELETE /api/v1/orders/{pk}/"""
        return actions.delete_order(pk).to_response()

    @action(detail=True, methods=["get", "post"], url_path="items")
    def items(self, request: Request, pk: str | None = None) -> Response:
        """GET/POST /api/v1/orders/{pk}/items/"""
        if request.method == "POST":
            return actions.add_order_item(pk, request.data).to_response()
        return actions.list_order_items(pk).to_response()


class OrderItemViewSet(GenericViewSet):
    queryset = Order.objects.none()
    http_method_names = ["get", "patch", "delete", "head", "options"]

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/order-items/{pk}/"""
        return actions.get_order_item(pk).to_response()

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/order-items/{pk}/ with quantity and/or price"""
        return actions.update_order_item(pk, request.data).to_response()

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        """DELETE /api/v1/order-items/{pk}/"""
        return actions.remove_order_item(pk).to_response()


class DashboardView(APIView):
    """GET /api/v1/dashboard/ - cached until the next order mutation."""

    def get(self, request: Request) -> Response:
        data = read_cached(DASHBOARD_CACHE_KEY)
        if data is None:
            try:
                data = reports.dashboard_snapshot()
            except Exception as exc:
                return handle_action_error(exc, "Failed to build dashboard").to_response()
            store_cached(DASHBOARD_CACHE_KEY, data)
        return success_response(data).to_response()
