"""Public order operations.

Each function takes plain data (a mapping or identifiers), validates it
into a DTO, calls ``OrderService`` and always returns an
``ActionResponse``: nothing raises past this module.  The REST views and
any other caller (management commands, tasks) share this boundary.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping, Optional
from uuid import UUID

import structlog
from rest_framework import status

from modules.core.cache import canonical_id, order_cache_key, read_cached, store_cached
from modules.core.responses import ActionResponse, handle_action_error, success_response
from modules.orders.dtos import (
    AddOrderItemDTO,
    CreateOrderDTO,
    OrderItemOutputDTO,
    OrderOutputDTO,
    UpdateOrderItemDTO,
    UpdateOrderStatusDTO,
)
from modules.orders.exceptions import OrderNotFound
from modules.orders.services import build_order_service

if TYPE_CHECKING:
    from modules.orders.services import OrderService
    from shared.domain.unit_of_work import Deadline

logger = structlog.get_logger(__name__)


def _order_data(order: Any) -> dict:
    return OrderOutputDTO.from_entity(order).model_dump(mode="json")


def _item_data(item: Any) -> dict:
    return OrderItemOutputDTO.from_entity(item).model_dump(mode="json")


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


def create_order(
    payload: Mapping[str, Any],
    *,
    service: Optional[OrderService] = None,
    deadline: Optional[Deadline] = None,
) -> ActionResponse:
    try:
        dto = CreateOrderDTO.model_validate(payload)
        order = (service or build_order_service()).create_order(dto, deadline=deadline)
        return success_response(_order_data(order), status_code=status.HTTP_201_CREATED)
    except Exception as exc:
        return handle_action_error(exc, "Failed to create order")


def update_order_status(
    order_id: UUID | str,
    payload: Mapping[str, Any],
    *,
    service: Optional[OrderService] = None,
    deadline: Optional[Deadline] = None,
) -> ActionResponse:
    try:
        dto = UpdateOrderStatusDTO.model_validate(payload)
        order = (service or build_order_service()).update_status(
            order_id, dto.status, deadline=deadline
        )
        return success_response(_order_data(order))
    except Exception as exc:
        return handle_action_error(exc, "Failed to update order status")


def delete_order(
    order_id: UUID | str,
    *,
    service: Optional[OrderService] = None,
    deadline: Optional[Deadline] = None,
) -> ActionResponse:
    try:
        (service or build_order_service()).delete_order(order_id, deadline=deadline)
        return success_response({"message": "Order deleted successfully"})
    except Exception as exc:
        return handle_action_error(exc, "Failed to delete order")


def get_order(
    order_id: UUID | str,
    *,
    service: Optional[OrderService] = None,
) -> ActionResponse:
    """Read an order; the rendered payload is cached until the next mutation."""
    try:
        canonical = canonical_id(order_id)
        if canonical is None:
            raise OrderNotFound(f"Order {order_id} not found.")
        key = order_cache_key(canonical)
        data = read_cached(key)
        if data is None:
            data = _order_data((service or build_order_service()).get_order(canonical))
            store_cached(key, data)
        return success_response(data)
    except Exception as exc:
        return handle_action_error(exc, "Failed to fetch order")


def list_orders(
    filters: Optional[Mapping[str, Any]] = None,
    *,
    service: Optional[OrderService] = None,
) -> ActionResponse:
    try:
        orders = (service or build_order_service()).list_orders(dict(filters or {}))
        return success_response([_order_data(order) for order in orders])
    except Exception as exc:
        return handle_action_error(exc, "Failed to fetch orders")


# ---------------------------------------------------------------------------
# Order items
# ---------------------------------------------------------------------------


def add_order_item(
    order_id: UUID | str,
    payload: Mapping[str, Any],
    *,
    service: Optional[OrderService] = None,
    deadline: Optional[Deadline] = None,
) -> ActionResponse:
    try:
        dto = AddOrderItemDTO.model_validate(payload)
        item = (service or build_order_service()).add_item(order_id, dto, deadline=deadline)
        return success_response(_item_data(item), status_code=status.HTTP_201_CREATED)
    except Exception as exc:
        return handle_action_error(exc, "Failed to add order item")


def update_order_item(
    item_id: UUID | str,
    payload: Mapping[str, Any],
    *,
    service: Optional[OrderService] = None,
    deadline: Optional[Deadline] = None,
) -> ActionResponse:
    try:
        dto = UpdateOrderItemDTO.model_validate(payload)
        item = (service or build_order_service()).update_item(item_id, dto, deadline=deadline)
        if item is None:
            return success_response({"message": "Order item removed"})
        return success_response(_item_data(item))
    except Exception as exc:
        return handle_action_error(exc, "Failed to update order item")


def remove_order_item(
    item_id: UUID | str,
    *,
    service: Optional[OrderService] = None,
    deadline: Optional[Deadline] = None,
) -> ActionResponse:
    try:
        (service or build_order_service()).remove_item(item_id, deadline=deadline)
        return success_response({"message": "Order item removed"})
    except Exception as exc:
        return handle_action_error(exc, "Failed to remove order item")


def get_order_item(
    item_id: UUID | str,
    *,
    service: Optional[OrderService] = None,
) -> ActionResponse:
    try:
        item = (service or build_order_service()).get_item(item_id)
        return success_response(_item_data(item))
    except Exception as exc:
        return handle_action_error(exc, "Failed to fetch order item")


def list_order_items(
    order_id: UUID | str,
    *,
    service: Optional[OrderService] = None,
) -> ActionResponse:
    try:
        items = (service or build_order_service()).list_items(order_id)
        return success_response([_item_data(item) for item in items])
    except Exception as exc:
        return handle_action_error(exc, "Failed to fetch order items")
