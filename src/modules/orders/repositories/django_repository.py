"""Django ORM implementation of the Order repository.

Writes run inside the caller's unit of work; this module never opens a
transaction of its own.  ``get_for_update`` takes a row lock on the
order so concurrent mutations of the same order queue up behind it.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Optional

import structlog
from django.core.exceptions import ValidationError

from modules.orders.constants import OrderStatus
from modules.orders.models import Order, OrderItem
from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)


class OrderDjangoRepository(IOrderRepository):
    # ------------------------------------------------------------------
    # Create (aggregate root + children)
    # ------------------------------------------------------------------

    def create(self, data: Dict[str, Any]) -> Order:
        order = Order(
            user_id=data.get("user_id"),
            status=data.get("status", OrderStatus.PENDING),
        )
        order.save()

        total = Decimal("0.00")
        items = data.get("items", [])
        for item_data in items:
            item = OrderItem(
                order=order,
                product_id=item_data["product_id"],
                quantity=item_data["quantity"],
                price=item_data["price"],
            )
            item.save()
            total += item.subtotal

        order.total_amount = total
        order.save(update_fields=["total_amount"])

        logger.bind(order_id=str(order.id), item_count=len(items)).info(
            "order.persisted"
        )
        return order

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, id: str) -> Optional[Order]:
        """Order with eager-loaded items and products; ``None`` if absent."""
        try:
            return (
                Order.objects.prefetch_related("items__product").filter(id=id).first()
            )
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        queryset = Order.objects.prefetch_related("items__product")
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def get_for_update(self, id: str) -> Optional[Order]:
        try:
            return Order.objects.select_for_update().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    # ------------------------------------------------------------------
    # Save / Delete
    # ------------------------------------------------------------------

    def save(self, entity: Order) -> Order:
        entity.save()
        logger.info(
            "order.saved",
            order_id=str(entity.id),
            status=entity.status,
            total_amount=str(entity.total_amount),
        )
        return entity

    def delete(self, id: str) -> bool:
        """Hard-delete an order; items go with it (CASCADE)."""
        try:
            deleted, _ = Order.objects.filter(id=id).delete()
        except (ValueError, ValidationError):
            return False
        if deleted:
            logger.info("order.hard_deleted", order_id=str(id))
        return bool(deleted)

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def get_item(self, id: str) -> Optional[OrderItem]:
        try:
            return OrderItem.objects.select_related("product").filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list_items(self, order_id: str) -> List[OrderItem]:
        try:
            return list(
                OrderItem.objects.select_related("product").filter(order_id=order_id)
            )
        except (ValueError, ValidationError):
            return []

    def add_item(
        self, order: Order, product_id: str, quantity: int, price: Decimal
    ) -> OrderItem:
        item = OrderItem(order=order, product_id=product_id, quantity=quantity, price=price)
        item.save()
        logger.info(
            "order.item_persisted",
            order_id=str(order.id),
            item_id=str(item.id),
            product_id=str(product_id),
        )
        return item

    def save_item(self, item: OrderItem) -> OrderItem:
        item.save(update_fields=["quantity", "price"])
        return item

    def delete_item(self, item: OrderItem) -> None:
        item_id = item.id
        item.delete()
        logger.info("order.item_deleted", item_id=str(item_id))
