"""Dashboard read model.

Aggregates computed straight from the ORM; the view caches the result
under ``DASHBOARD_CACHE_KEY`` until the next committed order mutation.
Revenue and best sellers only count completed orders.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List

from django.conf import settings
from django.db.models import Count, Sum

from modules.orders.constants import OrderStatus
from modules.orders.models import Order, OrderItem
from modules.products.models import Product

DEFAULT_LIMIT = 3
CENTS = Decimal("0.01")


def _money(value: Any) -> str:
    """Two-decimal string; SQLite aggregates drop trailing zeros."""
    return str(Decimal(str(value if value is not None else 0)).quantize(CENTS))


def totals() -> Dict[str, Any]:
    revenue = Order.objects.filter(status=OrderStatus.COMPLETED).aggregate(
        revenue=Sum("total_amount")
    )["revenue"]
    by_status = {
        row["status"]: row["count"]
        for row in Order.objects.values("status").annotate(count=Count("id"))
    }
    return {
        "total_products": Product.objects.alive().count(),
        "total_orders": sum(by_status.values()),
        "orders_by_status": {s: by_status.get(s, 0) for s in OrderStatus.values},
        "total_revenue": _money(revenue),
    }


def top_selling_products(limit: int = DEFAULT_LIMIT) -> List[Dict[str, Any]]:
    rows = (
        OrderItem.objects.filter(order__status=OrderStatus.COMPLETED)
        .values("product_id", "product__name")
        .annotate(quantity_sold=Sum("quantity"), revenue=Sum("subtotal"))
        .order_by("-quantity_sold", "product__name")[:limit]
    )
    return [
        {
            "product_id": str(row["product_id"]),
            "name": row["product__name"],
            "quantity_sold": row["quantity_sold"],
            "revenue": _money(row["revenue"]),
        }
        for row in rows
    ]


def recent_orders(limit: int = DEFAULT_LIMIT) -> List[Dict[str, Any]]:
    orders = Order.objects.annotate(item_count=Count("items")).order_by(
        "-created_at", "-id"
    )[:limit]
    return [
        {
            "id": str(order.id),
            "status": order.status,
            "total": _money(order.total_amount),
            "item_count": order.item_count,
            "created_at": order.created_at.isoformat(),
        }
        for order in orders
    ]


def low_stock_products(
    threshold: int | None = None, limit: int = DEFAULT_LIMIT
) -> List[Dict[str, Any]]:
    if threshold is None:
        threshold = getattr(settings, "DASHBOARD_LOW_STOCK_THRESHOLD", 15)
    products = (
        Product.objects.alive()
        .filter(stock_quantity__lt=threshold)
        .order_by("stock_quantity", "name")[:limit]
    )
    return [
        {"id": str(p.id), "name": p.name, "stock_quantity": p.stock_quantity}
        for p in products
    ]


def dashboard_snapshot() -> Dict[str, Any]:
    return {
        **totals(),
        "top_selling_products": top_selling_products(),
        "recent_orders": recent_orders(),
        "low_stock_products": low_stock_products(),
    }
