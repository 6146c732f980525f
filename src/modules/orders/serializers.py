"""Order DRF serializers (read side of the list endpoint).

Writes are validated by the Pydantic DTOs in ``dtos.py``.  Field names
match ``OrderOutputDTO`` so list and detail payloads look the same.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.orders.models import Order, OrderItem


class OrderItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="product.name", read_only=True)

    class Meta:
        model = OrderItem
        fields = [
            "id",
            "order_id",
            "product_id",
            "product_name",
            "quantity",
            "price",
            "subtotal",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    total = serializers.DecimalField(
        source="total_amount", max_digits=12, decimal_places=2, read_only=True
    )
    items = OrderItemSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "user_id",
            "status",
            "total",
            "created_at",
            "updated_at",
            "items",
        ]
        read_only_fields = fields
