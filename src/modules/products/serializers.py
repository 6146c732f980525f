"""Product DRF serializers (read side of the API).

Writes are validated by the Pydantic DTOs in ``dtos.py``.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.products.models import Product


class ProductSerializer(serializers.ModelSerializer):
    class Meta:
        model = Product
        fields = [
            "id",
            "name",
            "description",
            "price",
            "stock_quantity",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields
