"""Product model: catalog identity, price and stock counter.

Rules:
- ``name`` is unique among live (not soft-deleted) products.
- ``price`` is non-negative.
- ``stock_quantity`` is never negative (DB check constraint backs the
  conditional update used by the inventory service).
- Stock is only changed through ``modules.inventory.services``.
- Soft delete via ``deleted_at``; refused while order items reference it.
"""

from __future__ import annotations

from decimal import Decimal

import structlog
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import SoftDeleteModel

logger = structlog.get_logger(__name__)


class Product(SoftDeleteModel):
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True, default="")
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    stock_quantity = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "products"
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(
                fields=["name"],
                condition=models.Q(deleted_at__isnull=True),
                name="products_name_unique_alive",
            ),
            models.CheckConstraint(
                condition=models.Q(price__gte=0),
                name="products_price_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(stock_quantity__gte=0),
                name="products_stock_non_negative",
            ),
        ]

    def clean(self) -> None:
        super().clean()
        if self.name:
            self.name = self.name.strip()
        if self.price is not None and self.price < 0:
            raise ValidationError({"price": "Price must be positive."})

    def save(self, *args, **kwargs) -> None:
        is_new = self._state.adding
        if self.name:
            self.name = self.name.strip()
        super().save(*args, **kwargs)
        if is_new:
            logger.info("product_created", product_id=str(self.id), name=self.name)

    def __str__(self) -> str:
        return f"{self.name} ({self.stock_quantity} in stock)"
