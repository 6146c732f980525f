"""Order and OrderItem models.

Rules:
- ``total_amount`` always equals the sum of the item subtotals; the
  service layer keeps it current on every item mutation.
- OrderItem snapshots the unit ``price`` when the line is created.
- OrderItem ``subtotal`` is always ``quantity * price`` (calculated on save).
- ``quantity`` is at least 1 (DB check constraint).
- ``user_id`` is an opaque caller identifier; ``None`` means a guest order.
- Orders and items are hard-deleted; deletion compensates stock first.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import BaseModel
from modules.orders.constants import RESERVING_STATES, TERMINAL_STATES, OrderStatus
from shared.domain.events import DomainEventMixin


class Order(DomainEventMixin, BaseModel):
    """Order aggregate root."""

    user_id = models.UUIDField(null=True, blank=True, db_index=True)
    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )
    total_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
    )

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(total_amount__gte=0),
                name="orders_total_non_negative",
            ),
        ]

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    @property
    def holds_stock(self) -> bool:
        """Whether the items of this order currently hold reserved stock."""
        return self.status in RESERVING_STATES

    def items_total(self) -> Decimal:
        """Sum of the stored line subtotals, to the cent."""
        total = self.items.aggregate(total=models.Sum("subtotal"))["total"]
        return Decimal(str(total if total is not None else 0)).quantize(Decimal("0.01"))

    def __str__(self) -> str:
        return f"Order {self.id} ({self.status})"


class OrderItem(BaseModel):
    """Line item linking an Order to a Product.

    ``price`` defaults to the product price when not supplied and is kept
    as a snapshot afterwards.
    """

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="items",
    )
    product = models.ForeignKey(
        "products.Product",
        on_delete=models.PROTECT,
        related_name="order_items",
    )
    quantity = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
    )
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    subtotal = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        editable=False,
    )

    class Meta:
        db_table = "order_items"
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=1),
                name="order_items_quantity_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(price__gte=0),
                name="order_items_price_non_negative",
            ),
        ]

    def clean(self) -> None:
        super().clean()
        if self.quantity is not None and self.quantity < 1:
            raise ValidationError({"quantity": "Quantity must be at least 1."})

    def calculate_subtotal(self) -> Decimal:
        return (self.price * self.quantity).quantize(Decimal("0.01"))

    def save(self, *args: Any, **kwargs: Any) -> None:
        if self.price is None:
            price = getattr(self.product, "price", None)
            if price is None:
                raise ValidationError({"price": "Product price is required."})
            self.price = price
        self.subtotal = self.calculate_subtotal()
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and "subtotal" not in update_fields:
            kwargs["update_fields"] = [*update_fields, "subtotal"]
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.product_id} x{self.quantity} (${self.subtotal})"
