"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.  Input DTOs
accept both ``snake_case`` and ``camelCase`` keys (``product_id`` or
``productId``); output DTOs dump ``snake_case``.

- ``CreateOrderItemDTO`` / ``CreateOrderDTO``: order creation.
- ``AddOrderItemDTO``: new line on an existing order.
- ``UpdateOrderItemDTO``: quantity and/or price change of a line.
- ``UpdateOrderStatusDTO``: requested status literal.
- ``OrderItemOutputDTO`` / ``OrderOutputDTO``: responses.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from modules.orders.models import Order, OrderItem


_INPUT_CONFIG = ConfigDict(
    frozen=True,
    alias_generator=to_camel,
    populate_by_name=True,
    extra="ignore",
)


# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class CreateOrderItemDTO(BaseModel):
    """A single line of an order creation request.

    ``price`` is optional; the product's catalog price is used when absent.
    """

    model_config = _INPUT_CONFIG

    product_id: UUID
    quantity: int = Field(strict=True, ge=1)
    price: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)


class CreateOrderDTO(BaseModel):
    """Order creation request.

    ``total`` is informational: the stored total is always recomputed
    from the items.
    """

    model_config = _INPUT_CONFIG

    user_id: Optional[UUID] = None
    status: Literal["pending"] = "pending"
    total: Optional[Decimal] = Field(default=None, ge=0)
    items: List[CreateOrderItemDTO] = Field(min_length=1)


class AddOrderItemDTO(BaseModel):
    model_config = _INPUT_CONFIG

    product_id: UUID
    quantity: int = Field(strict=True, ge=1)
    price: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)


class UpdateOrderItemDTO(BaseModel):
    """Partial update of a line.  ``quantity=0`` removes the line."""

    model_config = _INPUT_CONFIG

    quantity: Optional[int] = Field(default=None, strict=True, ge=0)
    price: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)

    @model_validator(mode="after")
    def at_least_one_field(self) -> UpdateOrderItemDTO:
        if self.quantity is None and self.price is None:
            raise ValueError("Provide quantity and/or price.")
        return self


class UpdateOrderStatusDTO(BaseModel):
    model_config = _INPUT_CONFIG

    status: str


# ---------------------------------------------------------------------------
# Output DTOs
# ---------------------------------------------------------------------------


class OrderItemOutputDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    order_id: UUID
    product_id: UUID
    product_name: str
    quantity: int
    price: Decimal
    subtotal: Decimal
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, item: OrderItem) -> OrderItemOutputDTO:
        return cls(
            id=item.id,
            order_id=item.order_id,
            product_id=item.product_id,
            product_name=item.product.name,
            quantity=item.quantity,
            price=item.price,
            subtotal=item.subtotal,
            created_at=item.created_at,
            updated_at=item.updated_at,
        )


class OrderOutputDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    user_id: Optional[UUID]
    status: str
    total: Decimal
    created_at: datetime
    updated_at: datetime
    items: List[OrderItemOutputDTO]

    @classmethod
    def from_entity(cls, order: Order) -> OrderOutputDTO:
        """Build from an Order; ``items__product`` should be prefetched."""
        return cls(
            id=order.id,
            user_id=order.user_id,
            status=order.status,
            total=order.total_amount,
            created_at=order.created_at,
            updated_at=order.updated_at,
            items=[OrderItemOutputDTO.from_entity(item) for item in order.items.all()],
        )
