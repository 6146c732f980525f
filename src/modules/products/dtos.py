"""Product DTOs for the Service Layer (Pydantic v2, immutable).

- ``CreateProductDTO``: input for product creation.
- ``ProductOutputDTO``: output with all product fields.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

if TYPE_CHECKING:
    from modules.products.models import Product


class CreateProductDTO(BaseModel):
    """Immutable DTO for product creation requests."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(max_length=100)
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    description: str = Field(default="", max_length=500)
    stock_quantity: int = Field(default=0, ge=0)

    @field_validator("name")
    @classmethod
    def name_must_not_be_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Name is required")
        return v.strip()


class ProductOutputDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    name: str
    description: str
    price: Decimal
    stock_quantity: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, product: Product) -> ProductOutputDTO:
        return cls(
            id=product.id,
            name=product.name,
            description=product.description,
            price=product.price,
            stock_quantity=product.stock_quantity,
            created_at=product.created_at,
            updated_at=product.updated_at,
        )
