"""Domain events for the Orders bounded context.

Every event names the products whose stock it may have touched so the
post-commit handlers can invalidate the matching cached views.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class OrderEvent(DomainEvent):
    product_ids: tuple[UUID, ...] = field(default=())


@dataclass(frozen=True)
class OrderCreated(OrderEvent):
    """Raised when an order is created with its reservations."""


@dataclass(frozen=True)
class OrderStatusChanged(OrderEvent):
    old_status: str = ""
    new_status: str = ""


@dataclass(frozen=True)
class OrderCancelled(OrderEvent):
    """Raised when an order enters ``cancelled``."""


@dataclass(frozen=True)
class OrderDeleted(OrderEvent):
    """Raised when an order and its items are removed."""


@dataclass(frozen=True)
class OrderItemsChanged(OrderEvent):
    """Raised when a line item is added, updated or removed."""

    item_id: UUID | None = None
    change: str = ""


ORDER_EVENTS: tuple[type[OrderEvent], ...] = (
    OrderCreated,
    OrderStatusChanged,
    OrderCancelled,
    OrderDeleted,
    OrderItemsChanged,
)
