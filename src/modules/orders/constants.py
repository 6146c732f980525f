"""Order domain constants.

Status choices and the transition table of the order state machine.
"""

from enum import StrEnum

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"


class CompletedCancellationPolicy(StrEnum):
    """What cancelling an already completed order does to stock."""

    RESTORE_STOCK = "restore_stock"
    KEEP_STOCK = "keep_stock"
    FORBID = "forbid"


VALID_TRANSITIONS: dict[str, frozenset[str]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset({OrderStatus.CANCELLED}),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATES: frozenset[str] = frozenset({OrderStatus.CANCELLED})

# Statuses whose items hold reserved stock.
RESERVING_STATES: frozenset[str] = frozenset(
    {OrderStatus.PENDING, OrderStatus.COMPLETED}
)
