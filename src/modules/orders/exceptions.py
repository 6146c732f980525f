"""Order domain exceptions.

Raised by the service layer; ``modules.orders.actions`` translates them
into the response envelope.
"""

from __future__ import annotations

from modules.core.exceptions import InvalidTransition, NotFound, ValidationFailed


class OrderNotFound(NotFound):
    default_message = "Order not found"


class OrderItemNotFound(NotFound):
    default_message = "Order item not found"


class InvalidOrderStatus(InvalidTransition):
    """The state machine does not allow the requested change."""


class UnknownOrderStatus(ValidationFailed):
    """The status literal is not one of pending/completed/cancelled."""

    default_message = "Invalid status"
