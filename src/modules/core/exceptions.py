"""Domain error taxonomy shared by every module.

Services raise these; the operation boundary (``modules.orders.actions``
and the API views) converts them into the response envelope.  Module
specific exceptions subclass one of the families below so the boundary
only has to know the families.
"""

from __future__ import annotations

from typing import Any, Optional


class DomainError(Exception):
    """Base class for every business-rule failure.

    ``details`` carries structured, caller-safe information (field errors,
    the product that ran out of stock, ...).
    """

    default_message = "Operation failed."

    def __init__(self, message: Optional[str] = None, details: Any = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class ValidationFailed(DomainError):
    """Malformed or out-of-range input."""

    default_message = "Validation error"


class NotFound(DomainError):
    """A referenced order, item or product does not exist."""

    default_message = "Record not found"


class InsufficientStock(DomainError):
    """The requested quantity exceeds the available stock."""

    default_message = "Not enough stock available"

    def __init__(
        self,
        product_id: Any,
        requested: int,
        available: int,
        message: Optional[str] = None,
    ) -> None:
        self.product_id = product_id
        self.requested = requested
        self.available = available
        self.shortfall = max(requested - available, 0)
        super().__init__(
            message
            or f"Product {product_id}: requested {requested}, available {available}.",
            details={
                "product_id": str(product_id),
                "requested": requested,
                "available": available,
                "shortfall": self.shortfall,
            },
        )


class InvalidTransition(DomainError):
    """A status change not permitted by the order state machine."""

    default_message = "Invalid status transition"


class Conflict(DomainError):
    """The request collides with existing state (duplicates, references)."""

    default_message = "Conflict"


class StorageError(DomainError):
    """Underlying persistence failure.  Never exposes driver details."""

    default_message = "Storage failure. Please retry the operation."


class DeadlineExceeded(DomainError):
    """The caller's deadline expired before the unit of work committed."""

    default_message = "Operation deadline exceeded."
