"""Product domain exceptions."""

from __future__ import annotations

from modules.core.exceptions import Conflict, NotFound


class ProductNotFound(NotFound):
    """The product does not exist or has been soft-deleted."""

    default_message = "Product not found"


class ProductAlreadyExists(Conflict):
    """Another product already uses this name."""

    default_message = "Product with this name already exists"


class ProductInUse(Conflict):
    """The product is referenced by order items and cannot be deleted."""

    default_message = "Cannot delete product as it is referenced in orders"
