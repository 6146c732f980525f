"""Inventory adjustment service.

The only component allowed to change a product's stock counter.  Both
operations are single conditional UPDATE statements issued inside the
caller's unit of work, so a failure here aborts the whole order mutation
and the adjustment only becomes visible when that unit commits.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from modules.core.exceptions import InsufficientStock, ValidationFailed
from modules.products.exceptions import ProductNotFound

if TYPE_CHECKING:
    from modules.products.repositories.interfaces import IProductRepository
    from shared.domain.unit_of_work import IUnitOfWork

logger = structlog.get_logger(__name__)


class InventoryService:
    def __init__(
        self, product_repository: IProductRepository, unit_of_work: IUnitOfWork
    ) -> None:
        self._products = product_repository
        self._uow = unit_of_work

    def reserve(self, product_id: UUID | str, quantity: int) -> None:
        """Take ``quantity`` units out of stock.

        Raises:
            ValidationFailed: ``quantity`` is not positive.
            ProductNotFound: the product does not exist.
            InsufficientStock: fewer than ``quantity`` units are available.
        """
        self._check_quantity(quantity)
        self._uow.ensure_active()

        if self._products.decrement_stock(str(product_id), quantity):
            logger.info(
                "inventory.reserved", product_id=str(product_id), quantity=quantity
            )
            return

        available = self._products.get_stock(str(product_id))
        if available is None:
            raise ProductNotFound(f"Product {product_id} not found.")
        logger.warning(
            "inventory.insufficient_stock",
            product_id=str(product_id),
            requested=quantity,
            available=available,
        )
        raise InsufficientStock(product_id, requested=quantity, available=available)

    def release(self, product_id: UUID | str, quantity: int) -> None:
        """Return ``quantity`` previously reserved units to stock.

        Callers pass quantities read from persisted order items, so no
        upper bound is enforced.

        Raises:
            ValidationFailed: ``quantity`` is not positive.
            ProductNotFound: the product does not exist.
        """
        self._check_quantity(quantity)
        self._uow.ensure_active()

        if not self._products.increment_stock(str(product_id), quantity):
            raise ProductNotFound(f"Product {product_id} not found.")
        logger.info("inventory.released", product_id=str(product_id), quantity=quantity)

    def adjust(self, product_id: UUID | str, delta: int) -> None:
        """Apply a signed delta: negative reserves, positive releases."""
        if delta < 0:
            self.reserve(product_id, -delta)
        elif delta > 0:
            self.release(product_id, delta)

    @staticmethod
    def _check_quantity(quantity: int) -> None:
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationFailed(
                "Quantity must be at least 1",
                details=[{"loc": ["quantity"], "msg": "Quantity must be at least 1"}],
            )
