"""Product repository interface.

Besides the catalog look-ups, this is the only contract through which
stock counters change: ``decrement_stock`` / ``increment_stock`` are
single atomic UPDATE statements, never read-modify-write.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.products.models import Product


class IProductRepository(IRepository["Product"]):
    @abstractmethod
    def get_by_name(self, name: str) -> Optional[Product]:
        """Retrieve a live product by its unique name."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Product]:
        """Live product with its row locked until the unit of work ends."""

    @abstractmethod
    def is_referenced(self, id: str) -> bool:
        """``True`` when any order item points at the product."""

    @abstractmethod
    def get_stock(self, id: str) -> Optional[int]:
        """Current stock of a live product, ``None`` if it does not exist."""

    @abstractmethod
    def decrement_stock(self, id: str, quantity: int) -> bool:
        """Atomically subtract ``quantity`` if at least that much is in stock.

        Returns ``False`` when no row was updated (missing product or not
        enough stock); the caller tells the two apart.
        """

    @abstractmethod
    def increment_stock(self, id: str, quantity: int) -> bool:
        """Atomically add ``quantity``, soft-deleted products included.

        ``False`` only when the row does not exist at all.
        """
