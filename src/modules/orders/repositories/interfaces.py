"""Order repository interface.

Extends ``IRepository[Order]`` with the item-level operations of the
Order aggregate and the row lock used to serialize mutations of one
order.  Repositories never open their own transactions: the service's
unit of work owns the boundary.
"""

from __future__ import annotations

from abc import abstractmethod
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.orders.models import Order, OrderItem


class IOrderRepository(IRepository["Order"]):
    @abstractmethod
    def create(self, data: Dict[str, Any]) -> Order:
        """Create an order with its items.

        ``data`` holds ``user_id`` (optional), ``status`` and ``items``,
        a list of dicts with ``product_id``, ``quantity`` and ``price``.
        ``total_amount`` is the sum of the item subtotals.
        """

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve and row-lock an order for the rest of the transaction."""

    @abstractmethod
    def get_item(self, id: str) -> Optional[OrderItem]:
        """Retrieve a line item with its product."""

    @abstractmethod
    def list_items(self, order_id: str) -> List[OrderItem]:
        """Items of an order in creation order."""

    @abstractmethod
    def add_item(
        self, order: Order, product_id: str, quantity: int, price: Decimal
    ) -> OrderItem:
        """Persist a new line item on ``order``."""

    @abstractmethod
    def save_item(self, item: OrderItem) -> OrderItem:
        """Persist quantity/price changes of a line item."""

    @abstractmethod
    def delete_item(self, item: OrderItem) -> None:
        """Remove a line item."""
