"""Order service layer (use cases).

Every mutating use case runs as one unit of work: stock reservations,
compensations and order/item writes commit together or not at all.

Rules enforced:
- Items are reserved in product-id order so concurrent orders lock rows
  in the same sequence.
- The stored total is recomputed from the items; a client-supplied total
  is only compared and logged.
- Status changes go through ``OrderStateMachine``; cancelling releases
  stock according to the completed-cancellation policy.
- Deleting an order releases its items unless it was already cancelled.
- Items of a cancelled order are frozen.
- The order row is locked before any status or item mutation.
- Domain events are published after commit only.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.conf import settings

from modules.orders.constants import OrderStatus
from modules.orders.events import (
    OrderCancelled,
    OrderCreated,
    OrderDeleted,
    OrderItemsChanged,
    OrderStatusChanged,
)
from modules.orders.exceptions import (
    InvalidOrderStatus,
    OrderItemNotFound,
    OrderNotFound,
)
from modules.orders.state_machine import OrderStateMachine
from modules.products.exceptions import ProductNotFound

if TYPE_CHECKING:
    from modules.inventory.services import InventoryService
    from modules.orders.dtos import AddOrderItemDTO, CreateOrderDTO, UpdateOrderItemDTO
    from modules.orders.models import Order, OrderItem
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.products.repositories.interfaces import IProductRepository
    from shared.domain.bus import IEventBus
    from shared.domain.unit_of_work import Deadline, IUnitOfWork

logger = structlog.get_logger(__name__)


class OrderService:
    """Application service for Order use cases.

    Collaborators arrive through the constructor; ``build_order_service``
    wires the Django implementations.
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        product_repository: IProductRepository,
        inventory: InventoryService,
        unit_of_work: IUnitOfWork,
        event_bus: IEventBus,
        state_machine: Optional[OrderStateMachine] = None,
    ) -> None:
        self._order_repo = order_repository
        self._product_repo = product_repository
        self._inventory = inventory
        self._uow = unit_of_work
        self._event_bus = event_bus
        self._state_machine = state_machine or OrderStateMachine.from_settings()

    # ------------------------------------------------------------------
    # Order commands
    # ------------------------------------------------------------------

    def create_order(self, dto: CreateOrderDTO, deadline: Optional[Deadline] = None) -> Order:
        """Create a pending order, reserving stock for every item.

        Raises:
            ProductNotFound: an item references a missing product.
            InsufficientStock: an item asks for more than is in stock.
        """
        log = logger.bind(user_id=str(dto.user_id) if dto.user_id else None)
        log.info("order.creation_started", item_count=len(dto.items))

        def _create() -> Order:
            lines: List[Dict[str, Any]] = []
            for item in sorted(dto.items, key=lambda i: str(i.product_id)):
                self._uow.checkpoint()
                self._inventory.reserve(item.product_id, item.quantity)
                lines.append(
                    {
                        "product_id": item.product_id,
                        "quantity": item.quantity,
                        "price": self._resolve_price(item.product_id, item.price),
                    }
                )

            order = self._order_repo.create(
                {"user_id": dto.user_id, "status": OrderStatus.PENDING, "items": lines}
            )
            if dto.total is not None and dto.total != order.total_amount:
                log.warning(
                    "order.client_total_mismatch",
                    order_id=str(order.id),
                    client_total=str(dto.total),
                    total_amount=str(order.total_amount),
                )
            order.add_domain_event(
                OrderCreated(
                    aggregate_id=order.id,
                    product_ids=tuple(line["product_id"] for line in lines),
                )
            )
            self._publish_on_commit(order)
            return order

        order = self._uow.run(_create, deadline=deadline)
        log.info("order.created", order_id=str(order.id), total_amount=str(order.total_amount))
        return self._order_repo.get_by_id(str(order.id)) or order

    def update_status(
        self,
        order_id: UUID | str,
        new_status: str,
        deadline: Optional[Deadline] = None,
    ) -> Order:
        """Move an order through the state machine.

        Requesting the current status is a no-op.

        Raises:
            UnknownOrderStatus: ``new_status`` is not a known literal.
            OrderNotFound: the order does not exist.
            InvalidOrderStatus: the transition is not allowed.
        """
        target = self._state_machine.parse_status(new_status)
        log = logger.bind(order_id=str(order_id), new_status=target)

        def _update() -> Order:
            order = self._lock_order(order_id)
            plan = self._state_machine.plan(order.status, target)
            if plan.is_noop:
                log.info("order.status_unchanged")
                return order

            product_ids: tuple[UUID, ...] = ()
            if plan.releases_stock:
                product_ids = self._release_items(order)

            order.status = plan.target
            order.add_domain_event(
                OrderStatusChanged(
                    aggregate_id=order.id,
                    product_ids=product_ids,
                    old_status=plan.source,
                    new_status=plan.target,
                )
            )
            if plan.target == OrderStatus.CANCELLED:
                order.add_domain_event(
                    OrderCancelled(aggregate_id=order.id, product_ids=product_ids)
                )
            self._order_repo.save(order)
            self._publish_on_commit(order)
            log.info(
                "order.status_changed",
                old_status=plan.source,
                stock_released=plan.releases_stock,
            )
            return order

        order = self._uow.run(_update, deadline=deadline)
        return self._order_repo.get_by_id(str(order.id)) or order

    def cancel_order(self, order_id: UUID | str, deadline: Optional[Deadline] = None) -> Order:
        return self.update_status(order_id, OrderStatus.CANCELLED, deadline=deadline)

    def delete_order(self, order_id: UUID | str, deadline: Optional[Deadline] = None) -> None:
        """Delete an order and its items.

        Stock held by the items is released unless the order was already
        cancelled.

        Raises:
            OrderNotFound: the order does not exist.
        """
        log = logger.bind(order_id=str(order_id))

        def _delete() -> None:
            order = self._lock_order(order_id)
            if order.holds_stock:
                product_ids = self._release_items(order)
            else:
                product_ids = tuple(i.product_id for i in self._order_repo.list_items(str(order.id)))
            order.add_domain_event(OrderDeleted(aggregate_id=order.id, product_ids=product_ids))
            self._publish_on_commit(order)
            self._order_repo.delete(str(order.id))

        self._uow.run(_delete, deadline=deadline)
        log.info("order.deleted")

    # ------------------------------------------------------------------
    # Item commands
    # ------------------------------------------------------------------

    def add_item(
        self,
        order_id: UUID | str,
        dto: AddOrderItemDTO,
        deadline: Optional[Deadline] = None,
    ) -> OrderItem:
        """Add a line to an order, reserving its stock.

        Raises:
            OrderNotFound: the order does not exist.
            InvalidOrderStatus: the order is cancelled.
            ProductNotFound: the product does not exist.
            InsufficientStock: not enough stock for the line.
        """
        log = logger.bind(order_id=str(order_id), product_id=str(dto.product_id))

        def _add() -> OrderItem:
            order = self._lock_order(order_id)
            self._ensure_items_editable(order)
            self._inventory.reserve(dto.product_id, dto.quantity)
            price = self._resolve_price(dto.product_id, dto.price)
            item = self._order_repo.add_item(order, str(dto.product_id), dto.quantity, price)

            order.total_amount += item.subtotal
            self._items_changed(order, item, "added")
            return item

        item = self._uow.run(_add, deadline=deadline)
        log.info("order.item_added", item_id=str(item.id), quantity=item.quantity)
        return self._order_repo.get_item(str(item.id)) or item

    def update_item(
        self,
        item_id: UUID | str,
        dto: UpdateOrderItemDTO,
        deadline: Optional[Deadline] = None,
    ) -> Optional[OrderItem]:
        """Change the quantity and/or price of a line.

        Stock moves by the quantity difference only.  A quantity of zero
        removes the line, in which case ``None`` is returned.

        Raises:
            OrderItemNotFound: the item does not exist.
            InvalidOrderStatus: the order is cancelled.
            InsufficientStock: the increase exceeds available stock.
        """
        log = logger.bind(item_id=str(item_id))

        def _update() -> Optional[OrderItem]:
            order, item = self._lock_item(item_id)
            self._ensure_items_editable(order)

            new_quantity = item.quantity if dto.quantity is None else dto.quantity
            if new_quantity == 0:
                self._delete_item(order, item)
                return None

            # Stock moves opposite to the quantity.
            self._inventory.adjust(item.product_id, item.quantity - new_quantity)

            old_subtotal = item.subtotal
            item.quantity = new_quantity
            if dto.price is not None:
                item.price = dto.price
            self._order_repo.save_item(item)

            order.total_amount = order.total_amount - old_subtotal + item.subtotal
            self._items_changed(order, item, "updated")
            return item

        item = self._uow.run(_update, deadline=deadline)
        if item is None:
            log.info("order.item_removed_by_zero_quantity")
            return None
        log.info("order.item_updated", quantity=item.quantity, price=str(item.price))
        return self._order_repo.get_item(str(item.id)) or item

    def remove_item(self, item_id: UUID | str, deadline: Optional[Deadline] = None) -> None:
        """Remove a line and return its quantity to stock.

        Raises:
            OrderItemNotFound: the item does not exist.
            InvalidOrderStatus: the order is cancelled.
        """

        def _remove() -> None:
            order, item = self._lock_item(item_id)
            self._ensure_items_editable(order)
            self._delete_item(order, item)

        self._uow.run(_remove, deadline=deadline)
        logger.info("order.item_removed", item_id=str(item_id))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: UUID | str) -> Order:
        order = self._order_repo.get_by_id(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def list_orders(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        return self._order_repo.list(filters)

    def get_item(self, item_id: UUID | str) -> OrderItem:
        item = self._order_repo.get_item(str(item_id))
        if not item:
            raise OrderItemNotFound(f"Order item {item_id} not found.")
        return item

    def list_items(self, order_id: UUID | str) -> List[OrderItem]:
        order = self.get_order(order_id)
        return self._order_repo.list_items(str(order.id))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lock_order(self, order_id: UUID | str) -> Order:
        self._uow.checkpoint()
        order = self._order_repo.get_for_update(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def _lock_item(self, item_id: UUID | str) -> tuple[Order, OrderItem]:
        """Lock the owning order, then re-read the item under that lock."""
        item = self._order_repo.get_item(str(item_id))
        if not item:
            raise OrderItemNotFound(f"Order item {item_id} not found.")
        order = self._lock_order(item.order_id)
        item = self._order_repo.get_item(str(item_id))
        if not item:
            raise OrderItemNotFound(f"Order item {item_id} not found.")
        return order, item

    @staticmethod
    def _ensure_items_editable(order: Order) -> None:
        if order.is_terminal:
            raise InvalidOrderStatus(f"Cannot modify items of a {order.status} order.")

    def _resolve_price(self, product_id: UUID | str, price: Optional[Decimal]) -> Decimal:
        if price is not None:
            return price
        product = self._product_repo.get_by_id(str(product_id))
        if not product:
            raise ProductNotFound(f"Product {product_id} not found.")
        return product.price

    def _release_items(self, order: Order) -> tuple[UUID, ...]:
        items = sorted(
            self._order_repo.list_items(str(order.id)), key=lambda i: str(i.product_id)
        )
        for item in items:
            self._uow.checkpoint()
            self._inventory.release(item.product_id, item.quantity)
        return tuple(item.product_id for item in items)

    def _delete_item(self, order: Order, item: OrderItem) -> None:
        self._inventory.release(item.product_id, item.quantity)
        order.total_amount -= item.subtotal
        self._items_changed(order, item, "removed")
        self._order_repo.delete_item(item)

    def _items_changed(self, order: Order, item: OrderItem, change: str) -> None:
        order.add_domain_event(
            OrderItemsChanged(
                aggregate_id=order.id,
                product_ids=(item.product_id,),
                item_id=item.id,
                change=change,
            )
        )
        self._order_repo.save(order)
        self._publish_on_commit(order)

    def _publish_on_commit(self, order: Order) -> None:
        events = order.pull_domain_events()
        if events:
            self._uow.on_commit(lambda: self._event_bus.publish_all(events))


def build_order_service(
    state_machine: Optional[OrderStateMachine] = None,
) -> OrderService:
    """Wire ``OrderService`` with the Django implementations."""
    from modules.inventory.services import InventoryService
    from modules.orders.repositories import OrderDjangoRepository
    from modules.products.repositories import ProductDjangoRepository
    from shared.infrastructure.bus import event_bus
    from shared.infrastructure.unit_of_work import DjangoUnitOfWork

    unit_of_work = DjangoUnitOfWork(
        default_timeout=getattr(settings, "ORDERS_DEFAULT_DEADLINE_SECONDS", None)
    )
    product_repository = ProductDjangoRepository()
    return OrderService(
        order_repository=OrderDjangoRepository(),
        product_repository=product_repository,
        inventory=InventoryService(product_repository, unit_of_work),
        unit_of_work=unit_of_work,
        event_bus=event_bus,
        state_machine=state_machine,
    )
