"""Tests for ``OrderService`` against the Django repositories.

Covers:
- Creation with stock reservation, price defaulting and total recompute.
- All-or-nothing creation when any item fails.
- Status transitions with compensation and idempotent cancellation.
- Completed-order cancellation policies.
- Deletion compensation (once only).
- Item add / update / remove and the order total invariant.
- Deadlines and post-commit event publication.
"""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from django.db.models import Sum
from freezegun import freeze_time

from modules.core.exceptions import DeadlineExceeded, InsufficientStock
from modules.orders.constants import CompletedCancellationPolicy, OrderStatus
from modules.orders.dtos import AddOrderItemDTO, CreateOrderDTO, UpdateOrderItemDTO
from modules.orders.events import (
    OrderCancelled,
    OrderCreated,
    OrderItemsChanged,
    OrderStatusChanged,
)
from modules.orders.exceptions import (
    InvalidOrderStatus,
    OrderItemNotFound,
    OrderNotFound,
    UnknownOrderStatus,
)
from modules.orders.models import Order, OrderItem
from modules.orders.services import build_order_service
from modules.orders.state_machine import OrderStateMachine
from modules.products.exceptions import ProductNotFound
from modules.products.models import Product
from shared.domain.unit_of_work import Deadline

pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _create(service, *lines, **extra):
    items = []
    for product, quantity, *price in lines:
        item = {"product_id": product.id, "quantity": quantity}
        if price:
            item["price"] = price[0]
        items.append(item)
    return service.create_order(CreateOrderDTO.model_validate({"items": items, **extra}))


def _stock(product) -> int:
    product.refresh_from_db()
    return product.stock_quantity


def _assert_total_matches_items(order):
    order.refresh_from_db()
    expected = sum(
        (item.price * item.quantity for item in OrderItem.objects.filter(order=order)),
        Decimal("0.00"),
    )
    assert order.total_amount == expected


@pytest.fixture()
def product(make_product):
    return make_product(name="P", price="5.00", stock=10)


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


class TestCreateOrder:
    def test_reserves_stock_and_computes_total(self, order_service, product):
        order = _create(order_service, (product, 3))

        assert order.status == OrderStatus.PENDING
        assert order.total_amount == Decimal("15.00")
        assert _stock(product) == 7
        assert [item.quantity for item in order.items.all()] == [3]

    def test_item_price_defaults_to_product_price(self, order_service, product):
        order = _create(order_service, (product, 2))
        assert order.items.get().price == Decimal("5.00")

    def test_explicit_price_is_snapshotted(self, order_service, product):
        order = _create(order_service, (product, 2, "4.50"))
        product.price = Decimal("99.00")
        product.save()

        item = order.items.get()
        item.refresh_from_db()
        assert item.price == Decimal("4.50")
        assert order.total_amount == Decimal("9.00")

    def test_client_total_is_ignored(self, order_service, product):
        order = _create(order_service, (product, 1), total="999.00")
        assert order.total_amount == Decimal("5.00")

    def test_owner_is_optional(self, order_service, product):
        user_id = uuid4()
        assert _create(order_service, (product, 1)).user_id is None
        assert _create(order_service, (product, 1), user_id=str(user_id)).user_id == user_id

    def test_insufficient_stock_persists_nothing(self, order_service, make_product):
        scarce = make_product(name="Scarce", stock=2)

        with pytest.raises(InsufficientStock):
            _create(order_service, (scarce, 3))

        assert _stock(scarce) == 2
        assert Order.objects.count() == 0

    def test_missing_product_rolls_back_earlier_reservations(self, order_service, product):
        ghost = Product(id=uuid4(), name="Ghost", price=Decimal("1.00"))

        with pytest.raises(ProductNotFound):
            _create(order_service, (product, 3), (ghost, 1))

        assert _stock(product) == 10
        assert Order.objects.count() == 0
        assert OrderItem.objects.count() == 0

    def test_multiple_lines(self, order_service, product, make_product):
        other = make_product(name="Q", price="2.50", stock=4)
        order = _create(order_service, (product, 2), (other, 4))

        assert order.total_amount == Decimal("20.00")
        assert _stock(product) == 8
        assert _stock(other) == 0
        _assert_total_matches_items(order)


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------


class TestUpdateStatus:
    def test_cancel_releases_stock_once(self, order_service, product):
        order = _create(order_service, (product, 3))

        cancelled = order_service.update_status(order.id, "cancelled")
        assert cancelled.status == OrderStatus.CANCELLED
        assert _stock(product) == 10

        again = order_service.update_status(order.id, "cancelled")
        assert again.status == OrderStatus.CANCELLED
        assert _stock(product) == 10

    def test_complete_keeps_reservation(self, order_service, product):
        order = _create(order_service, (product, 3))
        order_service.update_status(order.id, "completed")
        assert _stock(product) == 7

    def test_cancel_completed_restores_by_default(self, order_service, product):
        order = _create(order_service, (product, 3))
        order_service.update_status(order.id, "completed")
        order_service.update_status(order.id, "cancelled")
        assert _stock(product) == 10

    def test_cancel_completed_with_keep_stock_policy(self, product):
        service = build_order_service(
            OrderStateMachine(CompletedCancellationPolicy.KEEP_STOCK)
        )
        order = _create(service, (product, 3))
        service.update_status(order.id, "completed")
        service.update_status(order.id, "cancelled")

        order.refresh_from_db()
        assert order.status == OrderStatus.CANCELLED
        assert _stock(product) == 7

    def test_cancel_completed_with_forbid_policy(self, product):
        service = build_order_service(OrderStateMachine(CompletedCancellationPolicy.FORBID))
        order = _create(service, (product, 3))
        service.update_status(order.id, "completed")

        with pytest.raises(InvalidOrderStatus):
            service.update_status(order.id, "cancelled")
        order.refresh_from_db()
        assert order.status == OrderStatus.COMPLETED

    @pytest.mark.parametrize("target", ["pending", "completed"])
    def test_no_way_out_of_cancelled(self, order_service, product, target):
        order = _create(order_service, (product, 1))
        order_service.update_status(order.id, "cancelled")

        with pytest.raises(InvalidOrderStatus):
            order_service.update_status(order.id, target)
        assert _stock(product) == 10

    def test_unknown_status(self, order_service, product):
        order = _create(order_service, (product, 1))
        with pytest.raises(UnknownOrderStatus):
            order_service.update_status(order.id, "shipped")

    def test_missing_order(self, order_service):
        with pytest.raises(OrderNotFound):
            order_service.update_status(uuid4(), "completed")

    def test_cancel_order_shortcut(self, order_service, product):
        order = _create(order_service, (product, 4))
        assert order_service.cancel_order(order.id).status == OrderStatus.CANCELLED
        assert _stock(product) == 10


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------


class TestDeleteOrder:
    def test_releases_stock_and_removes_rows(self, order_service, product):
        order = _create(order_service, (product, 3))

        order_service.delete_order(order.id)

        assert _stock(product) == 10
        assert not Order.objects.filter(id=order.id).exists()
        assert not OrderItem.objects.filter(order_id=order.id).exists()

    def test_completed_order_releases_stock(self, order_service, product):
        order = _create(order_service, (product, 3))
        order_service.update_status(order.id, "completed")
        order_service.delete_order(order.id)
        assert _stock(product) == 10

    def test_cancelled_order_does_not_release_twice(self, order_service, product):
        order = _create(order_service, (product, 3))
        order_service.update_status(order.id, "cancelled")

        order_service.delete_order(order.id)

        assert _stock(product) == 10
        assert not Order.objects.filter(id=order.id).exists()

    def test_missing_order(self, order_service):
        with pytest.raises(OrderNotFound):
            order_service.delete_order(uuid4())


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------


class TestItems:
    def test_update_quantity_up_reserves_delta(self, order_service, product):
        order = _create(order_service, (product, 2))
        item = order.items.get()

        updated = order_service.update_item(item.id, UpdateOrderItemDTO(quantity=5))

        assert updated.quantity == 5
        assert _stock(product) == 5
        order.refresh_from_db()
        assert order.total_amount == Decimal("25.00")

    def test_update_quantity_down_releases_delta(self, order_service, product):
        order = _create(order_service, (product, 5))
        item = order.items.get()

        order_service.update_item(item.id, UpdateOrderItemDTO(quantity=1))

        assert _stock(product) == 9
        _assert_total_matches_items(order)

    def test_update_price_only(self, order_service, product):
        order = _create(order_service, (product, 2))
        item = order.items.get()

        updated = order_service.update_item(item.id, UpdateOrderItemDTO(price="7.25"))

        assert updated.subtotal == Decimal("14.50")
        assert _stock(product) == 8
        order.refresh_from_db()
        assert order.total_amount == Decimal("14.50")

    def test_update_beyond_stock_changes_nothing(self, order_service, product):
        order = _create(order_service, (product, 2))
        item = order.items.get()

        with pytest.raises(InsufficientStock):
            order_service.update_item(item.id, UpdateOrderItemDTO(quantity=20, price="1.00"))

        item.refresh_from_db()
        assert (item.quantity, item.price) == (2, Decimal("5.00"))
        assert _stock(product) == 8
        _assert_total_matches_items(order)

    def test_update_to_zero_removes_item(self, order_service, product):
        order = _create(order_service, (product, 2))
        item = order.items.get()

        assert order_service.update_item(item.id, UpdateOrderItemDTO(quantity=0)) is None

        assert not OrderItem.objects.filter(id=item.id).exists()
        assert _stock(product) == 10
        order.refresh_from_db()
        assert order.total_amount == Decimal("0.00")

    def test_remove_item(self, order_service, product, make_product):
        other = make_product(name="Q", price="10.00", stock=5)
        order = _create(order_service, (product, 4), (other, 1))
        assert order.total_amount == Decimal("30.00")
        item = order.items.get(product=other)

        order_service.remove_item(item.id)

        order.refresh_from_db()
        assert order.total_amount == Decimal("20.00")
        assert _stock(other) == 5

    def test_add_then_remove_round_trips(self, order_service, product, make_product):
        other = make_product(name="Q", price="3.10", stock=6)
        order = _create(order_service, (product, 1))
        total_before = order.total_amount

        item = order_service.add_item(
            order.id, AddOrderItemDTO(product_id=other.id, quantity=4)
        )
        assert item.subtotal == Decimal("12.40")
        assert _stock(other) == 2

        order_service.remove_item(item.id)

        order.refresh_from_db()
        assert order.total_amount == total_before
        assert _stock(other) == 6

    def test_add_item_insufficient_stock(self, order_service, product, make_product):
        other = make_product(name="Q", stock=1)
        order = _create(order_service, (product, 1))

        with pytest.raises(InsufficientStock):
            order_service.add_item(order.id, AddOrderItemDTO(product_id=other.id, quantity=2))

        assert order.items.count() == 1
        _assert_total_matches_items(order)

    def test_items_of_cancelled_order_are_frozen(self, order_service, product):
        order = _create(order_service, (product, 2))
        item = order.items.get()
        order_service.update_status(order.id, "cancelled")

        with pytest.raises(InvalidOrderStatus):
            order_service.add_item(order.id, AddOrderItemDTO(product_id=product.id, quantity=1))
        with pytest.raises(InvalidOrderStatus):
            order_service.update_item(item.id, UpdateOrderItemDTO(quantity=1))
        with pytest.raises(InvalidOrderStatus):
            order_service.remove_item(item.id)
        assert _stock(product) == 10

    def test_missing_item(self, order_service):
        with pytest.raises(OrderItemNotFound):
            order_service.remove_item(uuid4())
        with pytest.raises(OrderItemNotFound):
            order_service.update_item(uuid4(), UpdateOrderItemDTO(quantity=1))

    def test_add_item_to_missing_order(self, order_service, product):
        with pytest.raises(OrderNotFound):
            order_service.add_item(uuid4(), AddOrderItemDTO(product_id=product.id, quantity=1))
        assert _stock(product) == 10

    def test_list_items(self, order_service, product, make_product):
        other = make_product(name="Q")
        order = _create(order_service, (product, 1), (other, 2))
        assert sorted(i.quantity for i in order_service.list_items(order.id)) == [1, 2]


# ---------------------------------------------------------------------------
# Invariants across a sequence of mutations
# ---------------------------------------------------------------------------


class TestInvariants:
    def test_stock_and_totals_stay_consistent(self, order_service, make_product):
        a = make_product(name="A", price="1.10", stock=20)
        b = make_product(name="B", price="2.35", stock=20)

        first = _create(order_service, (a, 3), (b, 2))
        second = _create(order_service, (b, 5))
        order_service.add_item(first.id, AddOrderItemDTO(product_id=a.id, quantity=2, price="0.99"))
        line = second.items.get()
        order_service.update_item(line.id, UpdateOrderItemDTO(quantity=1, price="3.00"))
        order_service.update_status(second.id, "completed")
        order_service.update_status(first.id, "cancelled")

        for order in (first, second):
            _assert_total_matches_items(order)
            assert order.total_amount == order.items_total()
        reserved_a = OrderItem.objects.filter(
            product=a, order__status__in=[OrderStatus.PENDING, OrderStatus.COMPLETED]
        ).aggregate(q=Sum("quantity"))["q"] or 0
        reserved_b = OrderItem.objects.filter(
            product=b, order__status__in=[OrderStatus.PENDING, OrderStatus.COMPLETED]
        ).aggregate(q=Sum("quantity"))["q"] or 0
        assert _stock(a) == 20 - reserved_a
        assert _stock(b) == 20 - reserved_b


# ---------------------------------------------------------------------------
# Deadline and events
# ---------------------------------------------------------------------------


class TestDeadline:
    def test_expiry_mid_creation_rolls_back(self, order_service, product, make_product, monkeypatch):
        other = make_product(name="Q", stock=10)
        inventory = order_service._inventory
        original_reserve = inventory.reserve

        with freeze_time("2026-01-01 12:00:00") as frozen:
            deadline = Deadline.after(1)

            def slow_reserve(product_id, quantity):
                original_reserve(product_id, quantity)
                frozen.tick(5)

            monkeypatch.setattr(inventory, "reserve", slow_reserve)

            with pytest.raises(DeadlineExceeded):
                order_service.create_order(
                    CreateOrderDTO.model_validate(
                        {
                            "items": [
                                {"product_id": product.id, "quantity": 1},
                                {"product_id": other.id, "quantity": 1},
                            ]
                        }
                    ),
                    deadline=deadline,
                )

        assert _stock(product) == 10
        assert _stock(other) == 10
        assert Order.objects.count() == 0


class TestEvents:
    @pytest.fixture()
    def bus(self):
        return MagicMock()

    @pytest.fixture()
    def service(self, bus):
        service = build_order_service()
        service._event_bus = bus
        return service

    def _published(self, bus):
        return [event for call in bus.publish_all.call_args_list for event in call.args[0]]

    def test_events_published_after_commit(self, service, bus, product, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            order = _create(service, (product, 2))
        with django_capture_on_commit_callbacks(execute=True):
            service.update_status(order.id, "cancelled")

        events = self._published(bus)
        assert [type(e) for e in events] == [OrderCreated, OrderStatusChanged, OrderCancelled]
        assert events[0].product_ids == (product.id,)
        assert events[1].old_status == "pending"
        assert events[1].new_status == "cancelled"

    def test_no_events_when_rolled_back(self, service, bus, make_product, django_capture_on_commit_callbacks):
        scarce = make_product(name="Scarce", stock=0)
        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            with pytest.raises(InsufficientStock):
                _create(service, (scarce, 1))
        assert callbacks == []
        bus.publish_all.assert_not_called()

    def test_noop_transition_publishes_nothing(self, service, bus, product, django_capture_on_commit_callbacks):
        order = _create(service, (product, 1))
        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            service.update_status(order.id, "pending")
        assert callbacks == []

    def test_item_change_event(self, service, bus, product, django_capture_on_commit_callbacks):
        order = _create(service, (product, 1))
        with django_capture_on_commit_callbacks(execute=True):
            item = service.add_item(order.id, AddOrderItemDTO(product_id=product.id, quantity=1))

        event = self._published(bus)[-1]
        assert isinstance(event, OrderItemsChanged)
        assert event.change == "added"
        assert event.item_id == item.id
