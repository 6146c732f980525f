"""Order status state machine.

``OrderStateMachine.plan`` turns (current status, requested status) into a
``TransitionPlan`` telling the service whether to release stock.  Asking
for the status an order already has yields a no-op plan, which is what
makes a repeated cancellation harmless.

The completed -> cancelled edge is governed by
``CompletedCancellationPolicy``:

* ``restore_stock`` - allowed, items go back to stock (default);
* ``keep_stock`` - allowed, stock stays consumed;
* ``forbid`` - rejected like any other illegal transition.
"""

from __future__ import annotations

from dataclasses import dataclass

from django.conf import settings

from modules.orders.constants import (
    VALID_TRANSITIONS,
    CompletedCancellationPolicy,
    OrderStatus,
)
from modules.orders.exceptions import InvalidOrderStatus, UnknownOrderStatus


@dataclass(frozen=True)
class TransitionPlan:
    source: OrderStatus
    target: OrderStatus
    releases_stock: bool

    @property
    def is_noop(self) -> bool:
        return self.source == self.target


class OrderStateMachine:
    def __init__(
        self,
        completed_cancellation: CompletedCancellationPolicy = (
            CompletedCancellationPolicy.RESTORE_STOCK
        ),
    ) -> None:
        self.completed_cancellation = CompletedCancellationPolicy(completed_cancellation)

    @classmethod
    def from_settings(cls) -> OrderStateMachine:
        return cls(
            getattr(
                settings,
                "ORDERS_COMPLETED_CANCELLATION_POLICY",
                CompletedCancellationPolicy.RESTORE_STOCK,
            )
        )

    @staticmethod
    def parse_status(value: object) -> OrderStatus:
        """Map a literal onto the closed enumeration.

        Raises:
            UnknownOrderStatus: ``value`` is not a known status.
        """
        if isinstance(value, str) and value in OrderStatus.values:
            return OrderStatus(value)
        raise UnknownOrderStatus(
            details=[
                {
                    "loc": ["status"],
                    "msg": f"Expected one of {', '.join(OrderStatus.values)}",
                    "input": value if isinstance(value, str) else repr(value),
                }
            ]
        )

    def allowed_targets(self, current: str) -> frozenset[OrderStatus]:
        targets = VALID_TRANSITIONS[self.parse_status(current)]
        if (
            current == OrderStatus.COMPLETED
            and self.completed_cancellation is CompletedCancellationPolicy.FORBID
        ):
            targets = targets - {OrderStatus.CANCELLED}
        return frozenset(OrderStatus(t) for t in targets)

    def can_transition(self, current: str, requested: str) -> bool:
        return requested in self.allowed_targets(current)

    def plan(self, current: str, requested: object) -> TransitionPlan:
        """Validate a status change and describe its compensation.

        Raises:
            UnknownOrderStatus: ``requested`` is not a known status.
            InvalidOrderStatus: the transition is not in the table.
        """
        source = self.parse_status(current)
        target = self.parse_status(requested)

        if source == target:
            return TransitionPlan(source, target, releases_stock=False)

        if target not in self.allowed_targets(source):
            raise InvalidOrderStatus(f"Cannot transition from {source} to {target}.")

        releases_stock = target == OrderStatus.CANCELLED and (
            source == OrderStatus.PENDING
            or self.completed_cancellation is CompletedCancellationPolicy.RESTORE_STOCK
        )
        return TransitionPlan(source, target, releases_stock=releases_stock)
