"""Event handlers for Orders domain events.

They run after commit (see ``OrderService._publish_on_commit``) so a
rolled-back mutation never reaches them.
"""

from __future__ import annotations

import structlog

from modules.core.cache import drop_cached, keys_for_order_change
from modules.core.tasks import invalidate_cache_keys
from modules.orders.events import OrderCancelled, OrderEvent
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)


class CacheInvalidationHandler(IEventHandler[OrderEvent]):
    """Drop every cached view the event may have staled.

    Keys are deleted before the request returns.  When the cache backend
    is unreachable the deletion is handed to a worker instead.
    """

    def handle(self, event: OrderEvent) -> None:
        keys = keys_for_order_change(event.aggregate_id, event.product_ids)
        if drop_cached(keys):
            logger.debug(
                "order.cache_invalidated",
                order_id=str(event.aggregate_id),
                event_name=event.event_name,
                key_count=len(keys),
            )
            return
        invalidate_cache_keys.delay(keys)
        logger.warning(
            "order.cache_invalidation_queued",
            order_id=str(event.aggregate_id),
            event_name=event.event_name,
            key_count=len(keys),
        )


class OrderCancelledHandler(IEventHandler[OrderCancelled]):
    def handle(self, event: OrderCancelled) -> None:
        logger.info(
            "order.cancelled_event",
            order_id=str(event.aggregate_id),
            released_products=[str(p) for p in event.product_ids],
        )


cache_invalidation_handler = CacheInvalidationHandler()
order_cancelled_handler = OrderCancelledHandler()
