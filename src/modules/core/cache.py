"""Cached read models and their invalidation keys.

Order, product and dashboard reads are cached (Redis in production).
Every committed mutation publishes domain events; the handlers in
``modules.orders.handlers`` drop the keys built here.

The cache is an accelerator only: ``read_cached``, ``store_cached`` and
``drop_cached`` log backend failures and carry on as a miss, so an
unreachable Redis never fails a read or a committed write.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional
from uuid import UUID

import structlog
from django.core.cache import cache

logger = structlog.get_logger(__name__)

DASHBOARD_CACHE_KEY = "dashboard:stats"
READ_MODEL_TIMEOUT = 300


def canonical_id(value: UUID | str | None) -> Optional[str]:
    """Lower-case hyphenated form of an id, ``None`` when it is not a UUID.

    Keys must be built from this form: invalidation always uses the ids
    carried by domain events.
    """
    if value is None:
        return None
    try:
        return str(value if isinstance(value, UUID) else UUID(str(value)))
    except ValueError:
        return None


def order_cache_key(order_id: UUID | str) -> str:
    return f"orders:detail:{canonical_id(order_id) or order_id}"


def product_cache_key(product_id: UUID | str) -> str:
    return f"products:detail:{canonical_id(product_id) or product_id}"


def keys_for_order_change(
    order_id: UUID | str, product_ids: Iterable[UUID | str] = ()
) -> list[str]:
    """Every cached view that can show data touched by an order mutation."""
    keys = [order_cache_key(order_id), DASHBOARD_CACHE_KEY]
    keys.extend(product_cache_key(pid) for pid in sorted({str(p) for p in product_ids}))
    return keys


# Backend clients raise their own errors (redis.ConnectionError, ...).


def read_cached(key: str) -> Any:
    try:
        return cache.get(key)
    except Exception:
        logger.warning("cache.read_failed", key=key, exc_info=True)
        return None


def store_cached(key: str, value: Any, timeout: int = READ_MODEL_TIMEOUT) -> None:
    try:
        cache.set(key, value, timeout)
    except Exception:
        logger.warning("cache.write_failed", key=key, exc_info=True)


def drop_cached(keys: list[str]) -> bool:
    """Delete ``keys``; ``False`` when the backend could not be reached."""
    try:
        cache.delete_many(keys)
    except Exception:
        logger.warning("cache.invalidation_failed", keys=keys, exc_info=True)
        return False
    return True
