"""Async tasks for the core module."""

import structlog
from celery import shared_task
from django.core.cache import cache

logger = structlog.get_logger(__name__)


@shared_task(name="core.invalidate_cache_keys")
def invalidate_cache_keys(keys: list[str]) -> int:
    """Drop cached read models after a committed mutation."""
    cache.delete_many(keys)
    logger.info("cache.invalidated", key_count=len(keys), keys=keys)
    return len(keys)
