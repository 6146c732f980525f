"""Django ORM implementation of the Product repository.

Look-ups follow the Null Object convention: ``None``/``False`` instead of
exceptions, the service layer decides what a missing product means.

Stock updates are conditional ``UPDATE ... WHERE stock_quantity >= n``
statements using ``F()`` expressions, so two concurrent reservations can
never both observe the same last unit.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db.models import F
from django.utils import timezone

from modules.products.models import Product
from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


class ProductDjangoRepository(IProductRepository):
    def get_by_id(self, id: str) -> Optional[Product]:
        try:
            return Product.objects.alive().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_for_update(self, id: str) -> Optional[Product]:
        try:
            return Product.objects.alive().select_for_update().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Product]:
        queryset = Product.objects.alive()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def save(self, entity: Product) -> Product:
        entity.save()
        logger.info("product.saved", product_id=str(entity.id))
        return entity

    def delete(self, id: str) -> bool:
        product = self.get_by_id(id)
        if not product:
            return False
        product.delete()
        logger.info("product.soft_deleted", product_id=str(id))
        return True

    def get_by_name(self, name: str) -> Optional[Product]:
        return Product.objects.alive().filter(name=name.strip()).first()

    def is_referenced(self, id: str) -> bool:
        from modules.orders.models import OrderItem

        return OrderItem.objects.filter(product_id=id).exists()

    def get_stock(self, id: str) -> Optional[int]:
        try:
            return (
                Product.objects.alive()
                .filter(id=id)
                .values_list("stock_quantity", flat=True)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def decrement_stock(self, id: str, quantity: int) -> bool:
        try:
            updated = (
                Product.objects.alive()
                .filter(id=id, stock_quantity__gte=quantity)
                .update(
                    stock_quantity=F("stock_quantity") - quantity,
                    updated_at=timezone.now(),
                )
            )
        except (ValueError, ValidationError):
            return False
        return updated == 1

    def increment_stock(self, id: str, quantity: int) -> bool:
        # Tombstoned rows included: persisted items must always be releasable.
        try:
            updated = Product.objects.filter(id=id).update(
                stock_quantity=F("stock_quantity") + quantity,
                updated_at=timezone.now(),
            )
        except (ValueError, ValidationError):
            return False
        return updated == 1
