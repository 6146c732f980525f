"""Product service layer (catalog use cases).

Only the operations that carry a cross-entity rule live here: unique
names on creation and the "referenced by order items" guard on deletion.
Stock changes belong to ``modules.inventory``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

import structlog
from django.db import IntegrityError

from modules.products.exceptions import (
    ProductAlreadyExists,
    ProductInUse,
    ProductNotFound,
)
from modules.products.models import Product

if TYPE_CHECKING:
    from modules.products.dtos import CreateProductDTO
    from modules.products.repositories.interfaces import IProductRepository
    from shared.domain.unit_of_work import IUnitOfWork

logger = structlog.get_logger(__name__)


class ProductService:
    def __init__(self, repository: IProductRepository, unit_of_work: IUnitOfWork) -> None:
        self._repo = repository
        self._uow = unit_of_work

    def create_product(self, dto: CreateProductDTO) -> Product:
        """Create a product.

        Raises:
            ProductAlreadyExists: the name is taken.
        """
        log = logger.bind(name=dto.name)

        def _create() -> Product:
            if self._repo.get_by_name(dto.name):
                log.warning("product.duplicate_name")
                raise ProductAlreadyExists()
            product = Product(
                name=dto.name,
                price=dto.price,
                description=dto.description,
                stock_quantity=dto.stock_quantity,
            )
            try:
                return self._repo.save(product)
            except IntegrityError as exc:
                # Lost a race against a concurrent create of the same name.
                log.warning("product.duplicate_name", concurrent=True)
                raise ProductAlreadyExists() from exc

        product = self._uow.run(_create)
        log.info("product.created", product_id=str(product.id))
        return product

    def get_product(self, id: str) -> Product:
        product = self._repo.get_by_id(id)
        if not product:
            raise ProductNotFound(f"Product {id} not found.")
        return product

    def list_products(self, filters: Optional[Dict[str, Any]] = None) -> List[Product]:
        return self._repo.list(filters)

    def delete_product(self, id: str) -> None:
        """Soft-delete a product no order item references.

        Raises:
            ProductNotFound: the product does not exist.
            ProductInUse: at least one order item references it.
        """

        def _delete() -> None:
            # Locked so no order item can reference it between check and delete.
            if not self._repo.get_for_update(id):
                raise ProductNotFound(f"Product {id} not found.")
            if self._repo.is_referenced(id):
                logger.warning("product.delete_refused", product_id=str(id))
                raise ProductInUse()
            self._repo.delete(id)

        self._uow.run(_delete)
        logger.info("product.deleted", product_id=str(id))
