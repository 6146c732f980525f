"""Product API views.

Exposes ``ProductService`` over HTTP.  Every response uses the
``{success, data, error, details}`` envelope; domain exceptions are
translated by ``handle_action_error``.
"""

from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import status
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.mixins import ListModelMixin
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from modules.core.cache import (
    DASHBOARD_CACHE_KEY,
    canonical_id,
    drop_cached,
    product_cache_key,
    read_cached,
    store_cached,
)
from modules.core.pagination import StandardResultsSetPagination
from modules.core.responses import handle_action_error, success_response
from modules.products.dtos import CreateProductDTO, ProductOutputDTO
from modules.products.exceptions import ProductNotFound
from modules.products.filters import ProductFilter
from modules.products.models import Product
from modules.products.repositories.django_repository import ProductDjangoRepository
from modules.products.serializers import ProductSerializer
from modules.products.services import ProductService
from shared.infrastructure.unit_of_work import DjangoUnitOfWork


class ProductViewSet(ListModelMixin, GenericViewSet):
    """List, create, retrieve and delete catalog products.

    Does **not** extend ``ModelViewSet``: writes go through the service.
    """

    filterset_class = ProductFilter
    search_fields = ["name", "description"]
    ordering_fields = ["name", "price", "stock_quantity", "created_at"]
    ordering = ["name"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    pagination_class = StandardResultsSetPagination
    queryset = Product.objects.alive()
    serializer_class = ProductSerializer

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = ProductService(
            repository=ProductDjangoRepository(), unit_of_work=DjangoUnitOfWork()
        )

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/products/{pk}/"""
        try:
            product_id = canonical_id(pk)
            if product_id is None:
                raise ProductNotFound(f"Product {pk} not found.")
            key = product_cache_key(product_id)
            data = read_cached(key)
            if data is None:
                product = self._service.get_product(product_id)
                data = ProductOutputDTO.from_entity(product).model_dump(mode="json")
                store_cached(key, data)
        except Exception as exc:
            return handle_action_error(exc, "Failed to fetch product").to_response()
        return success_response(data).to_response()

    def create(self, request: Request) -> Response:
        """POST /api/v1/products/"""
        payload = request.data
        try:
            dto = CreateProductDTO.model_validate(payload)
            product = self._service.create_product(dto)
        except Exception as exc:
            return handle_action_error(exc, "Failed to create product").to_response()
        drop_cached([DASHBOARD_CACHE_KEY])
        return success_response(
            ProductOutputDTO.from_entity(product).model_dump(mode="json"),
            status_code=status.HTTP_201_CREATED,
        ).to_response()

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        """DELETE /api/v1/products/{pk}/

        Refused with 409 while any order item references the product.
        """
        try:
            self._service.delete_product(pk)
        except Exception as exc:
            return handle_action_error(exc, "Failed to delete product").to_response()
        drop_cached([product_cache_key(pk), DASHBOARD_CACHE_KEY])
        return success_response({"message": "Product deleted successfully"}).to_response()
