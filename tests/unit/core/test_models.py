"""Unit tests for the abstract base models (exercised through Product)."""

from __future__ import annotations

import uuid
from decimal import Decimal

import pytest

from modules.products.models import Product

pytestmark = pytest.mark.unit


class TestBaseModel:
    def test_id_is_uuid7(self, make_product):
        product = make_product()
        assert isinstance(product.id, uuid.UUID)
        assert product.id.version == 7

    def test_update_fields_always_refresh_updated_at(self, make_product):
        product = make_product()
        before = product.updated_at
        product.price = Decimal("12.00")
        product.save(update_fields=["price"])
        product.refresh_from_db()
        assert product.updated_at >= before
        assert product.price == Decimal("12.00")


class TestSoftDelete:
    def test_delete_sets_tombstone(self, make_product):
        product = make_product()
        product.delete()
        product.refresh_from_db()
        assert product.is_deleted
        assert not Product.objects.alive().filter(id=product.id).exists()
        assert Product.objects.filter(id=product.id, deleted_at__isnull=False).exists()

    def test_delete_twice_is_noop(self, make_product):
        product = make_product()
        assert product.delete() == (1, {"products.Product": 1})
        assert product.delete() == (0, {})

    def test_queryset_delete_is_soft(self, make_product):
        make_product(name="A")
        make_product(name="B")
        count, _ = Product.objects.all().delete()
        assert count == 2
        assert Product.objects.count() == 2
        assert Product.objects.alive().count() == 0

    def test_name_can_be_reused_after_soft_delete(self, make_product):
        make_product(name="Reusable").delete()
        again = make_product(name="Reusable")
        assert Product.objects.alive().get(name="Reusable") == again
