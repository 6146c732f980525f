from __future__ import annotations

import random
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand

from modules.core.exceptions import DomainError
from modules.orders.constants import OrderStatus
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO
from modules.orders.services import build_order_service
from modules.products.models import Product


class Command(BaseCommand):
    help = "Seed database with development data (orders go through OrderService)."

    def add_arguments(self, parser) -> None:
        parser.add_argument("--orders", type=int, default=20)
        parser.add_argument("--seed", type=int, default=42)

    def handle(self, *args, **options):
        random.seed(options["seed"])
        self.stdout.write("Seeding development data...")

        users_created = self._seed_users()
        products = self._seed_products()
        orders_created = self._seed_orders(products, options["orders"])

        self.stdout.write(
            self.style.SUCCESS(
                "Seed completed: "
                f"users={users_created}, "
                f"products={len(products)}, "
                f"orders={orders_created}"
            )
        )

    def _seed_users(self) -> int:
        User = get_user_model()
        created = 0
        if not User.objects.filter(username="admin").exists():
            User.objects.create_superuser("admin", password="admin123")
            created += 1
        if not User.objects.filter(username="user").exists():
            User.objects.create_user("user", password="user123")
            created += 1
        return created

    def _seed_products(self) -> list[Product]:
        self.stdout.write("Creating products...")
        catalog = [
            ("Monitor 27\"", "Electronics", Decimal("1299.90")),
            ("Mechanical Keyboard", "Electronics", Decimal("399.90")),
            ("Gaming Mouse", "Electronics", Decimal("249.90")),
            ("Notebook 14\"", "Electronics", Decimal("3999.00")),
            ("Headset", "Electronics", Decimal("299.90")),
            ("Office Desk", "Furniture", Decimal("899.00")),
            ("Ergonomic Chair", "Furniture", Decimal("1499.00")),
            ("Bookshelf", "Furniture", Decimal("699.00")),
            ("A4 Paper", "Office", Decimal("29.90")),
            ("Blue Pen", "Office", Decimal("4.90")),
            ("Notebook", "Office", Decimal("19.90")),
            ("Stapler", "Office", Decimal("39.90")),
        ]
        products: list[Product] = []
        for name, category, price in catalog:
            product = Product.objects.alive().filter(name=name).first()
            if product is None:
                product = Product.objects.create(
                    name=name,
                    description=category,
                    price=price,
                    stock_quantity=random.randint(10, 200),
                )
            products.append(product)
        self.stdout.write(self.style.SUCCESS("Creating products... Done!"))
        return products

    def _seed_orders(self, products: list[Product], count: int) -> int:
        self.stdout.write("Creating orders...")
        if not products:
            self.stdout.write(self.style.WARNING("Skipping orders (no products)."))
            return 0

        service = build_order_service()
        final_statuses = [OrderStatus.PENDING, OrderStatus.COMPLETED, OrderStatus.CANCELLED]
        weights = [0.3, 0.5, 0.2]

        created = 0
        for _ in range(count):
            lines = random.sample(products, k=random.randint(1, min(4, len(products))))
            dto = CreateOrderDTO(
                items=[
                    CreateOrderItemDTO(product_id=p.id, quantity=random.randint(1, 3))
                    for p in lines
                ]
            )
            try:
                order = service.create_order(dto)
                final = random.choices(final_statuses, weights=weights, k=1)[0]
                if final != OrderStatus.PENDING:
                    service.update_status(order.id, final)
            except DomainError as exc:
                self.stdout.write(self.style.WARNING(f"Skipped order: {exc.message}"))
                continue
            created += 1

        self.stdout.write(self.style.SUCCESS("Creating orders... Done!"))
        return created
