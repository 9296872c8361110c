from __future__ import annotations

import random
from datetime import datetime, time, timedelta, timezone as dt_timezone
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.utils import timezone

from modules.accounts.actors import SYSTEM_ACTOR
from modules.accounts.constants import Role
from modules.accounts.services import RoleService
from modules.customers.models import Branch, Customer
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO
from modules.orders.models import Order
from modules.shipments.providers import build_order_service


class Command(BaseCommand):
    help = "Seed database with realistic development data."

    def handle(self, *args, **options):
        random.seed(42)
        self.stdout.write("Seeding development data...")

        users_created = self._seed_users()
        branches = self._seed_branches()
        customers = self._seed_customers()
        orders_created = self._seed_orders(customers, branches)

        self.stdout.write(
            self.style.SUCCESS(
                "Seed completed: "
                f"users={users_created}, "
                f"branches={len(branches)}, "
                f"customers={len(customers)}, "
                f"orders={orders_created}"
            )
        )

    def _seed_users(self) -> int:
        User = get_user_model()
        roles = RoleService()
        created = 0
        accounts = [
            ("superadmin", "superadmin123", Role.SUPER_ADMIN),
            ("admin", "admin123", Role.ADMIN),
            ("hub", "hub123", Role.HUB_RECEIVER),
            ("driver", "driver123", Role.DRIVER),
        ]
        for username, password, role in accounts:
            user = User.objects.filter(username=username).first()
            if user is None:
                user = User.objects.create_user(
                    username, password=password, is_staff=role != Role.DRIVER
                )
                created += 1
            roles.assign_role(user, role)
        return created

    def _seed_branches(self) -> list[Branch]:
        self.stdout.write("Creating branches...")
        branches: list[Branch] = []
        seed_branches = [
            ("DXB-01", "Dubai Main Hub", "Dubai", "United Arab Emirates"),
            ("SHJ-01", "Sharjah Drop-off", "Sharjah", "United Arab Emirates"),
            ("LOS-01", "Lagos Pickup Centre", "Lagos", "Nigeria"),
        ]
        for code, name, city, country in seed_branches:
            branch, _ = Branch.objects.get_or_create(
                code=code,
                defaults={"name": name, "city": city, "country": country},
            )
            branches.append(branch)
        self.stdout.write(self.style.SUCCESS("Creating branches... Done!"))
        return branches

    def _seed_customers(self) -> list[Customer]:
        self.stdout.write("Creating customers...")
        customers: list[Customer] = []
        seed_customers = [
            ("Amaka", "Obi", "+2348030000001", "Lagos", "Nigeria"),
            ("Tunde", "Bakare", "+2348030000002", "Abuja", "Nigeria"),
            ("Layla", "Hassan", "+971500000003", "Dubai", "United Arab Emirates"),
            ("Omar", "Farouk", "+971500000004", "Sharjah", "United Arab Emirates"),
            ("Chioma", "Eze", "+2348030000005", "Enugu", "Nigeria"),
            ("Yusuf", "Ali", "+971500000006", "Dubai", "United Arab Emirates"),
        ]
        for first_name, last_name, phone, city, country in seed_customers:
            customer, _ = Customer.objects.get_or_create(
                phone=phone,
                defaults={
                    "first_name": first_name,
                    "last_name": last_name,
                    "email": f"{first_name.lower()}.{last_name.lower()}@example.com",
                    "city": city,
                    "country": country,
                },
            )
            customers.append(customer)
        self.stdout.write(self.style.SUCCESS("Creating customers... Done!"))
        return customers

    def _seed_orders(self, customers: list[Customer], branches: list[Branch]) -> int:
        self.stdout.write("Creating orders...")
        if not customers:
            self.stdout.write(self.style.WARNING("Skipping orders (no customers)."))
            return 0
        if Order.objects.filter(notes__startswith="Seed order").exists():
            self.stdout.write(self.style.WARNING("Skipping orders (already seeded)."))
            return 0

        service = build_order_service()
        today = timezone.now().date()
        departure_days = [
            datetime.combine(today + timedelta(days=offset), time.min, tzinfo=dt_timezone.utc)
            for offset in (1, 3, 7)
        ]
        catalog = [
            ("Clothing", Decimal("45.00")),
            ("Electronics", Decimal("320.00")),
            ("Documents", Decimal("15.00")),
            ("Foodstuff", Decimal("60.00")),
            ("Cosmetics", Decimal("80.00")),
        ]

        orders_created = 0
        for i in range(20):
            items = [
                CreateOrderItemDTO(
                    description=description,
                    quantity=random.randint(1, 4),
                    unit_price=price,
                )
                for description, price in random.sample(catalog, k=random.randint(1, 3))
            ]
            # One order in four has no departure date yet and stays unbatched.
            departure = random.choice(departure_days) if i % 4 else None
            dto = CreateOrderDTO(
                customer_id=random.choice(customers).id,
                branch_id=random.choice(branches).id if branches else None,
                items=items,
                departure_date=departure,
                notes=f"Seed order {i + 1}",
            )
            service.create_order(dto, SYSTEM_ACTOR)
            orders_created += 1

        self.stdout.write(self.style.SUCCESS("Creating orders... Done!"))
        return orders_created
