from datetime import datetime, timezone
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from modules.accounts.actors import SYSTEM_ACTOR, actor_from_user
from modules.accounts.constants import Role
from modules.accounts.services import RoleService
from modules.customers.models import Branch, Customer
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO
from modules.shipments.providers import (
    build_batch_resolver,
    build_identifier_generator,
    build_order_service,
    build_shipment_service,
)

User = get_user_model()

DEPARTURE = datetime(2024, 5, 10, 9, 30, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


# ---------------------------------------------------------------------------
# Users and roles
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_user():
    """Factory: a Django user holding *role* with that role's default permissions."""
    counter = {"n": 0}

    def _make(role=Role.ADMIN, username=None):
        counter["n"] += 1
        user = User.objects.create_user(
            username=username or f"{str(role).lower().replace(' ', '_')}_{counter['n']}",
            password="testpass123",
        )
        if role is not None:
            RoleService().assign_role(user, role)
            user.refresh_from_db()
        return user

    return _make


@pytest.fixture()
def admin_user(make_user):
    return make_user(Role.ADMIN)


@pytest.fixture()
def driver_user(make_user):
    return make_user(Role.DRIVER)


@pytest.fixture()
def admin_actor(admin_user):
    return actor_from_user(admin_user)


@pytest.fixture()
def driver_actor(driver_user):
    return actor_from_user(driver_user)


@pytest.fixture()
def client_for():
    """Factory: an APIClient force-authenticated as *user*."""

    def _client(user):
        client = APIClient()
        client.force_authenticate(user=user)
        return client

    return _client


@pytest.fixture()
def admin_client(client_for, admin_user):
    return client_for(admin_user)


@pytest.fixture()
def driver_client(client_for, driver_user):
    return client_for(driver_user)


# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------


@pytest.fixture()
def customer():
    return Customer.objects.create(
        first_name="Amaka",
        last_name="Obi",
        phone="+2348030000001",
        email="amaka@example.com",
        city="Lagos",
        country="Nigeria",
    )


@pytest.fixture()
def other_customer():
    return Customer.objects.create(
        first_name="Layla",
        last_name="Hassan",
        phone="+971500000003",
        email="layla@example.com",
    )


@pytest.fixture()
def branch():
    return Branch.objects.create(name="Dubai Main Hub", code="DXB-01", city="Dubai")


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@pytest.fixture()
def identifier_generator():
    return build_identifier_generator()


@pytest.fixture()
def batch_resolver():
    return build_batch_resolver()


@pytest.fixture()
def order_service():
    return build_order_service()


@pytest.fixture()
def shipment_service():
    return build_shipment_service()


@pytest.fixture()
def departure():
    return DEPARTURE


@pytest.fixture()
def make_order(order_service, customer):
    """Factory: create an order through ``OrderService`` as the system actor."""

    def _make(departure_date=None, customer_id=None, total_amount=None, **kwargs):
        dto = CreateOrderDTO(
            customer_id=customer_id or customer.id,
            items=[
                CreateOrderItemDTO(
                    description="Clothing", quantity=2, unit_price=Decimal("25.00")
                )
            ],
            total_amount=total_amount,
            departure_date=departure_date,
            **kwargs,
        )
        return order_service.create_order(dto, SYSTEM_ACTOR)

    return _make
