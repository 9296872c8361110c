"""Unit tests for public tracking look-ups."""

from __future__ import annotations

from uuid import uuid4

import pytest

from modules.core.exceptions import MalformedIdentifier, NotFound
from modules.shipments.models import Shipment
from modules.shipments.providers import build_tracking_service

pytestmark = pytest.mark.unit


@pytest.fixture()
def tracking():
    return build_tracking_service()


class TestTrackingService:
    def test_order_number_returns_order_and_its_batch(self, tracking, make_order, departure):
        order = make_order(departure_date=departure)

        result = tracking.track(order.order_number.lower())

        assert result.order.id == order.id
        assert result.shipment.id == order.shipment_id

    def test_order_id(self, tracking, make_order):
        order = make_order()

        result = tracking.track(str(order.id))

        assert result.order.id == order.id
        assert result.shipment is None

    def test_order_found_through_legacy_link(self, tracking, make_order, customer):
        order = make_order()
        shipment = Shipment.objects.create(
            batch_number="BCH-2023-009",
            tracking_code="NGE30000009",
            shipper=customer,
            receiver=customer,
            order=order,
        )

        result = tracking.track(order.order_number)

        assert result.shipment.id == shipment.id

    def test_tracking_code_returns_shipment(self, tracking, make_order, departure):
        shipment = make_order(departure_date=departure).shipment

        result = tracking.track(shipment.tracking_code)

        assert result.order is None
        assert result.shipment.id == shipment.id

    def test_batch_number(self, tracking, make_order, departure):
        shipment = make_order(departure_date=departure).shipment
        assert tracking.track("bch-2024-001").shipment.id == shipment.id

    def test_shipment_id(self, tracking, make_order, departure):
        shipment = make_order(departure_date=departure).shipment
        assert tracking.track(str(shipment.id)).shipment.id == shipment.id

    def test_unknown(self, tracking):
        with pytest.raises(NotFound):
            tracking.track("NGE000000001")
        with pytest.raises(NotFound):
            tracking.track(str(uuid4()))

    def test_malformed(self, tracking):
        with pytest.raises(MalformedIdentifier):
            tracking.track("not-a-code")
