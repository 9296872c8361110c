"""Shipment domain exceptions."""

from __future__ import annotations

from modules.core.exceptions import NotFound


class ShipmentNotFound(NotFound):
    """The requested shipment does not exist."""
