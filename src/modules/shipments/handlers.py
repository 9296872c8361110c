"""Event handlers for Shipments domain events."""

from __future__ import annotations

import structlog

from modules.shipments.events import (
    ShipmentBatchCreated,
    ShipmentBatchesMerged,
    ShipmentStatusChanged,
)
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)


class ShipmentBatchCreatedHandler(IEventHandler[ShipmentBatchCreated]):
    def handle(self, event: ShipmentBatchCreated) -> None:
        logger.info("shipment.event.batch_created", **event.as_log_context())


class ShipmentBatchesMergedHandler(IEventHandler[ShipmentBatchesMerged]):
    def handle(self, event: ShipmentBatchesMerged) -> None:
        # Merges are expected under load; frequent ones point at a hot departure day.
        logger.warning("shipment.event.batches_merged", **event.as_log_context())


class ShipmentStatusChangedHandler(IEventHandler[ShipmentStatusChanged]):
    def handle(self, event: ShipmentStatusChanged) -> None:
        logger.info("shipment.event.status_changed", **event.as_log_context())


batch_created_handler = ShipmentBatchCreatedHandler()
batches_merged_handler = ShipmentBatchesMergedHandler()
status_changed_handler = ShipmentStatusChangedHandler()
