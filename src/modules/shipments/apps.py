from django.apps import AppConfig


class ShipmentsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "modules.shipments"
    label = "shipments"

    def ready(self) -> None:
        from modules.shipments.events import (
            ShipmentBatchCreated,
            ShipmentBatchesMerged,
            ShipmentStatusChanged,
        )
        from modules.shipments.handlers import (
            batch_created_handler,
            batches_merged_handler,
            status_changed_handler,
        )
        from shared.infrastructure.bus import event_bus

        event_bus.subscribe(ShipmentBatchCreated, batch_created_handler)
        event_bus.subscribe(ShipmentBatchesMerged, batches_merged_handler)
        event_bus.subscribe(ShipmentStatusChanged, status_changed_handler)
