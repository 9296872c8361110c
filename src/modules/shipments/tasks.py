"""Asynchronous jobs of the shipments module."""

import structlog
from celery import shared_task

from modules.shipments.providers import build_batch_resolver

logger = structlog.get_logger(__name__)


@shared_task(name="shipments.auto_batch_orders")
def auto_batch_orders():
    """Attach every dated, unbatched order to its departure-day shipment."""
    results = build_batch_resolver().auto_batch_unassigned_orders()
    logger.info(
        "shipments.auto_batch_completed",
        batches=len(results),
        orders=sum(count for _, count in results),
    )
    return {
        "batches": [
            {"batch_number": batch_number, "orders": count}
            for batch_number, count in results
        ]
    }
