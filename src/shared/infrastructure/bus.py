"""In-process event bus.

Handlers run synchronously in subscription order.  A handler that raises is
logged and skipped; the remaining handlers still receive the event, and the
publisher never sees the error (events are published after commit, when
there is nothing left to roll back).
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Type

import structlog
from django.db import transaction

from shared.domain.bus import IEventBus, IEventHandler
from shared.domain.events import DomainEvent

logger = structlog.get_logger(__name__)


class InMemoryEventBus(IEventBus):
    def __init__(self) -> None:
        self._handlers: Dict[Type[DomainEvent], List[IEventHandler]] = {}

    def subscribe(self, event_class: Type[DomainEvent], handler: IEventHandler) -> None:
        handlers = self._handlers.setdefault(event_class, [])
        if handler not in handlers:
            handlers.append(handler)

    def handlers_for(self, event_class: Type[DomainEvent]) -> List[IEventHandler]:
        return list(self._handlers.get(event_class, []))

    def publish(self, event: DomainEvent) -> None:
        for handler in self._handlers.get(type(event), []):
            try:
                handler.handle(event)
            except Exception as exc:  # noqa: BLE001 - one handler must not starve the others
                logger.error(
                    "event_bus.handler_failed",
                    event_name=event.event_name,
                    aggregate_id=str(event.aggregate_id),
                    handler=handler.__class__.__name__,
                    error=str(exc),
                )

    def publish_all(self, events: Iterable[DomainEvent]) -> None:
        for event in events:
            self.publish(event)

    def publish_on_commit(self, events: Iterable[DomainEvent]) -> None:
        """Defer publishing until the current transaction commits."""
        pending = list(events)
        if pending:
            transaction.on_commit(lambda: self.publish_all(pending))


event_bus = InMemoryEventBus()
