"""Domain event primitives.

Aggregates collect events while a use case runs; the repository that saves
the aggregate drains them and hands them to the bus once the surrounding
transaction commits, so handlers never observe rolled-back state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4


@dataclass(frozen=True)
class DomainEvent:
    """Base event: which aggregate, when, and a unique event id."""

    aggregate_id: UUID
    event_id: UUID = field(default_factory=uuid4, kw_only=True)
    occurred_on: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc), kw_only=True
    )

    @property
    def event_name(self) -> str:
        return self.__class__.__name__

    def as_log_context(self) -> dict[str, Any]:
        """Flat, string-valued fields suitable for ``logger.bind``."""
        context = {
            key: str(value)
            for key, value in self.__dict__.items()
            if value is not None
        }
        context["event_name"] = self.event_name
        return context


class DomainEventMixin:
    """Mixin for aggregate roots that buffer domain events in memory."""

    _domain_events: list[DomainEvent]

    def add_domain_event(self, event: DomainEvent) -> None:
        if not hasattr(self, "_domain_events"):
            self._domain_events = []
        self._domain_events.append(event)

    def pull_domain_events(self) -> list[DomainEvent]:
        """Return the buffered events and empty the buffer."""
        events = list(getattr(self, "_domain_events", []))
        self._domain_events = []
        return events

    @property
    def domain_events(self) -> list[DomainEvent]:
        return list(getattr(self, "_domain_events", []))
