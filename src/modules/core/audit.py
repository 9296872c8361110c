"""Audit sink for status transitions.

The status engine hands every transition to an ``IAuditSink``.  Recording is
best-effort: a failing sink is logged and never aborts the transition that
produced the entry.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Optional, Protocol

import structlog

logger = structlog.get_logger(__name__)
audit_logger = structlog.get_logger("audit")


@dataclass(frozen=True)
class StatusAuditEntry:
    entity_type: str
    entity_id: str
    old_status: Optional[str]
    new_status: str
    actor_id: Optional[str]
    actor_role: Optional[str]
    source: str = "direct"
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class IAuditSink(Protocol):
    def record(self, entry: StatusAuditEntry) -> None: ...


class StructlogAuditSink:
    """Writes one ``status.audit`` line per transition to the ``audit`` logger."""

    def record(self, entry: StatusAuditEntry) -> None:
        payload = asdict(entry)
        payload["timestamp"] = entry.timestamp.isoformat()
        audit_logger.info("status.audit", **payload)


def record_safely(sink: IAuditSink, entry: StatusAuditEntry) -> bool:
    """Forward *entry* to *sink*; return ``False`` instead of raising on failure."""
    try:
        sink.record(entry)
    except Exception as exc:  # noqa: BLE001 - audit failures are non-fatal
        logger.warning(
            "audit.record_failed",
            entity_type=entry.entity_type,
            entity_id=entry.entity_id,
            error=str(exc),
        )
        return False
    return True


default_audit_sink = StructlogAuditSink()
