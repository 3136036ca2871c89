"""Audit log subscriber — writes every SystemEvent to the structured log.

Registered as a global subscriber at startup. Failures are logged and
swallowed; audit logging must never break the request that emitted the event.
"""

from __future__ import annotations

import structlog

from remindly.schemas.events import SystemEvent

logger = structlog.get_logger("remindly.audit")


async def log_event(event: SystemEvent) -> None:
    """Emit one structured audit line per event."""
    try:
        logger.info(
            event.event_type.value,
            event_id=str(event.id),
            appointment_id=event.appointment_id,
            source=event.source_module,
            data=event.data,
        )
    except Exception:
        logger.exception("audit.write_failed", event_type=event.event_type.value)
