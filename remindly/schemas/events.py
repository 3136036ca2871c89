"""SystemEvent schema — the event type that flows through the in-process bus.

Services emit a SystemEvent for every state change and every external call
outcome. Subscribers (the audit logger) consume them asynchronously.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """All event types emitted by the system."""

    # Appointment lifecycle
    APPOINTMENT_CREATED = "appointment.created"
    APPOINTMENT_DELETED = "appointment.deleted"
    APPOINTMENT_SENT = "appointment.sent"

    # Settings
    SETTINGS_UPDATED = "settings.updated"

    # Sync
    SYNC_READ_FAILED = "sync.read_failed"
    SYNC_WRITE_FAILED = "sync.write_failed"
    SYNC_WRITE_COMPLETED = "sync.write_completed"

    # Reminders
    REMINDER_REQUESTED = "reminder.requested"
    REMINDER_SENT = "reminder.sent"
    REMINDER_FAILED = "reminder.failed"

    # System
    SYSTEM_STARTUP = "system.startup"
    SYSTEM_SHUTDOWN = "system.shutdown"


class SystemEvent(BaseModel):
    """Immutable event record."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    event_type: EventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    appointment_id: int | None = None

    # Flexible payload
    data: dict[str, Any] = Field(default_factory=dict)

    # Metadata
    source_module: str | None = Field(default=None, description="Module that emitted this event")

    model_config = {"frozen": True}
