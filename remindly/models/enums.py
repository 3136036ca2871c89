"""Domain enums used across the ORM model and Pydantic schemas.

All enums use str mixin for JSON serialization.
"""

from __future__ import annotations

from enum import Enum


class AppointmentStatus(str, Enum):
    """Reminder lifecycle of an appointment. Only PENDING → SENT is allowed."""

    PENDING = "pending"
    SENT = "sent"


class SyncState(str, Enum):
    """Sync coordinator state for one collection."""

    IDLE = "idle"
    SYNCING = "syncing"  # remote call in flight


class RemoteOutcome(str, Enum):
    """What happened to the remote half of a write."""

    SKIPPED = "skipped"  # remote disabled, not configured, or nothing to write
    SYNCED = "synced"
    FAILED = "failed"  # local copy still saved
