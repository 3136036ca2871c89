"""SQLAlchemy ORM models for Remindly.

Import all models here so Alembic and Base.metadata.create_all() discover them.
"""

from __future__ import annotations

from remindly.models.base import Base
from remindly.models.enums import AppointmentStatus, RemoteOutcome, SyncState
from remindly.models.kv_store import KeyValueBlob

__all__ = [
    "AppointmentStatus",
    "Base",
    "KeyValueBlob",
    "RemoteOutcome",
    "SyncState",
]
