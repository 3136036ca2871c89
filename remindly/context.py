"""Explicit per-process application context.

Holds the stores and the two sync coordinators (with their recorded remote
versions) for the single writer session. Built once in the FastAPI lifespan
and handed to every service; nothing in the core reaches for module globals.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from remindly.appointments.service import APPOINTMENTS_KEY
from remindly.config import settings
from remindly.reminders.guard import InflightGuard
from remindly.schemas.settings import AppSettings
from remindly.security.encryption import CredentialCipher, build_credential_cipher
from remindly.settings.service import SETTINGS_KEY, merge_remote_settings, project_remote_settings
from remindly.storage.local import LocalRecordStore
from remindly.storage.remote import RemoteFileStore
from remindly.sync.coordinator import RemoteFactory, SyncCoordinator


@dataclass
class AppContext:
    """Everything a service needs, passed explicitly."""

    local: LocalRecordStore
    appointments_sync: SyncCoordinator
    settings_sync: SyncCoordinator
    cipher: CredentialCipher
    guard: InflightGuard
    webhook_timeout: float = 15.0
    webhook_transport: httpx.AsyncBaseTransport | None = None


def build_context(
    *,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    redis: object | None = None,
    remote_factory: RemoteFactory | None = None,
    cipher: CredentialCipher | None = None,
    webhook_timeout: float | None = None,
    webhook_transport: httpx.AsyncBaseTransport | None = None,
) -> AppContext:
    """Wire the context. Omitted collaborators come from the process defaults."""
    if session_factory is None or redis is None:
        from remindly.db.engine import async_session_factory, redis_client

        session_factory = session_factory or async_session_factory
        redis = redis if redis is not None else redis_client

    local = LocalRecordStore(session_factory)
    factory: RemoteFactory = remote_factory or RemoteFileStore

    return AppContext(
        local=local,
        appointments_sync=SyncCoordinator(
            APPOINTMENTS_KEY,
            local,
            factory,
            AppSettings.appointments_location,
        ),
        settings_sync=SyncCoordinator(
            SETTINGS_KEY,
            local,
            factory,
            AppSettings.settings_location,
            merge=merge_remote_settings,
            project=project_remote_settings,
        ),
        cipher=cipher or build_credential_cipher(),
        guard=InflightGuard(redis, settings.inflight_lock_ttl),
        webhook_timeout=webhook_timeout or settings.reminders.webhook_timeout,
        webhook_transport=webhook_transport,
    )
