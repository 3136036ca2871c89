"""Settings service — load and update the AppSettings snapshot.

The local copy is authoritative for connection fields (whether remote sync is
on, and where/how to reach it); only the webhook URL travels to the remote
settings file. The credential is sealed before it touches the local store.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from remindly.events import emit
from remindly.schemas.events import EventType, SystemEvent
from remindly.schemas.settings import CONNECTION_FIELDS, CREDENTIAL_MASK, AppSettings, SettingsUpdate
from remindly.schemas.sync import SyncResult

if TYPE_CHECKING:
    from remindly.context import AppContext

logger = logging.getLogger(__name__)

SETTINGS_KEY = "settings"


# ── Sync hooks ───────────────────────────────────────────────────────


def merge_remote_settings(local: Any, remote: Any) -> dict[str, Any]:
    """Overlay the remote copy onto the local one, keeping local connection fields."""
    merged = dict(local) if isinstance(local, dict) else {}
    if isinstance(remote, dict):
        for key, value in remote.items():
            if key not in CONNECTION_FIELDS:
                merged[key] = value
    return merged


def project_remote_settings(value: dict[str, Any]) -> dict[str, Any]:
    """Strip connection fields (credential included) before a remote write."""
    return {key: item for key, item in value.items() if key not in CONNECTION_FIELDS}


# ── Service ──────────────────────────────────────────────────────────


class SettingsService:
    """Reads and writes the settings entity through its sync coordinator."""

    def __init__(self, ctx: AppContext) -> None:
        self._ctx = ctx

    async def get(self) -> AppSettings:
        """Current settings. Defaults on first run."""
        stored = await self._ctx.local.load(SETTINGS_KEY, {})
        local_settings = self._decode(stored)
        raw = await self._ctx.settings_sync.read(local_settings, stored)
        return self._decode(raw)

    async def update(self, changes: SettingsUpdate) -> tuple[AppSettings, SyncResult]:
        """Apply a partial update and persist the whole snapshot."""
        current = await self.get()

        data = changes.model_dump(exclude_none=True)
        credential = data.get("remote_credential")
        if credential is not None and credential.startswith(CREDENTIAL_MASK):
            # The UI echoed back the masked value; keep the stored credential
            del data["remote_credential"]

        updated = current.model_copy(update=data)
        sync = await self._ctx.settings_sync.write(updated, self._encode(updated))

        await emit(SystemEvent(
            event_type=EventType.SETTINGS_UPDATED,
            data={
                "fields": sorted(data),
                "use_remote": updated.use_remote,
                "remote": sync.remote.value,
            },
            source_module="settings.service",
        ))
        logger.info("Settings updated: fields=%s remote=%s", sorted(data), sync.remote.value)
        return updated, sync

    def _decode(self, stored: Any) -> AppSettings:
        if not isinstance(stored, dict):
            stored = {}
        try:
            config = AppSettings.model_validate(stored)
        except ValidationError:
            logger.warning("Stored settings are invalid, using defaults")
            config = AppSettings()
        return config.model_copy(update={"remote_credential": self._ctx.cipher.open(config.remote_credential)})

    def _encode(self, config: AppSettings) -> dict[str, Any]:
        data = config.model_dump(mode="json")
        data["remote_credential"] = self._ctx.cipher.seal(config.remote_credential)
        return data
