"""Sync coordinator — local-only or local+remote persistence for one collection.

Reads prefer the remote copy when remote sync is enabled and fall back to
the local cache on any remote failure. Writes always land locally first;
the remote write is a single best-effort attempt whose failure is reported
in the returned SyncResult, never raised.

The version token from the last successful remote read (or write) of a
location is threaded into the next write of that location, so a write based
on a stale read is rejected by the remote store instead of clobbering it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from remindly.errors import RemoteStoreError
from remindly.events import emit
from remindly.models.enums import RemoteOutcome, SyncState
from remindly.schemas.events import EventType, SystemEvent
from remindly.schemas.settings import AppSettings
from remindly.schemas.sync import RemoteLocation, SyncResult
from remindly.storage.local import LocalRecordStore
from remindly.storage.remote import RemoteFileStore

logger = logging.getLogger(__name__)

RemoteFactory = Callable[[str], RemoteFileStore]
Locator = Callable[[AppSettings], RemoteLocation]
MergeHook = Callable[[Any, Any], Any]
ProjectHook = Callable[[Any], Any]


def _take_remote(local: Any, remote: Any) -> Any:
    return remote


def _identity(value: Any) -> Any:
    return value


class SyncCoordinator:
    """Persistence policy for one logical collection.

    Args:
        collection: Local key and event label ("appointments", "settings").
        local: Local record store.
        remote_factory: Builds a RemoteFileStore for a credential.
        locate: Maps the current AppSettings to this collection's remote file.
        merge: Combines (local value, remote content) on read. Default: remote wins.
        project: Shapes the value before it is written remotely. Default: unchanged.
    """

    def __init__(
        self,
        collection: str,
        local: LocalRecordStore,
        remote_factory: RemoteFactory,
        locate: Locator,
        *,
        merge: MergeHook = _take_remote,
        project: ProjectHook = _identity,
    ) -> None:
        self.collection = collection
        self._local = local
        self._remote_factory = remote_factory
        self._locate = locate
        self._merge = merge
        self._project = project
        self._state = SyncState.IDLE
        self._versions: dict[RemoteLocation, str | None] = {}

    @property
    def state(self) -> SyncState:
        return self._state

    def version_for(self, location: RemoteLocation) -> str | None:
        """Version recorded by the last read/write of ``location`` (None if absent or never read)."""
        return self._versions.get(location)

    async def read(self, config: AppSettings, default: Any) -> Any:
        """Return the collection, from remote when enabled, else from the local cache."""
        local_value = await self._local.load(self.collection, default)

        target = self._target(config)
        if target is None:
            return local_value
        store, location = target

        self._state = SyncState.SYNCING
        try:
            remote_file = await store.get(location)
        except RemoteStoreError as exc:
            logger.warning("Remote read of %s failed, using local copy: %s", self.collection, exc)
            await emit(SystemEvent(
                event_type=EventType.SYNC_READ_FAILED,
                data={"collection": self.collection, "error": type(exc).__name__},
                source_module="sync.coordinator",
            ))
            return local_value
        finally:
            self._state = SyncState.IDLE

        if remote_file is None:
            # First run against this location: nothing to pull, next write creates it
            self._versions[location] = None
            return local_value

        self._versions[location] = remote_file.version
        value = self._merge(local_value, remote_file.content)
        await self._local.save(self.collection, value)
        logger.debug("Pulled %s from remote at version %s", self.collection, remote_file.version[:7])
        return value

    async def write(self, config: AppSettings, value: Any) -> SyncResult:
        """Save locally, then attempt one remote write if remote sync is enabled."""
        await self._local.save(self.collection, value)

        target = self._target(config)
        if target is None:
            return SyncResult(remote=RemoteOutcome.SKIPPED)
        store, location = target

        self._state = SyncState.SYNCING
        try:
            version = await store.put(
                location,
                self._project(value),
                f"Update Remindly {self.collection}",
                expected_version=self._versions.get(location),
            )
        except RemoteStoreError as exc:
            logger.warning("Remote write of %s failed (local copy saved): %s", self.collection, exc)
            await emit(SystemEvent(
                event_type=EventType.SYNC_WRITE_FAILED,
                data={"collection": self.collection, "error": type(exc).__name__},
                source_module="sync.coordinator",
            ))
            return SyncResult(
                remote=RemoteOutcome.FAILED,
                warning=f"Saved locally; remote sync failed: {exc}",
                error=type(exc).__name__,
            )
        finally:
            self._state = SyncState.IDLE

        self._versions[location] = version
        await emit(SystemEvent(
            event_type=EventType.SYNC_WRITE_COMPLETED,
            data={"collection": self.collection, "version": version},
            source_module="sync.coordinator",
        ))
        return SyncResult(remote=RemoteOutcome.SYNCED, version=version)

    def _target(self, config: AppSettings) -> tuple[RemoteFileStore, RemoteLocation] | None:
        if not config.use_remote:
            return None
        if not config.remote_ready:
            logger.warning("Remote sync enabled but credential/repo/path/branch incomplete, using local only")
            return None
        return self._remote_factory(config.remote_credential), self._locate(config)
