"""Pydantic schemas shared by the remote store and the sync coordinator."""

from __future__ import annotations

from pydantic import BaseModel

from remindly.models.enums import RemoteOutcome


class RemoteLocation(BaseModel):
    """Address of one JSON file in the remote store. Hashable (frozen)."""

    repo: str  # "owner/name"
    path: str
    branch: str = "main"

    model_config = {"frozen": True}


class SyncResult(BaseModel):
    """Outcome of one coordinator write.

    ``local_saved`` is always True: the local write happens first and its
    failures are swallowed. Remote trouble is reported, never raised.
    """

    local_saved: bool = True
    remote: RemoteOutcome = RemoteOutcome.SKIPPED
    version: str | None = None
    warning: str | None = None
    error: str | None = None  # error class name when remote == FAILED

    @property
    def remote_failed(self) -> bool:
        return self.remote == RemoteOutcome.FAILED
