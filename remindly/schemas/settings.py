"""Pydantic schemas for the user-editable settings entity."""

from __future__ import annotations

from pathlib import PurePosixPath

from pydantic import AliasChoices, BaseModel, Field

from remindly.schemas.sync import RemoteLocation

DEFAULT_REMOTE_PATH = "remindly/appointments.json"
CREDENTIAL_MASK = "****"

# Fields that describe where/how to reach the remote store. They are never
# taken from the remote copy of the settings.
CONNECTION_FIELDS: frozenset[str] = frozenset({
    "use_remote",
    "remote_credential",
    "remote_repo",
    "remote_path",
    "remote_branch",
})


class AppSettings(BaseModel):
    """Webhook URL and remote-store location, persisted as one snapshot."""

    webhook_url: str = ""
    use_remote: bool = False
    remote_credential: str = ""
    remote_repo: str = ""
    remote_path: str = DEFAULT_REMOTE_PATH
    remote_branch: str = "main"

    @property
    def remote_ready(self) -> bool:
        """True when every remote field needed to reach the store is non-empty."""
        return all(
            value.strip()
            for value in (self.remote_credential, self.remote_repo, self.remote_path, self.remote_branch)
        )

    def appointments_location(self) -> RemoteLocation:
        return RemoteLocation(
            repo=self.remote_repo.strip(),
            path=self.remote_path.strip().lstrip("/"),
            branch=self.remote_branch.strip(),
        )

    def settings_location(self) -> RemoteLocation:
        """Settings file sits beside the appointments file: ``<stem>.settings.json``."""
        path = PurePosixPath(self.remote_path.strip().lstrip("/"))
        return RemoteLocation(
            repo=self.remote_repo.strip(),
            path=str(path.with_name(f"{path.stem}.settings.json")),
            branch=self.remote_branch.strip(),
        )

    def public_view(self) -> dict:
        """Settings as returned by the API — credential masked."""
        data = self.model_dump()
        data["remote_credential"] = mask_credential(self.remote_credential)
        return data


class SettingsUpdate(BaseModel):
    """Partial settings update. Omitted (None) fields keep their current value.

    ``n8n_webhook_url`` is accepted as an alias of ``webhook_url``.
    """

    webhook_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("webhook_url", "n8n_webhook_url"),
    )
    use_remote: bool | None = None
    remote_credential: str | None = None
    remote_repo: str | None = None
    remote_path: str | None = None
    remote_branch: str | None = None


def mask_credential(credential: str) -> str:
    """Hide all but the last four characters of a credential."""
    if not credential:
        return ""
    if len(credential) <= 8:
        return CREDENTIAL_MASK
    return f"{CREDENTIAL_MASK}{credential[-4:]}"
