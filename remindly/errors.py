"""Error taxonomy for the persistence, sync, and dispatch core.

Nothing here is fatal to the process. Local store failures never reach this
module (they are swallowed with defaults); remote store errors are caught by
the sync coordinator; dispatch errors propagate to the caller unchanged.
"""

from __future__ import annotations


class RemindlyError(Exception):
    """Base class for all domain errors."""


class AppointmentNotFound(RemindlyError):
    """No appointment with the given id exists in the active record set."""

    def __init__(self, appointment_id: int) -> None:
        self.appointment_id = appointment_id
        super().__init__(f"Appointment {appointment_id} not found")


class SnapshotUnreadable(RemindlyError):
    """The stored appointment snapshot is not a list; it is left untouched."""


class Misconfigured(RemindlyError):
    """A required setting is missing."""


# ── Remote file store ────────────────────────────────────────────────


class RemoteStoreError(RemindlyError):
    """Any failure talking to the remote file store."""


class RemoteUnavailable(RemoteStoreError):
    """Network failure, timeout, or unexpected HTTP status from the remote store."""


class RemoteConflict(RemoteStoreError):
    """The remote file changed since the version we read (optimistic concurrency)."""


class RemoteUnauthorized(RemoteStoreError):
    """The remote credential was rejected."""


class PayloadTooLarge(RemoteStoreError):
    """Encoded snapshot exceeds the contents API size limit."""


# ── Reminder dispatch ────────────────────────────────────────────────


class DispatchError(RemindlyError):
    """The reminder webhook call did not succeed; appointment state is unchanged."""


class DispatchTimeout(DispatchError):
    """The webhook did not answer within the time limit."""


class DownstreamRejected(DispatchError):
    """The webhook answered with a non-2xx status."""

    def __init__(self, status_code: int, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"Reminder webhook returned an error: {status_code}")


class DispatchTransportError(DispatchError):
    """The webhook call failed below the HTTP layer (DNS, refused, TLS, bad URL)."""
