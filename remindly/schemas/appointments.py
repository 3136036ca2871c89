"""Pydantic schemas for appointments."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_validator

from remindly.models.enums import AppointmentStatus
from remindly.schemas.sync import SyncResult

# Fields posted to the reminder webhook, in order
WEBHOOK_FIELDS: tuple[str, ...] = (
    "id",
    "client_name",
    "phone_number",
    "appointment_date",
    "appointment_time",
    "status",
)


class AppointmentCreate(BaseModel):
    """Fields supplied by the caller when creating an appointment.

    Only presence is enforced here; format checks belong to the caller.
    """

    client_name: str
    phone_number: str
    appointment_date: str  # YYYY-MM-DD
    appointment_time: str  # HH:MM

    @field_validator("client_name", "phone_number")
    @classmethod
    def require_text(cls, v: str) -> str:
        if not v.strip():
            msg = "must not be empty"
            raise ValueError(msg)
        return v


class Appointment(AppointmentCreate):
    """A stored appointment — one element of the persisted snapshot."""

    id: int
    status: AppointmentStatus = AppointmentStatus.PENDING
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def sort_key(self) -> tuple[str, str]:
        """Plain string ordering — relies on the fixed YYYY-MM-DD / HH:MM formats."""
        return (self.appointment_date, self.appointment_time)

    def webhook_payload(self) -> dict:
        """JSON body sent to the reminder webhook."""
        return self.model_dump(mode="json", include=set(WEBHOOK_FIELDS))


class AppointmentRequest(AppointmentCreate):
    """API request body — adds the date/time format checks the UI boundary owns."""

    appointment_date: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")
    appointment_time: str = Field(pattern=r"^\d{2}:\d{2}$")


class DispatchResult(BaseModel):
    """Successful reminder dispatch."""

    appointment_id: int
    status_code: int
    sync: SyncResult
