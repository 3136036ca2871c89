"""Appointment lifecycle — create, list, remove, and mark appointments sent.

Every mutation loads the whole record set, changes it in memory, and writes
the whole snapshot back through the appointments sync coordinator. Callers
must await each mutation before issuing the next one, otherwise a later
snapshot can overwrite an earlier change.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import TypeAdapter, ValidationError

from remindly.errors import AppointmentNotFound, SnapshotUnreadable
from remindly.events import emit
from remindly.models.enums import AppointmentStatus, RemoteOutcome
from remindly.schemas.appointments import Appointment, AppointmentCreate
from remindly.schemas.events import EventType, SystemEvent
from remindly.schemas.settings import AppSettings
from remindly.schemas.sync import SyncResult
from remindly.settings.service import SettingsService

if TYPE_CHECKING:
    from remindly.context import AppContext

logger = logging.getLogger(__name__)

APPOINTMENTS_KEY = "appointments"

_record = TypeAdapter(Appointment)


@dataclass
class _Snapshot:
    """The stored record set, split into parsed records and entries that failed validation.

    Unreadable entries are written back verbatim on every mutation, so one bad
    record never costs the others.
    """

    records: list[Appointment] = field(default_factory=list)
    unreadable: list[Any] = field(default_factory=list)
    is_list: bool = True

    @classmethod
    def parse(cls, raw: Any) -> _Snapshot:
        if not isinstance(raw, list):
            logger.warning("Stored appointment snapshot is a %s, not a list; reading it as empty", type(raw).__name__)
            return cls(is_list=False)

        snapshot = cls()
        for entry in raw:
            try:
                snapshot.records.append(_record.validate_python(entry))
            except ValidationError as exc:
                snapshot.unreadable.append(entry)
                logger.warning("Skipping unreadable appointment record: %s", exc.errors()[0]["msg"])
        return snapshot

    def dump(self) -> list[Any]:
        if not self.is_list:
            msg = "Stored appointment snapshot is not a list; refusing to overwrite it"
            raise SnapshotUnreadable(msg)
        return [*(_record.dump_python(appt, mode="json") for appt in self.records), *self.unreadable]

    def highest_id(self) -> int:
        ids = [appt.id for appt in self.records]
        ids += [e["id"] for e in self.unreadable if isinstance(e, dict) and type(e.get("id")) is int]
        return max(ids, default=0)


class AppointmentService:
    """Owns the appointment record set and its only state transition (pending → sent)."""

    def __init__(self, ctx: AppContext, settings_service: SettingsService | None = None) -> None:
        self._ctx = ctx
        self._settings = settings_service or SettingsService(ctx)

    # ── Queries ──────────────────────────────────────────────────────

    async def list_appointments(self) -> list[Appointment]:
        """All appointments, ascending by (date, time) as plain strings."""
        _, snapshot = await self._load()
        return sorted(snapshot.records, key=lambda appt: appt.sort_key)

    async def get(self, appointment_id: int) -> Appointment:
        _, snapshot = await self._load()
        return snapshot.records[self._index_of(snapshot.records, appointment_id)]

    # ── Mutations ────────────────────────────────────────────────────

    async def create(self, fields: AppointmentCreate) -> tuple[Appointment, SyncResult]:
        """Append a new pending appointment with a fresh id and persist."""
        config, snapshot = await self._load()

        appointment = Appointment(
            id=self._next_id(snapshot),
            status=AppointmentStatus.PENDING,
            **fields.model_dump(),
        )
        snapshot.records.append(appointment)
        sync = await self._persist(config, snapshot)

        await emit(SystemEvent(
            event_type=EventType.APPOINTMENT_CREATED,
            appointment_id=appointment.id,
            data={"appointment_date": appointment.appointment_date, "remote": sync.remote.value},
            source_module="appointments.service",
        ))
        logger.info("Appointment created: id=%s date=%s", appointment.id, appointment.appointment_date)
        return appointment, sync

    async def remove(self, appointment_id: int) -> SyncResult:
        """Delete permanently. Raises AppointmentNotFound (set untouched) if absent."""
        config, snapshot = await self._load()
        del snapshot.records[self._index_of(snapshot.records, appointment_id)]
        sync = await self._persist(config, snapshot)

        await emit(SystemEvent(
            event_type=EventType.APPOINTMENT_DELETED,
            appointment_id=appointment_id,
            data={"remote": sync.remote.value},
            source_module="appointments.service",
        ))
        logger.info("Appointment deleted: id=%s", appointment_id)
        return sync

    async def mark_sent(self, appointment_id: int) -> SyncResult:
        """Transition pending → sent. Idempotent: already-sent is a no-op without a write.

        Only the reminder dispatcher calls this, after a confirmed delivery.
        """
        config, snapshot = await self._load()
        records = snapshot.records
        index = self._index_of(records, appointment_id)

        if records[index].status == AppointmentStatus.SENT:
            logger.debug("Appointment %s already sent, nothing to do", appointment_id)
            return SyncResult(remote=RemoteOutcome.SKIPPED)

        records[index] = records[index].model_copy(update={"status": AppointmentStatus.SENT})
        sync = await self._persist(config, snapshot)

        await emit(SystemEvent(
            event_type=EventType.APPOINTMENT_SENT,
            appointment_id=appointment_id,
            data={"remote": sync.remote.value},
            source_module="appointments.service",
        ))
        logger.info("Appointment marked sent: id=%s", appointment_id)
        return sync

    # ── Internals ────────────────────────────────────────────────────

    async def _load(self) -> tuple[AppSettings, _Snapshot]:
        config = await self._settings.get()
        raw = await self._ctx.appointments_sync.read(config, [])
        return config, _Snapshot.parse(raw)

    async def _persist(self, config: AppSettings, snapshot: _Snapshot) -> SyncResult:
        return await self._ctx.appointments_sync.write(config, snapshot.dump())

    @staticmethod
    def _index_of(records: list[Appointment], appointment_id: int) -> int:
        for index, appt in enumerate(records):
            if appt.id == appointment_id:
                return index
        raise AppointmentNotFound(appointment_id)

    @staticmethod
    def _next_id(snapshot: _Snapshot) -> int:
        """Epoch milliseconds, bumped past the highest id already stored (readable or not)."""
        return max(int(time.time() * 1000), snapshot.highest_id() + 1)
