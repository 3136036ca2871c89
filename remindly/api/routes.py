"""JSON API consumed by the UI — appointments, settings, and reminder triggers.

Remote sync trouble never turns into an HTTP error: every mutating endpoint
returns a ``sync`` object whose ``warning`` tells the UI the change was saved
locally but not pushed.
"""
# ruff: noqa: B008  — Depends() in function defaults is standard FastAPI

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from remindly.appointments.service import AppointmentService
from remindly.context import AppContext
from remindly.errors import (
    AppointmentNotFound,
    DispatchTimeout,
    DispatchTransportError,
    DownstreamRejected,
    Misconfigured,
    SnapshotUnreadable,
)
from remindly.reminders.dispatcher import ReminderDispatcher
from remindly.schemas.appointments import AppointmentRequest
from remindly.schemas.settings import SettingsUpdate
from remindly.settings.service import SettingsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["appointments"])


def get_context(request: Request) -> AppContext:
    """Dependency — the AppContext built during lifespan startup."""
    return request.app.state.context


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


# ── Appointments ─────────────────────────────────────────────────────


@router.get("/appointments")
async def list_appointments(ctx: AppContext = Depends(get_context)) -> list[dict[str, Any]]:
    """All appointments ordered by date, then time."""
    appointments = await AppointmentService(ctx).list_appointments()
    return [appt.model_dump(mode="json") for appt in appointments]


@router.post("/appointments", response_model=None)
async def create_appointment(
    body: AppointmentRequest,
    ctx: AppContext = Depends(get_context),
) -> dict[str, Any] | JSONResponse:
    try:
        appointment, sync = await AppointmentService(ctx).create(body)
    except SnapshotUnreadable as exc:
        return _error(500, str(exc))
    return {
        "id": appointment.id,
        "appointment": appointment.model_dump(mode="json"),
        "sync": sync.model_dump(mode="json"),
    }


@router.delete("/appointments/{appointment_id}", response_model=None)
async def delete_appointment(
    appointment_id: int,
    ctx: AppContext = Depends(get_context),
) -> dict[str, Any] | JSONResponse:
    try:
        sync = await AppointmentService(ctx).remove(appointment_id)
    except AppointmentNotFound as exc:
        return _error(404, str(exc))
    except SnapshotUnreadable as exc:
        return _error(500, str(exc))
    return {"success": True, "sync": sync.model_dump(mode="json")}


# ── Settings ─────────────────────────────────────────────────────────


@router.get("/settings")
async def get_settings(ctx: AppContext = Depends(get_context)) -> dict[str, Any]:
    """Current settings, credential masked."""
    config = await SettingsService(ctx).get()
    return config.public_view()


@router.post("/settings")
async def save_settings(
    body: SettingsUpdate,
    ctx: AppContext = Depends(get_context),
) -> dict[str, Any]:
    config, sync = await SettingsService(ctx).update(body)
    return {
        "success": True,
        "settings": config.public_view(),
        "sync": sync.model_dump(mode="json"),
    }


# ── Reminders ────────────────────────────────────────────────────────


@router.post("/trigger-reminder/{appointment_id}", response_model=None)
async def trigger_reminder(
    appointment_id: int,
    ctx: AppContext = Depends(get_context),
) -> dict[str, Any] | JSONResponse:
    """Dispatch the reminder webhook for one appointment.

    Status mapping: 404 unknown id, 400 no webhook URL, 409 already in flight,
    502 webhook rejected, 504 webhook timed out, 500 webhook unreachable or
    stored snapshot unreadable.
    """
    if not await ctx.guard.acquire(appointment_id):
        return _error(409, "A reminder for this appointment is already being sent")

    try:
        result = await ReminderDispatcher(ctx).trigger(appointment_id)
    except AppointmentNotFound:
        return _error(404, "Appointment not found")
    except Misconfigured as exc:
        return _error(400, str(exc))
    except DownstreamRejected as exc:
        return _error(502, str(exc))
    except DispatchTimeout as exc:
        return _error(504, str(exc))
    except DispatchTransportError as exc:
        return _error(500, str(exc))
    except SnapshotUnreadable as exc:
        return _error(500, str(exc))
    finally:
        await ctx.guard.release(appointment_id)

    return {
        "success": True,
        "status_code": result.status_code,
        "sync": result.sync.model_dump(mode="json"),
    }
