"""Tests for the JSON API routes.

Covers:
- Appointment list/create/delete wiring and request validation
- Settings endpoints mask the credential
- Reminder trigger: status mapping for every dispatch outcome, in-flight 409
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from remindly.api.routes import router
from remindly.errors import (
    AppointmentNotFound,
    DispatchTimeout,
    DispatchTransportError,
    DownstreamRejected,
    Misconfigured,
    SnapshotUnreadable,
)
from remindly.models.enums import RemoteOutcome
from remindly.schemas.appointments import Appointment, DispatchResult
from remindly.schemas.settings import AppSettings
from remindly.schemas.sync import SyncResult

APPOINTMENT = Appointment(
    id=1_740_000_000_000,
    client_name="Ana",
    phone_number="+1555",
    appointment_date="2025-03-01",
    appointment_time="09:00",
)

VALID_BODY = {
    "client_name": "Ana",
    "phone_number": "+1555",
    "appointment_date": "2025-03-01",
    "appointment_time": "09:00",
}


@pytest.fixture()
def app_context():
    context = MagicMock()
    context.guard.acquire = AsyncMock(return_value=True)
    context.guard.release = AsyncMock()
    return context


@pytest.fixture()
def mock_services():
    """Patch the services the routes instantiate per request."""
    with (
        patch("remindly.api.routes.AppointmentService") as appointments_cls,
        patch("remindly.api.routes.SettingsService") as settings_cls,
        patch("remindly.api.routes.ReminderDispatcher") as dispatcher_cls,
    ):
        appointments = appointments_cls.return_value
        appointments.list_appointments = AsyncMock(return_value=[APPOINTMENT])
        appointments.create = AsyncMock(return_value=(APPOINTMENT, SyncResult()))
        appointments.remove = AsyncMock(return_value=SyncResult())

        settings_service = settings_cls.return_value
        settings_service.get = AsyncMock(return_value=AppSettings())
        settings_service.update = AsyncMock(return_value=(AppSettings(), SyncResult()))

        dispatcher = dispatcher_cls.return_value
        dispatcher.trigger = AsyncMock(return_value=DispatchResult(
            appointment_id=APPOINTMENT.id,
            status_code=200,
            sync=SyncResult(),
        ))
        yield {
            "appointments": appointments,
            "settings": settings_service,
            "dispatcher": dispatcher,
        }


@pytest.fixture()
def client(app_context, mock_services):
    test_app = FastAPI()
    test_app.include_router(router)
    test_app.state.context = app_context
    return TestClient(test_app)


# ── Appointments ─────────────────────────────────────────────────────


class TestAppointments:
    def test_list(self, client):
        resp = client.get("/api/appointments")

        assert resp.status_code == 200
        body = resp.json()
        assert body[0]["id"] == APPOINTMENT.id
        assert body[0]["status"] == "pending"

    def test_create_returns_id_and_sync(self, client, mock_services):
        resp = client.post("/api/appointments", json=VALID_BODY)

        assert resp.status_code == 200
        body = resp.json()
        assert body["id"] == APPOINTMENT.id
        assert body["sync"]["remote"] == "skipped"
        assert body["sync"]["local_saved"] is True
        mock_services["appointments"].create.assert_awaited_once()

    def test_create_reports_remote_warning(self, client, mock_services):
        mock_services["appointments"].create.return_value = (
            APPOINTMENT,
            SyncResult(remote=RemoteOutcome.FAILED, warning="Saved locally; remote sync failed", error="RemoteConflict"),
        )

        resp = client.post("/api/appointments", json=VALID_BODY)

        assert resp.status_code == 200
        assert resp.json()["sync"]["warning"].startswith("Saved locally")

    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("client_name", ""),
            ("phone_number", "  "),
            ("appointment_date", "01/03/2025"),
            ("appointment_time", "9am"),
        ],
    )
    def test_create_rejects_invalid_fields(self, client, mock_services, field, value):
        resp = client.post("/api/appointments", json={**VALID_BODY, field: value})

        assert resp.status_code == 422
        mock_services["appointments"].create.assert_not_awaited()

    def test_delete(self, client, mock_services):
        resp = client.delete(f"/api/appointments/{APPOINTMENT.id}")

        assert resp.status_code == 200
        assert resp.json()["success"] is True
        mock_services["appointments"].remove.assert_awaited_once_with(APPOINTMENT.id)

    def test_delete_unknown_is_404(self, client, mock_services):
        mock_services["appointments"].remove.side_effect = AppointmentNotFound(5)

        resp = client.delete("/api/appointments/5")

        assert resp.status_code == 404
        assert "error" in resp.json()

    def test_unreadable_snapshot_is_500(self, client, mock_services):
        mock_services["appointments"].create.side_effect = SnapshotUnreadable("not a list")

        resp = client.post("/api/appointments", json=VALID_BODY)

        assert resp.status_code == 500
        assert resp.json()["error"] == "not a list"


# ── Settings ─────────────────────────────────────────────────────────


class TestSettings:
    def test_get_masks_credential(self, client, mock_services):
        mock_services["settings"].get.return_value = AppSettings(
            webhook_url="https://hook",
            remote_credential="ghp_abcdefgh1234",
        )

        resp = client.get("/api/settings")

        assert resp.status_code == 200
        assert resp.json()["remote_credential"] == "****1234"
        assert resp.json()["webhook_url"] == "https://hook"

    def test_post_accepts_n8n_alias(self, client, mock_services):
        resp = client.post("/api/settings", json={"n8n_webhook_url": "https://n8n.example/hook"})

        assert resp.status_code == 200
        assert resp.json()["success"] is True
        changes = mock_services["settings"].update.call_args.args[0]
        assert changes.webhook_url == "https://n8n.example/hook"


# ── Reminder trigger ─────────────────────────────────────────────────


class TestTriggerReminder:
    def test_success(self, client, app_context):
        resp = client.post(f"/api/trigger-reminder/{APPOINTMENT.id}")

        assert resp.status_code == 200
        assert resp.json()["success"] is True
        assert resp.json()["status_code"] == 200
        app_context.guard.release.assert_awaited_once_with(APPOINTMENT.id)

    @pytest.mark.parametrize(
        ("error", "status"),
        [
            (AppointmentNotFound(1), 404),
            (Misconfigured("Reminder webhook URL not configured in settings"), 400),
            (DownstreamRejected(500, "workflow error"), 502),
            (DispatchTimeout("Request to the reminder webhook timed out"), 504),
            (DispatchTransportError("Failed to connect to the reminder webhook"), 500),
            (SnapshotUnreadable("not a list"), 500),
        ],
    )
    def test_error_mapping(self, client, app_context, mock_services, error, status):
        mock_services["dispatcher"].trigger.side_effect = error

        resp = client.post("/api/trigger-reminder/1")

        assert resp.status_code == status
        assert resp.json()["error"]
        app_context.guard.release.assert_awaited_once_with(1)

    def test_in_flight_is_409(self, client, app_context, mock_services):
        app_context.guard.acquire.return_value = False

        resp = client.post("/api/trigger-reminder/1")

        assert resp.status_code == 409
        mock_services["dispatcher"].trigger.assert_not_awaited()
        app_context.guard.release.assert_not_awaited()


# ── App ──────────────────────────────────────────────────────────────


class TestHealth:
    def test_health(self):
        from remindly.main import app

        # No context manager: lifespan (database, Redis) is not started
        resp = TestClient(app).get("/health")

        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"
        assert "environment" in resp.json()
