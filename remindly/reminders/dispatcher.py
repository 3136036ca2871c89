"""Reminder dispatcher — POST an appointment to the automation webhook.

One bounded-time attempt per trigger. Only a 2xx answer advances the
appointment to ``sent``; every failure leaves it ``pending`` and is raised
to the caller as a DispatchError subclass. No retries, no mutual exclusion
(see remindly.reminders.guard for the API-level in-flight guard).
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import httpx

from remindly.appointments.service import AppointmentService
from remindly.errors import (
    DispatchError,
    DispatchTimeout,
    DispatchTransportError,
    DownstreamRejected,
    Misconfigured,
)
from remindly.events import emit
from remindly.schemas.appointments import Appointment, DispatchResult
from remindly.schemas.events import EventType, SystemEvent
from remindly.settings.service import SettingsService

if TYPE_CHECKING:
    from remindly.context import AppContext

logger = logging.getLogger(__name__)


class ReminderDispatcher:
    """Triggers the reminder webhook for one appointment at a time."""

    def __init__(
        self,
        ctx: AppContext,
        *,
        settings_service: SettingsService | None = None,
        appointment_service: AppointmentService | None = None,
    ) -> None:
        self._ctx = ctx
        self._settings = settings_service or SettingsService(ctx)
        self._appointments = appointment_service or AppointmentService(ctx, self._settings)
        self._timeout = ctx.webhook_timeout

    async def trigger(self, appointment_id: int) -> DispatchResult:
        """Send the reminder and mark the appointment sent on success.

        Raises:
            Misconfigured: no webhook URL configured (no network call made).
            AppointmentNotFound: unknown id (no network call made).
            DownstreamRejected: webhook answered non-2xx.
            DispatchTimeout: no answer within the time limit.
            DispatchTransportError: DNS, connection, TLS, or URL failure.
        """
        config = await self._settings.get()
        webhook_url = config.webhook_url.strip()
        if not webhook_url:
            msg = "Reminder webhook URL not configured in settings"
            raise Misconfigured(msg)

        appointment = await self._appointments.get(appointment_id)

        await emit(SystemEvent(
            event_type=EventType.REMINDER_REQUESTED,
            appointment_id=appointment_id,
            source_module="reminders.dispatcher",
        ))

        try:
            response = await asyncio.wait_for(self._post(webhook_url, appointment), timeout=self._timeout)
            if not response.is_success:
                logger.error(
                    "Reminder webhook error response for %s: %s %s",
                    appointment_id,
                    response.status_code,
                    response.text[:500],
                )
                raise DownstreamRejected(response.status_code, response.text[:500])
        except (httpx.TimeoutException, asyncio.TimeoutError) as exc:
            logger.warning("Reminder webhook timed out after %.0fs for %s", self._timeout, appointment_id)
            await self._emit_failure(appointment_id, "timeout")
            msg = "Request to the reminder webhook timed out"
            raise DispatchTimeout(msg) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("Reminder webhook unreachable for %s: %s", appointment_id, exc)
            await self._emit_failure(appointment_id, "transport")
            msg = "Failed to connect to the reminder webhook. Check the webhook URL."
            raise DispatchTransportError(msg) from exc
        except DispatchError as exc:
            await self._emit_failure(appointment_id, type(exc).__name__)
            raise

        sync = await self._appointments.mark_sent(appointment_id)

        await emit(SystemEvent(
            event_type=EventType.REMINDER_SENT,
            appointment_id=appointment_id,
            data={"status_code": response.status_code, "remote": sync.remote.value},
            source_module="reminders.dispatcher",
        ))
        logger.info("Reminder sent for appointment %s (HTTP %s)", appointment_id, response.status_code)
        return DispatchResult(appointment_id=appointment_id, status_code=response.status_code, sync=sync)

    async def _post(self, url: str, appointment: Appointment) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout),
            transport=self._ctx.webhook_transport,
        ) as client:
            return await client.post(url, json=appointment.webhook_payload())

    async def _emit_failure(self, appointment_id: int, reason: str) -> None:
        await emit(SystemEvent(
            event_type=EventType.REMINDER_FAILED,
            appointment_id=appointment_id,
            data={"reason": reason},
            source_module="reminders.dispatcher",
        ))
