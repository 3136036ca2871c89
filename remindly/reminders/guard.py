"""Redis-backed guard against duplicate in-flight reminder dispatch.

The dispatcher itself does not exclude concurrent triggers of the same
appointment; the API acquires this guard around each trigger instead.
Uses SET NX EX so a crashed request cannot hold the lock past its TTL.

Usage:
    if not await guard.acquire(appointment_id):
        ...  # someone else is already dispatching this reminder
    try:
        ...
    finally:
        await guard.release(appointment_id)
"""

from __future__ import annotations

import logging

from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

_KEY_PREFIX = "reminder:inflight:"


class InflightGuard:
    """Per-appointment in-flight lock. Fails open when Redis is unavailable."""

    def __init__(self, redis: object, ttl: int) -> None:
        self._redis = redis
        self._ttl = ttl

    @staticmethod
    def _key(appointment_id: int) -> str:
        return f"{_KEY_PREFIX}{appointment_id}"

    async def acquire(self, appointment_id: int) -> bool:
        """Return True if this caller now owns the dispatch of ``appointment_id``."""
        try:
            acquired = await self._redis.set(self._key(appointment_id), "1", nx=True, ex=self._ttl)
        except RedisError:
            logger.exception("In-flight guard Redis error for appointment %s", appointment_id)
            # Fail open — don't block reminders if Redis is down
            return True
        return bool(acquired)

    async def release(self, appointment_id: int) -> None:
        try:
            await self._redis.delete(self._key(appointment_id))
        except RedisError:
            logger.exception("Failed to release in-flight guard for appointment %s", appointment_id)
