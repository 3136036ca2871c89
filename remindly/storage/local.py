"""Local record store — whole-collection JSON snapshots in a key-value table.

Always available: a load that cannot read or parse the stored value returns
the caller's default, and a failed save is logged and swallowed.
Last writer wins; there is no concurrency control (single writer per session).
"""

from __future__ import annotations

import json
import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from remindly.models.kv_store import KeyValueBlob

logger = logging.getLogger(__name__)


class LocalRecordStore:
    """Async key → JSON value store backed by the ``kv_store`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def load(self, key: str, default: Any) -> Any:
        """Return the stored value under ``key``, or ``default`` if missing or unreadable."""
        try:
            async with self._session_factory() as db:
                blob = await db.get(KeyValueBlob, key)
                raw = blob.value if blob is not None else None
        except SQLAlchemyError:
            logger.warning("Local store unavailable reading %s, using default", key, exc_info=True)
            return default

        if raw is None:
            return default

        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Malformed JSON stored under %s, using default", key)
            return default

    async def save(self, key: str, value: Any) -> None:
        """Overwrite the whole value under ``key``."""
        payload = json.dumps(value, ensure_ascii=False)
        try:
            async with self._session_factory() as db:
                blob = await db.get(KeyValueBlob, key)
                if blob is None:
                    db.add(KeyValueBlob(key=key, value=payload))
                else:
                    blob.value = payload
                await db.commit()
        except SQLAlchemyError:
            logger.exception("Failed to save %s to local store", key)
            return

        logger.debug("Saved %s to local store (%d bytes)", key, len(payload))
