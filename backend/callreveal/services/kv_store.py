"""Key-value store with per-entry TTL, backed by the kv_entries table.

Used for hint sessions and the destination cache. Values are JSON. Expired
entries read as absent and are removed lazily on access, plus periodically
by sweep_expired() (scheduled from main.lifespan).
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import delete
from sqlalchemy.engine import Engine
from sqlmodel import Session

from callreveal.clock import Clock, utc_now
from callreveal.models.kv import KVEntry

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on round-trip
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class KVStore:
    """Minimal get/put/delete store. Each call uses its own DB session."""

    def __init__(self, engine: Engine, clock: Clock = utc_now) -> None:
        self._engine = engine
        self._clock = clock

    def get(self, key: str) -> Any | None:
        with Session(self._engine) as session:
            entry = session.get(KVEntry, key)
            if entry is None:
                return None
            if entry.expires_at is not None and _as_utc(entry.expires_at) <= self._clock():
                session.delete(entry)
                session.commit()
                return None
            return json.loads(entry.value)

    def put(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        """Insert or replace ``key``. ``ttl_seconds=None`` never expires."""
        expires_at = None
        if ttl_seconds is not None:
            if ttl_seconds <= 0:
                raise ValueError(f"ttl_seconds must be > 0, got {ttl_seconds}")
            expires_at = self._clock() + timedelta(seconds=ttl_seconds)
        payload = json.dumps(value, ensure_ascii=False)
        with Session(self._engine) as session:
            entry = session.get(KVEntry, key)
            if entry is None:
                entry = KVEntry(key=key, value=payload, expires_at=expires_at)
            else:
                entry.value = payload
                entry.expires_at = expires_at
            session.add(entry)
            session.commit()

    def delete(self, key: str) -> None:
        with Session(self._engine) as session:
            entry = session.get(KVEntry, key)
            if entry is not None:
                session.delete(entry)
                session.commit()

    def sweep_expired(self) -> int:
        """Delete all expired entries. Returns the number removed."""
        now = self._clock()
        with Session(self._engine) as session:
            result = session.execute(
                delete(KVEntry).where(
                    KVEntry.expires_at.is_not(None),  # type: ignore[union-attr]
                    KVEntry.expires_at <= now,  # type: ignore[operator]
                )
            )
            session.commit()
            removed = result.rowcount or 0
        if removed:
            logger.info("KV sweep removed %d expired entr%s", removed, "y" if removed == 1 else "ies")
        return removed
