"""Key-value entries with optional expiry (hint sessions, destination cache)."""

from __future__ import annotations

from datetime import datetime

from sqlmodel import Field, SQLModel


class KVEntry(SQLModel, table=True):
    __tablename__ = "kv_entries"

    key: str = Field(primary_key=True)
    value: str  # JSON-encoded
    expires_at: datetime | None = Field(default=None, index=True)  # UTC; None = never
