"""Advice box: messages guests leave for the future missionary."""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel, Field as PydanticField
from sqlmodel import Field, SQLModel


class Advice(SQLModel, table=True):
    __tablename__ = "advice_box"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    session_id: str = Field(index=True)
    guest_name: str = Field(default="")
    advice: str
    ip_address: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# --- Pydantic request/response schemas ---


class AdviceCreate(BaseModel):
    session_id: str = PydanticField(min_length=1)
    guest_name: str = PydanticField(min_length=1)
    advice: str = PydanticField(min_length=1)


class AdvicePublic(BaseModel):
    """Who left advice, without the message itself."""

    id: str
    guest_name: str
    created_at: datetime

    model_config = {"from_attributes": True}


class AdviceRead(AdvicePublic):
    advice: str


class AdviceAdminRead(AdviceRead):
    session_id: str
    ip_address: str | None
