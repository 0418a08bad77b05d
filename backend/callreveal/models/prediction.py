"""Guest predictions: where each visitor thinks the missionary is going."""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel, Field as PydanticField
from sqlmodel import Field, SQLModel


class Prediction(SQLModel, table=True):
    """One guess per browser session. Resubmitting replaces it."""

    __tablename__ = "predictions"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    session_id: str = Field(unique=True, index=True)
    guest_name: str = Field(default="")
    country: str
    country_code: str
    state: str
    state_code: str
    city: str
    latitude: str | None = None
    longitude: str | None = None
    ip_address: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# --- Pydantic request/response schemas ---


class PredictionCreate(BaseModel):
    session_id: str = PydanticField(min_length=1)
    guest_name: str = PydanticField(min_length=1)
    country: str = PydanticField(min_length=1)
    country_code: str = PydanticField(min_length=1)
    state: str = PydanticField(min_length=1)
    state_code: str = PydanticField(min_length=1)
    city: str = PydanticField(min_length=1)
    latitude: str | None = None
    longitude: str | None = None


class PredictionRead(BaseModel):
    """Public view for the predictions map."""

    id: str
    guest_name: str
    country: str
    country_code: str
    state: str
    state_code: str
    city: str
    latitude: str | None
    longitude: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class PredictionAdminRead(PredictionRead):
    session_id: str
    ip_address: str | None
