"""Reveal record: the singleton holding the encrypted missionary call."""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel, Field as PydanticField, field_validator
from sqlmodel import Field, SQLModel

from callreveal.services.access_policy import resolve_opening_instant


class Revelation(SQLModel, table=True):
    """The secret record. At most one row exists.

    Sensitive columns hold ``iv:ciphertext`` blobs from FieldCipher, never
    plaintext. Event metadata is stored in the clear.
    """

    __tablename__ = "revelation"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    missionary_name: str = Field(default="")
    missionary_address: str = Field(default="")
    mission_name: str
    language: str
    training_center: str
    entry_date: str
    pdf_text: str = Field(default="")
    normalized_pdf_text: str = Field(default="")
    is_revealed: bool = Field(default=False)
    opening_date: str | None = Field(default="")  # venue-local, no zone
    location_address: str | None = Field(default="")
    location_url: str | None = Field(default="")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# --- Pydantic request/response schemas ---


class MissionFields(BaseModel):
    """Plaintext sensitive fields, as entered by an admin or extracted."""

    missionary_name: str = ""
    missionary_address: str = ""
    mission_name: str = ""
    language: str = ""
    training_center: str = ""
    entry_date: str = ""


class RevelationUpdate(MissionFields):
    """Manual admin edit. All fields except the address are required."""

    missionary_name: str = PydanticField(min_length=1)
    missionary_address: str = ""
    mission_name: str = PydanticField(min_length=1)
    language: str = PydanticField(min_length=1)
    training_center: str = PydanticField(min_length=1)
    entry_date: str = PydanticField(min_length=1)


class MissionaryNameUpdate(BaseModel):
    missionary_name: str = PydanticField(min_length=1)


class EventSettings(BaseModel):
    opening_date: str | None = None  # venue-local "YYYY-MM-DDTHH:MM"
    location_address: str | None = None
    location_url: str | None = None

    @field_validator("opening_date")
    @classmethod
    def _parseable_opening_date(cls, v: str | None) -> str | None:
        if v is not None and v.strip():
            resolve_opening_instant(v)  # raises ValueError on garbage
        return v


class PdfTextRequest(BaseModel):
    text: str = PydanticField(min_length=1)


class ConfirmPdfRequest(MissionFields):
    pdf_text: str = PydanticField(min_length=1)


class RevelationProjection(BaseModel):
    """What a given caller is allowed to see of the reveal record."""

    id: str
    state: str  # "hidden" | "masked" | "open"
    is_revealed: bool
    missionary_name: str
    missionary_address: str
    mission_name: str
    language: str
    training_center: str
    entry_date: str
    has_data: bool = False
    pdf_text: str | None = None
    normalized_pdf_text: str | None = None
    opening_date: str | None
    location_address: str | None
    location_url: str | None
    created_at: datetime
    updated_at: datetime


class RevelationStatus(BaseModel):
    """Non-sensitive summary returned after admin mutations."""

    id: str
    is_revealed: bool
    opening_date: str | None
    location_address: str | None
    location_url: str | None
    updated_at: datetime

    model_config = {"from_attributes": True}


class Destination(BaseModel):
    lat: float
    lng: float
    mission_name: str
