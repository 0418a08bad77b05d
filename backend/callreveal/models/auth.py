"""Admin account model and login schemas."""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel
from sqlmodel import Field, SQLModel


class AdminUser(SQLModel, table=True):
    """An account allowed to manage the reveal."""

    __tablename__ = "user_admin"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    email: str = Field(unique=True, index=True)
    password_hash: str  # argon2id PHC string (never store raw)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# --- Pydantic request/response schemas ---


class LoginRequest(BaseModel):
    email: str
    password: str


class AdminRead(BaseModel):
    id: str
    email: str

    model_config = {"from_attributes": True}


class TokenResponse(BaseModel):
    """JWT returned on successful admin login."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int  # access token TTL in seconds
    admin: AdminRead
