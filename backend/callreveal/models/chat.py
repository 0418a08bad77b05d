"""Hint game session state and chat schemas."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["system", "user", "assistant"]


class HintMessage(BaseModel):
    role: Role
    content: str


class HintSession(BaseModel):
    """Persisted per-session state.

    Serialized to the KV store as ``{messages, hintCount, done}``. The
    transcript includes the system prompt and is replayed to the model in
    full on every turn.
    """

    model_config = ConfigDict(populate_by_name=True)

    messages: list[HintMessage]
    hint_count: int = Field(default=0, alias="hintCount")
    done: bool = False

    def visible_messages(self) -> list[HintMessage]:
        """Transcript without system messages (they hold the secret)."""
        return [m for m in self.messages if m.role != "system"]


class MissionData(BaseModel):
    """Decrypted facts the hint model is allowed to know."""

    mission_name: str
    language: str
    training_center: str
    entry_date: str


# --- Pydantic request/response schemas ---


class ChatRequest(BaseModel):
    session_id: str = Field(min_length=1, max_length=200)
    message: str | None = Field(default=None, max_length=2000)


class ChatDeleteRequest(BaseModel):
    session_id: str = Field(min_length=1, max_length=200)


class SessionState(BaseModel):
    hint_count: int
    done: bool
    messages: list[HintMessage]


class InitResult(SessionState):
    initialized: bool = True


class ChatReply(BaseModel):
    reply: str
    hint_count: int
    done: bool
