"""Hint game API.

POST with only a session id initializes (or resumes) a session; POST with
a message runs one turn. Sessions are created lazily from the reveal
record's decrypted mission data, which never leaves the server.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from callreveal.dependencies import get_hint_service, get_revelation_service
from callreveal.models.chat import (
    ChatDeleteRequest,
    ChatReply,
    ChatRequest,
    InitResult,
    SessionState,
)
from callreveal.services.hints import (
    APOLOGY_REPLY,
    HintSessionService,
    SessionNotFoundError,
)
from callreveal.services.llm import LLMError
from callreveal.services.revelation import RevelationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])


def _ensure_session(
    session_id: str,
    hints: HintSessionService,
    revelations: RevelationService,
) -> SessionState:
    state = hints.get_session(session_id)
    if state is not None:
        return state
    mission = revelations.get_mission_data()
    if mission is None:
        raise HTTPException(status_code=404, detail="No mission data available")
    return hints.init_session(session_id, mission)


@router.post("", response_model=InitResult | ChatReply)
async def chat(
    body: ChatRequest,
    hints: HintSessionService = Depends(get_hint_service),
    revelations: RevelationService = Depends(get_revelation_service),
) -> InitResult | ChatReply:
    state = _ensure_session(body.session_id, hints, revelations)
    if body.message is None or not body.message.strip():
        return InitResult(**state.model_dump())

    try:
        return await hints.send_message(body.session_id, body.message.strip())
    except SessionNotFoundError:
        # Expired between the existence check and the turn
        raise HTTPException(status_code=404, detail="Session not found. Call init first.")
    except LLMError as exc:
        logger.warning("Hint turn failed, nothing persisted: %s", exc)
        return ChatReply(reply=APOLOGY_REPLY, hint_count=state.hint_count, done=state.done)


@router.get("/{session_id}", response_model=SessionState)
async def get_chat(
    session_id: str,
    hints: HintSessionService = Depends(get_hint_service),
) -> SessionState:
    state = hints.get_session(session_id)
    if state is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return state


@router.delete("")
async def delete_chat(
    body: ChatDeleteRequest,
    hints: HintSessionService = Depends(get_hint_service),
) -> dict:
    """Forget a session. Deleting an unknown session is not an error."""
    hints.delete_session(body.session_id)
    return {"success": True}
