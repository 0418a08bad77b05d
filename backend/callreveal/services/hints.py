"""Hint game: a chat that gives away a limited number of clues about the mission.

Each browser holds one session, stored in the KV store under
``chat:{session_id}`` for 24 hours. The model is told the secret in a
system prompt and must tag every reply ``[PISTA]`` (a real clue) or
``[CHARLA]`` (small talk). Only ``[PISTA]`` replies count towards the limit.

Classification is purely by prefix. Whether a "hint" actually leaks too
much is up to the model following the prompt; nothing here checks the
content of a clue.
"""

from __future__ import annotations

import enum
import logging
import re

from callreveal.models.chat import (
    ChatReply,
    HintMessage,
    HintSession,
    InitResult,
    MissionData,
    SessionState,
)
from callreveal.services.kv_store import KVStore
from callreveal.services.llm import LLMService

logger = logging.getLogger(__name__)

HINT_TAG = "[PISTA]"
CHATTER_TAG = "[CHARLA]"
_TAG_RE = re.compile(r"^\[(PISTA|CHARLA)\]\s*", re.IGNORECASE)

WELCOME_TEMPLATE = (
    "¡Hola! Tengo información sobre tu llamamiento misional. Puedo darte hasta "
    "{hints} misteriosas antes de que abras tu carta. ¿Qué te gustaría saber? "
    "Puedes preguntarme sobre el clima, la comida, la cultura..."
)
EXHAUSTED_TEMPLATE = "Ya te di {hints}. ¡Es hora de abrir tu carta!"
EMPTY_REPLY = "Hmm, no tengo más que decir por ahora."
APOLOGY_REPLY = "Lo siento, no pude pensar en una pista ahora mismo. Intenta de nuevo en un momento."


def _hints_phrase(count: int, definite: bool = False) -> str:
    if count == 1:
        return "la pista" if definite else "1 pista"
    return f"las {count} pistas" if definite else f"{count} pistas"


def welcome_message(max_hints: int = 3) -> str:
    return WELCOME_TEMPLATE.format(hints=_hints_phrase(max_hints))


def exhausted_reply(max_hints: int = 3) -> str:
    return EXHAUSTED_TEMPLATE.format(hints=_hints_phrase(max_hints, definite=True))


class SessionNotFoundError(Exception):
    """Raised when a message is sent before the session was initialized."""


class ReplyKind(str, enum.Enum):
    HINT = "hint"
    CHATTER = "chatter"


def classify_reply(text: str) -> ReplyKind:
    """HINT iff the raw reply starts with the literal ``[PISTA]`` tag."""
    if text.startswith(HINT_TAG):
        return ReplyKind.HINT
    return ReplyKind.CHATTER


def strip_tag(text: str) -> str:
    """Remove a leading [PISTA]/[CHARLA] tag and the whitespace after it."""
    return _TAG_RE.sub("", text, count=1)


def build_system_prompt(data: MissionData) -> str:
    return f"""Eres un asistente misterioso y divertido para un evento de revelación de llamamiento misional SUD.
Datos secretos: misión: {data.mission_name}, idioma: {data.language}, CCM: {data.training_center}, fecha: {data.entry_date}.

TU PERSONALIDAD: Eres como un amigo que sabe el secreto y disfruta dar pistas. Cálido, juguetón, misterioso.

OBJETIVO: Dar pistas REALES y CORRECTAS sobre el lugar, pero con un nivel de dificultad que haga pensar. La familia debe poder ir adivinando poco a poco, no de golpe.

PROHIBIDO:
- Decir el nombre del país, ciudad, estado, provincia, continente o idioma
- Mencionar cosas que sean ÍCONO ÚNICO de un solo lugar (ejemplo: tango=Argentina, sushi=Japón, Big Ben=Londres). Si algo es mundialmente famoso y asociado a UN solo lugar, NO lo menciones
- Ser evasivo ("no puedo decirte", "prefiero no mencionar")
- Dar más de UNA pista por respuesta

LO QUE SÍ PUEDES HACER:
- Contestar sí/no a preguntas directas (¿hace calor? ¿hay playa?)
- Mencionar comidas, costumbres, clima, paisajes que sean reales PERO que apliquen a varios lugares
- Dar datos curiosos que no sean el ícono #1 del lugar

NIVEL PROGRESIVO (esto es clave):
- Pistas tempranas: datos que apliquen a 5-10 países (clima, tipo de comida general, si hay playa/montaña)
- Pistas medias: datos que reduzcan a 3-5 países (una costumbre específica, un tipo de paisaje)
- Pistas finales: datos que reduzcan a 2-3 países (un dato curioso real, algo cultural específico)

FORMATO: Empieza con "{HINT_TAG}" si das información real. Usa "{CHATTER_TAG}" solo si no diste dato nuevo.

EJEMPLO (si fuera Argentina Buenos Aires):
- "¿Dónde es?" → "{HINT_TAG} Es un lugar con cuatro estaciones bien marcadas. Los veranos son calurosos y los inviernos frescos pero no extremos."
- "¿Qué comen?" → "{HINT_TAG} Les encanta la carne a la parrilla, es toda una tradición familiar de los domingos."
- "¿Es Argentina?" → "{HINT_TAG} No te confirmo nada, pero te doy otra pista: allí es muy común tomar una infusión caliente de hierba que se comparte en ronda con amigos."
- "¡Hola!" → "{CHATTER_TAG} ¡Hola! Pregúntame lo que quieras sobre el lugar."

Máximo 2-3 oraciones por respuesta. Español siempre."""


def _state(session: HintSession) -> SessionState:
    return SessionState(
        hint_count=session.hint_count,
        done=session.done,
        messages=session.visible_messages(),
    )


class HintSessionService:
    """State machine over KV-stored hint sessions.

    Absent -> initialized (0 hints) -> ... -> done (max_hints). Absent is
    whatever the store reports as missing: never created, expired, or
    deleted. Concurrent sends to one session are last-write-wins.
    """

    KEY_PREFIX = "chat:"

    def __init__(
        self,
        kv: KVStore,
        llm: LLMService,
        ttl_seconds: int = 86400,
        max_hints: int = 3,
    ) -> None:
        self._kv = kv
        self._llm = llm
        self._ttl = ttl_seconds
        self._max_hints = max_hints

    def _key(self, session_id: str) -> str:
        return f"{self.KEY_PREFIX}{session_id}"

    def _load(self, session_id: str) -> HintSession | None:
        raw = self._kv.get(self._key(session_id))
        if raw is None:
            return None
        return HintSession.model_validate(raw)

    def _save(self, session_id: str, session: HintSession) -> None:
        self._kv.put(
            self._key(session_id),
            session.model_dump(mode="json", by_alias=True),
            self._ttl,
        )

    def init_session(self, session_id: str, mission: MissionData) -> InitResult:
        """Create the session if absent; otherwise return it unchanged."""
        existing = self._load(session_id)
        if existing is not None:
            return InitResult(**_state(existing).model_dump())

        session = HintSession(
            messages=[
                HintMessage(role="system", content=build_system_prompt(mission)),
                HintMessage(role="assistant", content=welcome_message(self._max_hints)),
            ],
        )
        self._save(session_id, session)
        logger.info("Hint session initialized")
        return InitResult(**_state(session).model_dump())

    async def send_message(self, session_id: str, text: str) -> ChatReply:
        """Run one turn of the game.

        Raises SessionNotFoundError if the session does not exist and
        LLMError if the model is unreachable; in both cases nothing is
        written.
        """
        session = self._load(session_id)
        if session is None:
            raise SessionNotFoundError("Session not found. Call init first.")

        if session.done:
            return ChatReply(
                reply=exhausted_reply(self._max_hints),
                hint_count=session.hint_count,
                done=True,
            )

        transcript = [*session.messages, HintMessage(role="user", content=text)]
        response = await self._llm.chat(transcript)
        raw_reply = response.text or EMPTY_REPLY

        hint_count = session.hint_count
        if classify_reply(raw_reply) is ReplyKind.HINT:
            hint_count = min(hint_count + 1, self._max_hints)
        # The tagged reply is kept so later turns see the model's own tagging
        updated = HintSession(
            messages=[*transcript, HintMessage(role="assistant", content=raw_reply)],
            hint_count=hint_count,
            done=hint_count >= self._max_hints,
        )
        self._save(session_id, updated)

        if updated.done and not session.done:
            logger.info("Hint session exhausted after %d hints", hint_count)
        return ChatReply(reply=strip_tag(raw_reply), hint_count=hint_count, done=updated.done)

    def get_session(self, session_id: str) -> SessionState | None:
        session = self._load(session_id)
        if session is None:
            return None
        return _state(session)

    def delete_session(self, session_id: str) -> None:
        self._kv.delete(self._key(session_id))
