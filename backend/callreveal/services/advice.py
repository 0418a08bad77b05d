"""Advice box with model-based moderation.

Guests leave a message for the missionary. Before it is stored, the
extraction model judges whether it is appropriate for a family event.
Moderation fails open: an unreachable model or an unreadable verdict lets
the message through, so guests are never blocked by an outage.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass

from sqlmodel import Session, col, select

from callreveal.models.advice import Advice, AdviceCreate
from callreveal.services.llm import LLMError, LLMService

logger = logging.getLogger(__name__)

_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)

MODERATION_PROMPT = """You are a content moderator for a family-friendly LDS missionary event website. Analyze the following message and determine if it should be approved or rejected.

Reject if the message contains:
- Profanity, vulgar language, or insults (in any language, including Spanish)
- Spam, advertisements, or irrelevant content
- Hate speech, discrimination, or offensive content
- Inappropriate sexual content
- Gibberish or nonsensical text (random characters, keyboard smashing)

Approve if:
- It's a genuine, kind, or supportive message/advice
- It's written in any language but is respectful

Return ONLY a valid JSON object with keys "approved" (boolean) and "reason" (string, brief explanation in Spanish). No extra text.

Message to analyze:
{message}

JSON:"""

DEFAULT_REJECTION = "Tu mensaje no pudo ser aceptado."


@dataclass(frozen=True, slots=True)
class ModerationResult:
    approved: bool
    reason: str = ""


class AdviceRejectedError(Exception):
    """Raised when moderation refuses a message. Nothing is stored."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


def parse_moderation(text: str) -> ModerationResult:
    """Read the model's verdict. Anything unreadable counts as approved."""
    match = _JSON_OBJECT_RE.search(text)
    if match is None:
        return ModerationResult(approved=True)
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        return ModerationResult(approved=True)
    if not isinstance(parsed, dict):
        return ModerationResult(approved=True)
    return ModerationResult(
        approved=parsed.get("approved") is not False,
        reason=str(parsed.get("reason") or ""),
    )


class AdviceModerator:
    def __init__(self, llm: LLMService) -> None:
        self._llm = llm

    async def moderate(self, message: str) -> ModerationResult:
        prompt = MODERATION_PROMPT.format(message=json.dumps(message, ensure_ascii=False))
        try:
            response = await self._llm.generate(prompt, temperature=0.0)
        except LLMError as exc:
            logger.warning("Advice moderation unavailable, accepting message: %s", exc)
            return ModerationResult(approved=True)
        return parse_moderation(response.text)


class AdviceRepository:
    def __init__(self, db: Session) -> None:
        self._db = db

    def create(self, advice: Advice) -> Advice:
        self._db.add(advice)
        self._db.commit()
        self._db.refresh(advice)
        return advice

    def find_by_id(self, advice_id: str) -> Advice | None:
        return self._db.get(Advice, advice_id)

    def list_newest_first(self) -> list[Advice]:
        return list(self._db.exec(select(Advice).order_by(col(Advice.created_at).desc())).all())

    def delete(self, advice: Advice) -> None:
        self._db.delete(advice)
        self._db.commit()


class AdviceService:
    def __init__(
        self,
        repo: AdviceRepository,
        moderator: AdviceModerator | None = None,
    ) -> None:
        self._repo = repo
        self._moderator = moderator

    async def submit(self, data: AdviceCreate, ip_address: str | None = None) -> Advice:
        """Moderate (when enabled) and store a message.

        Raises AdviceRejectedError if the moderator refuses it.
        """
        if self._moderator is not None:
            verdict = await self._moderator.moderate(data.advice)
            if not verdict.approved:
                logger.info("Advice rejected by moderation: %s", verdict.reason)
                raise AdviceRejectedError(verdict.reason or DEFAULT_REJECTION)

        advice = self._repo.create(Advice(**data.model_dump(), ip_address=ip_address))
        logger.info("Advice stored (id=%s)", advice.id)
        return advice

    def list_all(self) -> list[Advice]:
        return self._repo.list_newest_first()

    def delete(self, advice_id: str) -> bool:
        advice = self._repo.find_by_id(advice_id)
        if advice is None:
            return False
        self._repo.delete(advice)
        logger.info("Advice deleted (id=%s)", advice_id)
        return True
