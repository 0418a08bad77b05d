"""Reveal orchestration: projections of the secret record and admin writes.

The record is a singleton. RevelationRepository owns every query;
RevelationService combines the access policy with the field cipher so
plaintext is only produced for callers allowed to see it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlmodel import Session, select

from callreveal.clock import Clock, utc_now
from callreveal.models.chat import MissionData
from callreveal.models.revelation import (
    EventSettings,
    MissionFields,
    Revelation,
    RevelationProjection,
)
from callreveal.services.access_policy import (
    DEFAULT_OFFSET_MINUTES,
    AccessState,
    can_toggle_reveal,
    evaluate_access,
    projection_state,
)
from callreveal.services.encryption import SENSITIVE_FIELDS, FieldCipher

logger = logging.getLogger(__name__)

HIDDEN_PLACEHOLDER = "???"
MASKED_PLACEHOLDER = "••••••••"
REVEAL_TOO_EARLY_MESSAGE = "No puedes revelar antes de que termine el contador."

# Shown even while hidden; everything else in SENSITIVE_FIELDS is gated
_GATED_FIELDS = tuple(f for f in SENSITIVE_FIELDS if f != "missionary_name")


@dataclass(frozen=True, slots=True)
class RevealDenied:
    """Reveal requested before the countdown ended. Nothing was changed."""

    message: str = REVEAL_TOO_EARLY_MESSAGE


class RevelationRepository:
    """Persistence for the singleton reveal record."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def find_singleton(self) -> Revelation | None:
        return self._db.exec(select(Revelation).limit(1)).first()

    def upsert_singleton(self, fields: dict[str, Any]) -> Revelation:
        """Update the existing record or create it."""
        existing = self.find_singleton()
        if existing is None:
            record = Revelation(**fields)
        else:
            record = existing
            for key, value in fields.items():
                setattr(record, key, value)
            record.updated_at = datetime.now(timezone.utc)
        self._db.add(record)
        self._db.commit()
        self._db.refresh(record)
        return record

    def update_fields(self, fields: dict[str, Any]) -> Revelation | None:
        """Update an existing record only. Returns None if there is none."""
        existing = self.find_singleton()
        if existing is None:
            return None
        for key, value in fields.items():
            setattr(existing, key, value)
        existing.updated_at = datetime.now(timezone.utc)
        self._db.add(existing)
        self._db.commit()
        self._db.refresh(existing)
        return existing

    def toggle_revealed(self) -> Revelation | None:
        existing = self.find_singleton()
        if existing is None:
            return None
        return self.update_fields({"is_revealed": not existing.is_revealed})


class RevelationService:
    def __init__(
        self,
        repo: RevelationRepository,
        cipher: FieldCipher,
        clock: Clock = utc_now,
        offset_minutes: int = DEFAULT_OFFSET_MINUTES,
    ) -> None:
        self._repo = repo
        self._cipher = cipher
        self._clock = clock
        self._offset = offset_minutes

    # ── reads ────────────────────────────────────────────────────

    def find(self) -> Revelation | None:
        return self._repo.find_singleton()

    def access_state(self, rev: Revelation, is_admin: bool) -> AccessState:
        """Read policy (HIDDEN/OPEN) for ``rev`` at the current instant."""
        return evaluate_access(
            rev.is_revealed, rev.opening_date, is_admin, self._clock(), self._offset
        )

    def get_projection(self, is_admin: bool = False) -> RevelationProjection | None:
        """What the caller may see of the record, or None if none exists.

        Raises DecryptionError if a stored field has been tampered with.
        """
        rev = self._repo.find_singleton()
        if rev is None:
            return None

        state = projection_state(
            rev.is_revealed, rev.opening_date, is_admin, self._clock(), self._offset
        )
        common = {
            "id": rev.id,
            "state": state.value,
            "is_revealed": rev.is_revealed,
            "missionary_name": self._cipher.decrypt(rev.missionary_name),
            "opening_date": rev.opening_date,
            "location_address": rev.location_address,
            "location_url": rev.location_url,
            "created_at": rev.created_at,
            "updated_at": rev.updated_at,
        }

        if state is AccessState.HIDDEN:
            return RevelationProjection(
                **common, **{f: HIDDEN_PLACEHOLDER for f in _GATED_FIELDS}
            )
        if state is AccessState.MASKED:
            return RevelationProjection(
                **common, **{f: MASKED_PLACEHOLDER for f in _GATED_FIELDS}, has_data=True
            )

        gated = {f: self._cipher.decrypt(getattr(rev, f)) for f in _GATED_FIELDS}
        return RevelationProjection(
            **common,
            **gated,
            has_data=True,
            pdf_text=self._decrypt_optional(rev.pdf_text),
            normalized_pdf_text=self._decrypt_optional(rev.normalized_pdf_text),
        )

    def _decrypt_optional(self, blob: str) -> str | None:
        # Empty column or encrypted "": no source text was stored
        if not blob:
            return None
        return self._cipher.decrypt(blob) or None

    def get_mission_data(self) -> MissionData | None:
        """Decrypted facts for the hint game, regardless of reveal state."""
        rev = self._repo.find_singleton()
        if rev is None:
            return None
        return MissionData(
            mission_name=self._cipher.decrypt(rev.mission_name),
            language=self._cipher.decrypt(rev.language),
            training_center=self._cipher.decrypt(rev.training_center),
            entry_date=self._cipher.decrypt(rev.entry_date),
        )

    def decrypt_mission_name(self, rev: Revelation) -> str:
        return self._cipher.decrypt(rev.mission_name)

    def get_event_settings(self) -> EventSettings | None:
        rev = self._repo.find_singleton()
        if rev is None:
            return None
        return EventSettings(
            opening_date=rev.opening_date,
            location_address=rev.location_address,
            location_url=rev.location_url,
        )

    # ── writes ───────────────────────────────────────────────────

    def _encrypt_fields(self, fields: MissionFields) -> dict[str, str]:
        """Single path from plaintext fields to stored blobs."""
        return self._cipher.encrypt_record(fields.model_dump(include=set(SENSITIVE_FIELDS)))

    def update_from_extraction(
        self,
        fields: MissionFields,
        raw_text: str,
        normalized_text: str | None = None,
    ) -> Revelation:
        """Store extracted (or admin-confirmed) call-letter data, creating the record."""
        encrypted = self._encrypt_fields(fields)
        encrypted["pdf_text"] = self._cipher.encrypt(raw_text)
        # An absent normalized text is stored as ciphertext of ""
        encrypted["normalized_pdf_text"] = self._cipher.encrypt(normalized_text or "")
        rev = self._repo.upsert_singleton(encrypted)
        logger.info("Reveal record updated from call letter (id=%s)", rev.id)
        return rev

    def update_manual(self, fields: MissionFields) -> Revelation:
        """Admin hand edit of the sensitive fields, creating the record."""
        encrypted = self._encrypt_fields(fields)
        if self._repo.find_singleton() is None:
            encrypted["pdf_text"] = self._cipher.encrypt("")
            encrypted["normalized_pdf_text"] = self._cipher.encrypt("")
        rev = self._repo.upsert_singleton(encrypted)
        logger.info("Reveal record updated manually (id=%s)", rev.id)
        return rev

    def update_missionary_name(self, name: str) -> Revelation | None:
        return self._repo.update_fields({"missionary_name": self._cipher.encrypt(name)})

    def toggle_reveal(self) -> Revelation | RevealDenied | None:
        rev = self._repo.find_singleton()
        if rev is None:
            return None
        if not can_toggle_reveal(rev.is_revealed, rev.opening_date, self._clock(), self._offset):
            logger.info("Reveal refused: opening date %r not reached", rev.opening_date)
            return RevealDenied()
        updated = self._repo.toggle_revealed()
        if updated is not None:
            logger.info("Reveal flag set to %s", updated.is_revealed)
        return updated

    def update_event_settings(self, settings: EventSettings) -> Revelation | None:
        return self._repo.update_fields(settings.model_dump())
