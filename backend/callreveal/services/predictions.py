"""Guest predictions: one guess per session, listed newest first."""

from __future__ import annotations

import logging

from sqlmodel import Session, col, select

from callreveal.models.prediction import Prediction, PredictionCreate

logger = logging.getLogger(__name__)


class PredictionRepository:
    def __init__(self, db: Session) -> None:
        self._db = db

    def find_by_session(self, session_id: str) -> Prediction | None:
        return self._db.exec(
            select(Prediction).where(Prediction.session_id == session_id).limit(1)
        ).first()

    def find_by_id(self, prediction_id: str) -> Prediction | None:
        return self._db.get(Prediction, prediction_id)

    def save(self, prediction: Prediction) -> Prediction:
        self._db.add(prediction)
        self._db.commit()
        self._db.refresh(prediction)
        return prediction

    def list_newest_first(self) -> list[Prediction]:
        return list(
            self._db.exec(select(Prediction).order_by(col(Prediction.created_at).desc())).all()
        )

    def delete(self, prediction: Prediction) -> None:
        self._db.delete(prediction)
        self._db.commit()


class PredictionService:
    def __init__(self, repo: PredictionRepository) -> None:
        self._repo = repo

    def create_or_update(
        self, data: PredictionCreate, ip_address: str | None = None
    ) -> tuple[Prediction, bool]:
        """Store the session's guess. Returns (prediction, created).

        A session that already guessed gets its row overwritten in place;
        the original creation time is kept.
        """
        existing = self._repo.find_by_session(data.session_id)
        if existing is None:
            prediction = self._repo.save(
                Prediction(**data.model_dump(), ip_address=ip_address)
            )
            logger.info("Prediction created (id=%s)", prediction.id)
            return prediction, True

        for key, value in data.model_dump(exclude={"session_id"}).items():
            setattr(existing, key, value)
        existing.ip_address = ip_address
        prediction = self._repo.save(existing)
        logger.info("Prediction updated (id=%s)", prediction.id)
        return prediction, False

    def get_by_session(self, session_id: str) -> Prediction | None:
        return self._repo.find_by_session(session_id)

    def list_all(self) -> list[Prediction]:
        return self._repo.list_newest_first()

    def delete(self, prediction_id: str) -> bool:
        """Remove a prediction. False if it does not exist."""
        prediction = self._repo.find_by_id(prediction_id)
        if prediction is None:
            return False
        self._repo.delete(prediction)
        logger.info("Prediction deleted (id=%s)", prediction_id)
        return True
