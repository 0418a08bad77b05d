"""Guest predictions API.

Anyone may submit or list guesses; the admin listing adds the session id
and client address, and only admins can delete.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response

from callreveal.dependencies import get_client_ip, get_prediction_service, require_admin
from callreveal.models.prediction import (
    PredictionAdminRead,
    PredictionCreate,
    PredictionRead,
)
from callreveal.services.predictions import PredictionService

router = APIRouter(prefix="/api/predictions", tags=["predictions"])


@router.post("", response_model=PredictionRead)
async def submit_prediction(
    body: PredictionCreate,
    response: Response,
    ip_address: str = Depends(get_client_ip),
    service: PredictionService = Depends(get_prediction_service),
) -> PredictionRead:
    """Create the session's guess (201) or replace it (200)."""
    prediction, created = service.create_or_update(body, ip_address=ip_address)
    response.status_code = 201 if created else 200
    return PredictionRead.model_validate(prediction)


@router.get("/session/{session_id}", response_model=PredictionRead)
async def get_session_prediction(
    session_id: str,
    service: PredictionService = Depends(get_prediction_service),
) -> PredictionRead:
    prediction = service.get_by_session(session_id)
    if prediction is None:
        raise HTTPException(status_code=404, detail="Not found")
    return PredictionRead.model_validate(prediction)


@router.get("", response_model=list[PredictionRead])
async def list_predictions(
    service: PredictionService = Depends(get_prediction_service),
) -> list[PredictionRead]:
    return [PredictionRead.model_validate(p) for p in service.list_all()]


@router.get("/admin", response_model=list[PredictionAdminRead])
async def list_predictions_admin(
    _admin_id: str = Depends(require_admin),
    service: PredictionService = Depends(get_prediction_service),
) -> list[PredictionAdminRead]:
    return [PredictionAdminRead.model_validate(p) for p in service.list_all()]


@router.delete("/{prediction_id}")
async def delete_prediction(
    prediction_id: str,
    _admin_id: str = Depends(require_admin),
    service: PredictionService = Depends(get_prediction_service),
) -> dict:
    if not service.delete(prediction_id):
        raise HTTPException(status_code=404, detail="Not found")
    return {"deleted": True}
