"""Advice box API.

Submitting is open to guests and goes through moderation. The public list
only names who left advice; reading the messages requires an admin.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from callreveal.dependencies import get_advice_service, get_client_ip, require_admin
from callreveal.models.advice import AdviceAdminRead, AdviceCreate, AdvicePublic, AdviceRead
from callreveal.services.advice import AdviceRejectedError, AdviceService

router = APIRouter(prefix="/api/advice", tags=["advice"])


@router.post("", response_model=AdviceRead, status_code=201)
async def submit_advice(
    body: AdviceCreate,
    ip_address: str = Depends(get_client_ip),
    service: AdviceService = Depends(get_advice_service),
) -> AdviceRead:
    try:
        advice = await service.submit(body, ip_address=ip_address)
    except AdviceRejectedError as exc:
        raise HTTPException(status_code=422, detail=exc.reason)
    return AdviceRead.model_validate(advice)


@router.get("/public", response_model=list[AdvicePublic])
async def list_advice_public(
    service: AdviceService = Depends(get_advice_service),
) -> list[AdvicePublic]:
    return [AdvicePublic.model_validate(a) for a in service.list_all()]


@router.get("", response_model=list[AdviceAdminRead])
async def list_advice(
    _admin_id: str = Depends(require_admin),
    service: AdviceService = Depends(get_advice_service),
) -> list[AdviceAdminRead]:
    return [AdviceAdminRead.model_validate(a) for a in service.list_all()]


@router.delete("/{advice_id}")
async def delete_advice(
    advice_id: str,
    _admin_id: str = Depends(require_admin),
    service: AdviceService = Depends(get_advice_service),
) -> dict:
    if not service.delete(advice_id):
        raise HTTPException(status_code=404, detail="Not found")
    return {"deleted": True}
