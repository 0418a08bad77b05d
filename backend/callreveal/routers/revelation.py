"""Reveal router: projections, admin edits, call-letter upload, destination.

Read endpoints are public; what they return depends on the reveal state,
the opening date and whether an admin token was presented. Every mutation
requires an admin.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response

from callreveal.dependencies import (
    get_destination_service,
    get_extractor,
    get_is_admin,
    get_revelation_service,
    require_admin,
)
from callreveal.models.revelation import (
    ConfirmPdfRequest,
    Destination,
    EventSettings,
    MissionaryNameUpdate,
    PdfTextRequest,
    RevelationProjection,
    RevelationStatus,
    RevelationUpdate,
)
from callreveal.services.extraction import (
    CallLetterExtractor,
    ExtractionError,
    normalize_call_letter,
)
from callreveal.services.geocoding import DestinationService, GeocodingError
from callreveal.services.llm import LLMError
from callreveal.services.revelation import RevealDenied, RevelationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/revelation", tags=["revelation"])

_NOT_FOUND = "No revelation found"


@router.get("", response_model=RevelationProjection | None)
async def get_revelation(
    is_admin: bool = Depends(get_is_admin),
    service: RevelationService = Depends(get_revelation_service),
) -> RevelationProjection | None:
    """Caller-appropriate view of the reveal; null before any data exists."""
    return service.get_projection(is_admin=is_admin)


@router.get("/admin", response_model=RevelationProjection | None)
async def get_revelation_admin(
    _admin_id: str = Depends(require_admin),
    service: RevelationService = Depends(get_revelation_service),
) -> RevelationProjection | None:
    return service.get_projection(is_admin=True)


@router.put("", response_model=RevelationStatus)
async def update_revelation(
    body: RevelationUpdate,
    _admin_id: str = Depends(require_admin),
    service: RevelationService = Depends(get_revelation_service),
) -> RevelationStatus:
    """Hand-edit the sensitive fields (creates the record if needed)."""
    rev = service.update_manual(body)
    return RevelationStatus.model_validate(rev)


@router.patch("/missionary-name")
async def update_missionary_name(
    body: MissionaryNameUpdate,
    _admin_id: str = Depends(require_admin),
    service: RevelationService = Depends(get_revelation_service),
) -> dict:
    rev = service.update_missionary_name(body.missionary_name)
    if rev is None:
        raise HTTPException(status_code=404, detail=_NOT_FOUND)
    return {"success": True, "missionary_name": body.missionary_name}


@router.patch("/reveal", response_model=RevelationStatus)
async def toggle_reveal(
    _admin_id: str = Depends(require_admin),
    service: RevelationService = Depends(get_revelation_service),
) -> RevelationStatus:
    """Flip the reveal flag. Revealing waits for the opening date; hiding does not."""
    result = service.toggle_reveal()
    if result is None:
        raise HTTPException(status_code=404, detail=_NOT_FOUND)
    if isinstance(result, RevealDenied):
        raise HTTPException(status_code=409, detail=result.message)
    return RevelationStatus.model_validate(result)


@router.get("/event-settings", response_model=EventSettings)
async def get_event_settings(
    response: Response,
    service: RevelationService = Depends(get_revelation_service),
) -> EventSettings:
    settings = service.get_event_settings()
    if settings is None:
        raise HTTPException(status_code=404, detail=_NOT_FOUND)
    response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate"
    return settings


@router.put("/event-settings", response_model=RevelationStatus)
async def update_event_settings(
    body: EventSettings,
    _admin_id: str = Depends(require_admin),
    service: RevelationService = Depends(get_revelation_service),
) -> RevelationStatus:
    rev = service.update_event_settings(body)
    if rev is None:
        raise HTTPException(status_code=404, detail=_NOT_FOUND)
    return RevelationStatus.model_validate(rev)


@router.post("/extract-pdf-preview")
async def extract_pdf_preview(
    body: PdfTextRequest,
    _admin_id: str = Depends(require_admin),
    extractor: CallLetterExtractor = Depends(get_extractor),
) -> dict:
    """Run extraction for the admin to review. Nothing is stored."""
    try:
        extracted = await extractor.extract(body.text)
    except (LLMError, ExtractionError) as exc:
        logger.warning("Call letter preview extraction failed: %s", exc)
        raise HTTPException(status_code=502, detail="Failed to extract data from PDF")
    return {"success": True, "data": extracted.model_dump()}


@router.post("/extract-pdf")
async def extract_pdf(
    body: PdfTextRequest,
    _admin_id: str = Depends(require_admin),
    extractor: CallLetterExtractor = Depends(get_extractor),
    service: RevelationService = Depends(get_revelation_service),
) -> dict:
    """Extract and store in one step. Only the missionary name is echoed back."""
    try:
        extracted = await extractor.extract(body.text)
    except (LLMError, ExtractionError) as exc:
        logger.warning("Call letter extraction failed: %s", exc)
        raise HTTPException(status_code=502, detail="Failed to extract data from PDF")

    normalized = normalize_call_letter(body.text, extracted.fields)
    service.update_from_extraction(extracted.fields, body.text, normalized)
    return {"success": True, "missionary_name": extracted.fields.missionary_name}


@router.post("/confirm-pdf")
async def confirm_pdf(
    body: ConfirmPdfRequest,
    _admin_id: str = Depends(require_admin),
    service: RevelationService = Depends(get_revelation_service),
) -> dict:
    """Store fields the admin reviewed after a preview."""
    normalized = normalize_call_letter(body.pdf_text, body)
    service.update_from_extraction(body, body.pdf_text, normalized)
    return {"success": True}


@router.get("/destination", response_model=Destination)
async def get_destination(
    is_admin: bool = Depends(get_is_admin),
    service: DestinationService = Depends(get_destination_service),
) -> Destination:
    """Coordinates of the mission for the results map, once revealed."""
    try:
        destination = await service.get_destination(is_admin=is_admin)
    except (LLMError, GeocodingError) as exc:
        logger.warning("Destination geocode failed: %s", exc)
        raise HTTPException(status_code=502, detail="Failed to get destination coordinates")
    if destination is None:
        raise HTTPException(status_code=403, detail="Not yet revealed")
    return destination
