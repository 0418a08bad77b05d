"""FastAPI dependency injection for admin auth, reveal and guest services."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from callreveal.config import get_settings
from callreveal.db import get_session
from callreveal.routers.auth import decode_token
from callreveal.services.advice import AdviceModerator, AdviceRepository, AdviceService
from callreveal.services.encryption import FieldCipher
from callreveal.services.extraction import CallLetterExtractor
from callreveal.services.geocoding import DestinationService, MissionGeocoder
from callreveal.services.hints import HintSessionService
from callreveal.services.kv_store import KVStore
from callreveal.services.llm import LLMService
from callreveal.services.predictions import PredictionRepository, PredictionService
from callreveal.services.revelation import RevelationRepository, RevelationService

_bearer_scheme = HTTPBearer(auto_error=True)
_optional_bearer_scheme = HTTPBearer(auto_error=False)


def require_admin(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
) -> str:
    """Validate the admin JWT from the Authorization header.

    Returns the admin id (sub claim). Raises HTTPException 401 if the token
    is missing, expired, or invalid.
    """
    return decode_token(credentials.credentials)["sub"]


def get_is_admin(
    credentials: HTTPAuthorizationCredentials | None = Depends(_optional_bearer_scheme),
) -> bool:
    """True when a valid admin token is presented.

    Guests send no token and get False. A token that is present but invalid
    is rejected with 401 rather than silently downgraded.
    """
    if credentials is None:
        return False
    decode_token(credentials.credentials)
    return True


def get_field_cipher() -> FieldCipher:
    return FieldCipher(get_settings().encryption_key)


def get_revelation_service(
    db: Session = Depends(get_session),
    cipher: FieldCipher = Depends(get_field_cipher),
) -> RevelationService:
    """Construct RevelationService for this request's DB session."""
    return RevelationService(
        RevelationRepository(db),
        cipher,
        offset_minutes=get_settings().opening_utc_offset_minutes,
    )


def get_kv_store(request: Request) -> KVStore:
    """Inject the KVStore initialized at startup."""
    kv = getattr(request.app.state, "kv_store", None)
    if kv is None:
        raise HTTPException(status_code=503, detail="Key-value store unavailable")
    return kv


def get_chat_llm(request: Request) -> LLMService:
    """Inject the small-model LLMService used by the hint game."""
    svc = getattr(request.app.state, "chat_llm", None)
    if svc is None:
        raise HTTPException(
            status_code=503,
            detail="LLM service unavailable — Ollama not configured",
        )
    return svc


def get_extraction_llm(request: Request) -> LLMService:
    """Inject the large-model LLMService used for extraction and geocoding."""
    svc = getattr(request.app.state, "extraction_llm", None)
    if svc is None:
        raise HTTPException(
            status_code=503,
            detail="LLM service unavailable — Ollama not configured",
        )
    return svc


def get_hint_service(
    kv: KVStore = Depends(get_kv_store),
    llm: LLMService = Depends(get_chat_llm),
) -> HintSessionService:
    settings = get_settings()
    return HintSessionService(
        kv,
        llm,
        ttl_seconds=settings.hint_session_ttl_seconds,
        max_hints=settings.max_hints,
    )


def get_extractor(
    llm: LLMService = Depends(get_extraction_llm),
) -> CallLetterExtractor:
    return CallLetterExtractor(llm)


def get_destination_service(
    request: Request,
    revelation_service: RevelationService = Depends(get_revelation_service),
    kv: KVStore = Depends(get_kv_store),
    llm: LLMService = Depends(get_extraction_llm),
) -> DestinationService:
    """Construct DestinationService; the gazetteer is loaded once at startup."""
    geocoder = MissionGeocoder(llm, getattr(request.app.state, "missions_list", None))
    return DestinationService(
        revelation_service,
        kv,
        geocoder,
        ttl_seconds=get_settings().destination_cache_ttl_seconds,
    )


def get_client_ip(request: Request) -> str:
    """Best-effort guest address, preferring the proxy-supplied header."""
    forwarded = request.headers.get("cf-connecting-ip") or request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client is not None:
        return request.client.host
    return "unknown"


def get_prediction_service(db: Session = Depends(get_session)) -> PredictionService:
    return PredictionService(PredictionRepository(db))


def get_advice_service(
    db: Session = Depends(get_session),
    llm: LLMService = Depends(get_extraction_llm),
) -> AdviceService:
    moderator = AdviceModerator(llm) if get_settings().advice_moderation else None
    return AdviceService(AdviceRepository(db), moderator)
