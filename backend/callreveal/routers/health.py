from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlmodel import Session, text

from callreveal.db import get_session

router = APIRouter(prefix="/api", tags=["health"])

SERVICE_NAME = "callreveal-backend"
VERSION = "0.1.0"


async def _llm_status(llm_service) -> dict:
    if llm_service is None:
        return {"ollama": "not_configured", "fallback": "not_configured"}
    ollama_ok = await llm_service.check_health()
    return {
        "ollama": "ok" if ollama_ok else "unreachable",
        "fallback": "configured" if llm_service.has_fallback else "not_configured",
    }


@router.get("/health")
async def health(request: Request, session: Session = Depends(get_session)):
    db_status = "ok"
    try:
        session.exec(text("SELECT 1"))
    except Exception as exc:
        db_status = f"error: {exc}"

    chat_llm = getattr(request.app.state, "chat_llm", None)
    extraction_llm = getattr(request.app.state, "extraction_llm", None)
    llm_status = {
        "chat": await _llm_status(chat_llm),
        "extraction": await _llm_status(extraction_llm),
    }

    kv_status = "ok" if getattr(request.app.state, "kv_store", None) is not None else "unavailable"

    # LLM reachability does not affect the overall status
    is_healthy = db_status == "ok" and kv_status == "ok"

    return {
        "status": "healthy" if is_healthy else "unhealthy",
        "service": SERVICE_NAME,
        "version": VERSION,
        "checks": {
            "database": db_status,
            "kv_store": kv_status,
            "llm": llm_status,
        },
    }


@router.get("/health/ready")
async def readiness(session: Session = Depends(get_session)):
    try:
        session.exec(text("SELECT 1"))
    except Exception as exc:
        return JSONResponse(
            status_code=503,
            content={
                "status": "not ready",
                "service": SERVICE_NAME,
                "error": str(exc),
            },
        )

    return {
        "status": "ready",
        "service": SERVICE_NAME,
    }
