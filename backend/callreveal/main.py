from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlmodel import Session, select

import callreveal.models  # noqa: F401 — register SQLModel tables

from callreveal.config import get_settings
from callreveal.db import create_db_and_tables, engine
from callreveal.models.auth import AdminUser
from callreveal.routers import advice, auth, chat, health, predictions, revelation
from callreveal.services.encryption import DecryptionError
from callreveal.services.geocoding import load_missions_list
from callreveal.services.kv_store import KVStore
from callreveal.services.llm import LLMService

logger = logging.getLogger(__name__)

KV_SWEEP_INTERVAL_SECONDS = 3600


def _seed_admin(email: str, password: str) -> None:
    """Create the configured admin account once. Never resets a password."""
    from callreveal.routers.auth import ensure_admin

    with Session(engine) as session:
        existing = session.exec(
            select(AdminUser).where(AdminUser.email == email.strip().lower())
        ).first()
        if existing is None:
            ensure_admin(session, email, password)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    create_db_and_tables()

    if settings.admin_email and settings.admin_password:
        _seed_admin(settings.admin_email, settings.admin_password)

    kv_store = KVStore(engine)
    app.state.kv_store = kv_store

    # Two models: a small one for the hint game, a large one for extraction
    # and geocoding. Both share the Ollama host and the optional fallback.
    app.state.chat_llm = LLMService(
        ollama_url=settings.ollama_url,
        model=settings.chat_model,
        timeout=settings.llm_timeout_seconds,
        fallback_url=settings.fallback_llm_url,
        fallback_api_key=settings.fallback_llm_api_key,
        fallback_model=settings.fallback_chat_model,
    )
    app.state.extraction_llm = LLMService(
        ollama_url=settings.ollama_url,
        model=settings.extraction_model,
        timeout=settings.llm_timeout_seconds,
        fallback_url=settings.fallback_llm_url,
        fallback_api_key=settings.fallback_llm_api_key,
        fallback_model=settings.fallback_extraction_model,
    )

    app.state.missions_list = load_missions_list(settings.missions_list_path)

    # Expired entries are already invisible to reads; the sweep only reclaims rows
    async def _kv_sweep_loop() -> None:
        while True:
            await asyncio.sleep(KV_SWEEP_INTERVAL_SECONDS)
            try:
                kv_store.sweep_expired()
            except Exception:
                logger.exception("KV sweep error")

    sweep_task = asyncio.create_task(_kv_sweep_loop())

    yield

    # Shutdown: cancel KV sweep
    sweep_task.cancel()
    try:
        await sweep_task
    except asyncio.CancelledError:
        pass


app = FastAPI(
    title="Call Reveal",
    description="Family missionary call reveal",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(DecryptionError)
async def decryption_error_handler(request: Request, exc: DecryptionError):
    """Stored ciphertext failed to decrypt: wrong key or tampered row."""
    logger.error("Decryption failed on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Stored data could not be decrypted"},
    )


settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        f"https://{settings.domain}",
        "http://localhost:3000",
        "http://localhost:5173",
        *settings.cors_origins,
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(health.router)
app.include_router(revelation.router)
app.include_router(chat.router)
app.include_router(predictions.router)
app.include_router(advice.router)
