from __future__ import annotations

import os
import tempfile
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

# Set test environment BEFORE importing callreveal modules.
# callreveal.db creates the engine at module level using get_settings().db_url,
# so we must override the env vars before any callreveal imports.
_test_tmp = tempfile.mkdtemp(prefix="callreveal-test-")
os.environ.setdefault("DATA_DIR", os.path.join(_test_tmp, "data"))
os.environ.setdefault("DB_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-for-integration-tests-only")
os.environ.setdefault("ENCRYPTION_KEY", "test-encryption-key")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from callreveal.db import get_session
from callreveal.dependencies import (
    get_chat_llm,
    get_extraction_llm,
    get_kv_store,
    get_revelation_service,
)
from callreveal.main import app as fastapi_app
from callreveal.models.auth import AdminUser
from callreveal.routers.auth import create_access_token, hash_password
from callreveal.services.encryption import FieldCipher
from callreveal.services.kv_store import KVStore
from callreveal.services.llm import LLMResponse, LLMService
from callreveal.services.revelation import RevelationRepository, RevelationService

TEST_KEY = "test-encryption-key"
OPENING_DATE = "2025-06-01T18:00"  # 2025-06-02T00:00Z at UTC-6
ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "correct horse battery staple"


class FakeClock:
    """Settable stand-in for utc_now()."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def llm_response(text: str, model: str = "test-model") -> LLMResponse:
    return LLMResponse(text=text, model=model, total_duration_ms=100, backend="ollama")


# ── Database fixtures ─────────────────────────────────────────────────


@pytest.fixture(name="engine")
def engine_fixture():
    """Create an in-memory SQLite engine for testing.

    Uses StaticPool so every connection shares the same in-memory database.
    Recreates tables per test for full isolation.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(name="session")
def session_fixture(engine):
    """Provide a fresh session per test."""
    with Session(engine) as session:
        yield session


# ── Time and crypto fixtures ──────────────────────────────────────────


@pytest.fixture(name="before_opening")
def before_opening_fixture() -> FakeClock:
    """One hour before OPENING_DATE."""
    return FakeClock(datetime(2025, 6, 1, 23, 0, tzinfo=timezone.utc))


@pytest.fixture(name="after_opening")
def after_opening_fixture() -> FakeClock:
    """One hour after OPENING_DATE."""
    return FakeClock(datetime(2025, 6, 2, 1, 0, tzinfo=timezone.utc))


@pytest.fixture(name="cipher")
def cipher_fixture() -> FieldCipher:
    return FieldCipher(TEST_KEY)


@pytest.fixture(name="kv_store")
def kv_store_fixture(engine, after_opening: FakeClock) -> KVStore:
    return KVStore(engine, clock=after_opening)


@pytest.fixture(name="repo")
def repo_fixture(session) -> RevelationRepository:
    return RevelationRepository(session)


@pytest.fixture(name="revelation_service")
def revelation_service_fixture(repo, cipher, after_opening) -> RevelationService:
    """Service whose clock can be moved by the test through `after_opening`."""
    return RevelationService(repo, cipher, clock=after_opening)


# ── Mock AI service fixtures ──────────────────────────────────────────


@pytest.fixture(name="mock_llm_service")
def mock_llm_service_fixture() -> MagicMock:
    """Mock LLMService for tests that don't need real Ollama."""
    mock = MagicMock(spec=LLMService)
    mock.model = "test-model"
    mock.chat = AsyncMock(return_value=llm_response("[CHARLA] Mock LLM response"))
    mock.generate = AsyncMock(return_value=llm_response("Mock LLM response"))
    mock.check_health = AsyncMock(return_value=True)
    mock.has_fallback = False
    return mock


# ── HTTP client fixtures ──────────────────────────────────────────────


@pytest.fixture(name="admin")
def admin_fixture(session) -> AdminUser:
    admin = AdminUser(email=ADMIN_EMAIL, password_hash=hash_password(ADMIN_PASSWORD))
    session.add(admin)
    session.commit()
    session.refresh(admin)
    return admin


@pytest.fixture(name="client")
def client_fixture(session, kv_store, mock_llm_service, revelation_service):
    """FastAPI TestClient with overridden DB session, KV store, clock and LLMs.

    No auth override: requests are guests unless they send a token.
    """

    def _get_session_override():
        yield session

    fastapi_app.dependency_overrides[get_session] = _get_session_override
    fastapi_app.dependency_overrides[get_kv_store] = lambda: kv_store
    fastapi_app.dependency_overrides[get_chat_llm] = lambda: mock_llm_service
    fastapi_app.dependency_overrides[get_extraction_llm] = lambda: mock_llm_service
    fastapi_app.dependency_overrides[get_revelation_service] = lambda: revelation_service
    with TestClient(fastapi_app) as client:
        yield client
    fastapi_app.dependency_overrides.clear()


@pytest.fixture(name="admin_headers")
def admin_headers_fixture(admin) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(admin)}"}
