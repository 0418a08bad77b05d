"""Tests for the advice box: moderation, storage and /api/advice."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from callreveal.models.advice import AdviceCreate
from callreveal.services.advice import (
    DEFAULT_REJECTION,
    AdviceModerator,
    AdviceRejectedError,
    AdviceRepository,
    AdviceService,
    parse_moderation,
)
from callreveal.services.llm import LLMError

from conftest import llm_response

MESSAGE = {
    "session_id": "browser-1",
    "guest_name": "Abuelo Luis",
    "advice": "Escribe a tu mamá cada semana y disfruta cada día.",
}

REJECTED = '{"approved": false, "reason": "Contiene insultos."}'


@pytest.fixture(name="advice_service")
def advice_service_fixture(session, mock_llm_service: MagicMock) -> AdviceService:
    return AdviceService(AdviceRepository(session), AdviceModerator(mock_llm_service))


# ── Moderation ────────────────────────────────────────────────────────


class TestParseModeration:
    def test_approved(self) -> None:
        result = parse_moderation('{"approved": true, "reason": "Mensaje amable."}')
        assert result.approved is True
        assert result.reason == "Mensaje amable."

    def test_rejected_with_surrounding_text(self) -> None:
        result = parse_moderation(f"Claro, aquí está:\n{REJECTED}\nEspero que ayude.")
        assert result.approved is False
        assert result.reason == "Contiene insultos."

    def test_no_json_is_approved(self) -> None:
        assert parse_moderation("No sé qué decir").approved is True

    def test_malformed_json_is_approved(self) -> None:
        assert parse_moderation('{"approved": false,').approved is True


class TestAdviceModerator:
    @pytest.mark.asyncio
    async def test_message_is_quoted_in_prompt(self, mock_llm_service: MagicMock) -> None:
        mock_llm_service.generate = AsyncMock(return_value=llm_response('{"approved": true}'))

        await AdviceModerator(mock_llm_service).moderate('Dijo "hola"')

        prompt = mock_llm_service.generate.call_args.args[0]
        assert '"Dijo \\"hola\\""' in prompt

    @pytest.mark.asyncio
    async def test_unreachable_model_approves(self, mock_llm_service: MagicMock) -> None:
        mock_llm_service.generate = AsyncMock(side_effect=LLMError("down"))

        result = await AdviceModerator(mock_llm_service).moderate("hola")

        assert result.approved is True


# ── Service ───────────────────────────────────────────────────────────


class TestAdviceService:
    @pytest.mark.asyncio
    async def test_approved_advice_stored(
        self, advice_service: AdviceService, mock_llm_service: MagicMock
    ) -> None:
        mock_llm_service.generate = AsyncMock(return_value=llm_response('{"approved": true}'))

        advice = await advice_service.submit(AdviceCreate(**MESSAGE), ip_address="10.0.0.1")

        assert advice.ip_address == "10.0.0.1"
        assert [a.id for a in advice_service.list_all()] == [advice.id]

    @pytest.mark.asyncio
    async def test_rejected_advice_not_stored(
        self, advice_service: AdviceService, mock_llm_service: MagicMock
    ) -> None:
        mock_llm_service.generate = AsyncMock(return_value=llm_response(REJECTED))

        with pytest.raises(AdviceRejectedError) as exc_info:
            await advice_service.submit(AdviceCreate(**MESSAGE))

        assert exc_info.value.reason == "Contiene insultos."
        assert advice_service.list_all() == []

    @pytest.mark.asyncio
    async def test_rejection_without_reason_uses_default(
        self, advice_service: AdviceService, mock_llm_service: MagicMock
    ) -> None:
        mock_llm_service.generate = AsyncMock(return_value=llm_response('{"approved": false}'))

        with pytest.raises(AdviceRejectedError) as exc_info:
            await advice_service.submit(AdviceCreate(**MESSAGE))

        assert exc_info.value.reason == DEFAULT_REJECTION

    @pytest.mark.asyncio
    async def test_moderation_disabled(self, session, mock_llm_service: MagicMock) -> None:
        service = AdviceService(AdviceRepository(session))

        await service.submit(AdviceCreate(**MESSAGE))

        mock_llm_service.generate.assert_not_called()
        assert len(service.list_all()) == 1

    @pytest.mark.asyncio
    async def test_delete(self, advice_service: AdviceService) -> None:
        advice = await advice_service.submit(AdviceCreate(**MESSAGE))
        assert advice_service.delete(advice.id) is True
        assert advice_service.delete(advice.id) is False


# ── HTTP ──────────────────────────────────────────────────────────────


class TestAdviceApi:
    def test_submit_returns_created(self, client, mock_llm_service: MagicMock) -> None:
        resp = client.post("/api/advice", json=MESSAGE)
        assert resp.status_code == 201
        assert resp.json()["advice"] == MESSAGE["advice"]
        mock_llm_service.generate.assert_awaited_once()

    def test_rejected_is_unprocessable(self, client, admin_headers, mock_llm_service: MagicMock) -> None:
        mock_llm_service.generate = AsyncMock(return_value=llm_response(REJECTED))

        resp = client.post("/api/advice", json=MESSAGE)

        assert resp.status_code == 422
        assert resp.json()["detail"] == "Contiene insultos."
        assert client.get("/api/advice", headers=admin_headers).json() == []

    def test_empty_advice_rejected(self, client) -> None:
        assert client.post("/api/advice", json={**MESSAGE, "advice": ""}).status_code == 422

    def test_public_list_hides_messages(self, client) -> None:
        client.post("/api/advice", json=MESSAGE)
        data = client.get("/api/advice/public").json()
        assert len(data) == 1
        assert data[0]["guest_name"] == "Abuelo Luis"
        assert "advice" not in data[0]

    def test_admin_list(self, client, admin_headers) -> None:
        assert client.get("/api/advice").status_code in (401, 403)
        client.post("/api/advice", json=MESSAGE, headers={"CF-Connecting-IP": "198.51.100.7"})
        data = client.get("/api/advice", headers=admin_headers).json()
        assert data[0]["advice"] == MESSAGE["advice"]
        assert data[0]["session_id"] == "browser-1"
        assert data[0]["ip_address"] == "198.51.100.7"

    def test_delete(self, client, admin_headers) -> None:
        advice_id = client.post("/api/advice", json=MESSAGE).json()["id"]
        assert client.delete(f"/api/advice/{advice_id}").status_code in (401, 403)
        resp = client.delete(f"/api/advice/{advice_id}", headers=admin_headers)
        assert resp.json() == {"deleted": True}
        assert client.delete(f"/api/advice/{advice_id}", headers=admin_headers).status_code == 404
