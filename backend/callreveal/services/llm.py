"""LLM service for callreveal — Ollama with optional OpenAI-compatible fallback.

The provider is stateless between calls: every chat turn sends the whole
transcript. Primary backend is Ollama's /api/chat. When configured, falls
back to any OpenAI-compatible /chat/completions endpoint if Ollama is
unreachable or returns errors.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Raised when LLM generation fails on ALL backends."""


@dataclass(frozen=True, slots=True)
class LLMResponse:
    """Result from an LLM completion call."""

    text: str
    model: str
    total_duration_ms: int | None
    backend: str  # "ollama" or "fallback"


def _as_payload(messages: Sequence[Any]) -> list[dict[str, str]]:
    """Accept dicts or objects with role/content (e.g. HintMessage)."""
    payload = []
    for m in messages:
        if isinstance(m, dict):
            payload.append({"role": m["role"], "content": m["content"]})
        else:
            payload.append({"role": m.role, "content": m.content})
    return payload


class LLMService:
    """Abstraction layer over Ollama + optional OpenAI-compatible fallback.

    One instance per model strength: the app builds a small chat model for
    the hint game and a larger one for extraction and geocoding.
    """

    # How long (seconds) to suppress Ollama retries after a failure
    _HEALTH_RECHECK_INTERVAL = 60

    __slots__ = (
        "ollama_url",
        "model",
        "_timeout",
        "_fallback_url",
        "_fallback_api_key",
        "_fallback_model",
        "_ollama_healthy",
        "_last_ollama_fail_time",
    )

    def __init__(
        self,
        ollama_url: str,
        model: str = "llama3.1:8b",
        timeout: float = 120.0,
        fallback_url: str = "",
        fallback_api_key: str = "",
        fallback_model: str = "",
    ) -> None:
        self.ollama_url = ollama_url.rstrip("/")
        self.model = model
        self._timeout = timeout
        self._fallback_url = fallback_url.rstrip("/") if fallback_url else ""
        self._fallback_api_key = fallback_api_key
        self._fallback_model = fallback_model or model
        self._ollama_healthy: bool = True
        self._last_ollama_fail_time: float = 0.0

    @property
    def has_fallback(self) -> bool:
        """True if a fallback endpoint is configured."""
        return bool(self._fallback_url)

    def _should_try_ollama(self) -> bool:
        if self._ollama_healthy:
            return True
        elapsed = time.monotonic() - self._last_ollama_fail_time
        if elapsed >= self._HEALTH_RECHECK_INTERVAL:
            logger.info("Re-checking Ollama health after %.0fs cooldown", elapsed)
            return True
        return False

    def _mark_ollama_down(self) -> None:
        self._ollama_healthy = False
        self._last_ollama_fail_time = time.monotonic()
        logger.warning("Ollama marked as unhealthy, will retry after %ds", self._HEALTH_RECHECK_INTERVAL)

    def _mark_ollama_up(self) -> None:
        if not self._ollama_healthy:
            logger.info("Ollama is healthy again, resuming primary routing")
        self._ollama_healthy = True

    # ── chat ─────────────────────────────────────────────────────

    async def chat(
        self,
        messages: Sequence[Any],
        temperature: float = 0.7,
    ) -> LLMResponse:
        """Complete a full role-tagged transcript, with automatic fallback."""
        payload = _as_payload(messages)

        if self._should_try_ollama():
            try:
                result = await self._chat_ollama(payload, temperature)
                self._mark_ollama_up()
                return result
            except LLMError:
                self._mark_ollama_down()
                if not self.has_fallback:
                    raise

        if self.has_fallback:
            logger.info("Falling back to cloud LLM for chat")
            return await self._chat_openai(payload, temperature)

        raise LLMError("Ollama is unavailable and no fallback is configured")

    async def generate(
        self,
        prompt: str,
        system: str | None = None,
        temperature: float = 0.2,
    ) -> LLMResponse:
        """Single-turn completion: optional system prompt plus one user message."""
        messages: list[dict[str, str]] = []
        if system is not None:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        return await self.chat(messages, temperature=temperature)

    async def _chat_ollama(
        self, messages: list[dict[str, str]], temperature: float
    ) -> LLMResponse:
        """Complete via Ollama /api/chat."""
        payload = {
            "model": self.model,
            "messages": messages,
            "stream": False,
            "options": {"temperature": temperature},
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    f"{self.ollama_url}/api/chat",
                    json=payload,
                )
                response.raise_for_status()
                data = response.json()
                return LLMResponse(
                    text=data["message"]["content"] or "",
                    model=data.get("model", self.model),
                    total_duration_ms=(data.get("total_duration") or 0) // 1_000_000,
                    backend="ollama",
                )
        except httpx.ConnectError as exc:
            raise LLMError(f"Cannot connect to Ollama at {self.ollama_url}: {exc}") from exc
        except httpx.HTTPStatusError as exc:
            raise LLMError(f"Ollama returned HTTP {exc.response.status_code}: {exc}") from exc
        except httpx.TimeoutException as exc:
            raise LLMError(f"Ollama request timed out after {self._timeout}s: {exc}") from exc
        except httpx.HTTPError as exc:
            raise LLMError(f"Ollama request failed: {exc}") from exc
        except (KeyError, TypeError, ValueError) as exc:
            raise LLMError(f"Unexpected response from Ollama: {exc}") from exc

    async def _chat_openai(
        self, messages: list[dict[str, str]], temperature: float
    ) -> LLMResponse:
        """Complete via OpenAI-compatible /chat/completions endpoint."""
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._fallback_api_key}",
        }
        payload = {
            "model": self._fallback_model,
            "messages": messages,
            "temperature": temperature,
            "stream": False,
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    f"{self._fallback_url}/chat/completions",
                    headers=headers,
                    json=payload,
                )
                response.raise_for_status()
                data = response.json()
                text = data["choices"][0]["message"]["content"]
                model = data.get("model", self._fallback_model)
                return LLMResponse(
                    text=text or "",
                    model=model,
                    total_duration_ms=None,
                    backend="fallback",
                )
        except httpx.ConnectError as exc:
            raise LLMError(f"Cannot connect to fallback LLM at {self._fallback_url}: {exc}") from exc
        except httpx.HTTPStatusError as exc:
            raise LLMError(f"Fallback LLM returned HTTP {exc.response.status_code}: {exc}") from exc
        except httpx.TimeoutException as exc:
            raise LLMError(f"Fallback LLM request timed out after {self._timeout}s: {exc}") from exc
        except httpx.HTTPError as exc:
            raise LLMError(f"Fallback LLM request failed: {exc}") from exc
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise LLMError(f"Unexpected response from fallback LLM: {exc}") from exc

    # ── health ───────────────────────────────────────────────────

    async def check_health(self) -> bool:
        """Check if Ollama is reachable by querying /api/tags."""
        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.get(f"{self.ollama_url}/api/tags")
                return response.status_code == 200
        except (httpx.ConnectError, httpx.HTTPError):
            return False
