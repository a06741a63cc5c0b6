"""Language-model collaborator contract and the Ollama implementation."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Protocol

import httpx
from loguru import logger

from .exceptions import LanguageModelError, LanguageModelTimeout

DEFAULT_OLLAMA_ENDPOINT = "http://127.0.0.1:11434"
DEFAULT_OLLAMA_MODEL = "gemma3:4b"


class LanguageModel(Protocol):
    async def classify(
        self,
        system_instruction: str,
        user_text: str,
        *,
        timeout: float,
        temperature: float,
    ) -> str:
        ...


class OllamaClient:
    """Non-streaming chat client for a local Ollama server."""

    def __init__(
        self,
        endpoint: str = DEFAULT_OLLAMA_ENDPOINT,
        model: str = DEFAULT_OLLAMA_MODEL,
        *,
        max_tokens: Optional[int] = None,
        context_length: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.endpoint = endpoint.rstrip("/")
        self.model = model
        self._max_tokens = max_tokens
        self._context_length = context_length
        self._transport = transport

    def _payload(self, system_instruction: str, user_text: str, temperature: float) -> Dict[str, Any]:
        options: Dict[str, Any] = {"temperature": temperature}
        if self._max_tokens is not None:
            options["num_predict"] = self._max_tokens
        if self._context_length is not None:
            options["num_ctx"] = self._context_length
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_instruction},
                {"role": "user", "content": user_text},
            ],
            "stream": False,
            "options": options,
        }

    async def classify(
        self,
        system_instruction: str,
        user_text: str,
        *,
        timeout: float,
        temperature: float,
    ) -> str:
        payload = self._payload(system_instruction, user_text, temperature)
        logger.debug(
            "Ollama chat request to {} (model {}, {} chars)",
            self.endpoint,
            self.model,
            len(user_text),
        )
        try:
            async with httpx.AsyncClient(
                base_url=self.endpoint, timeout=timeout, transport=self._transport
            ) as client:
                response = await client.post("/api/chat", json=payload)
        except httpx.TimeoutException as exc:
            raise LanguageModelTimeout(f"Ollama did not answer within {timeout:.1f}s") from exc
        except httpx.HTTPError as exc:
            raise LanguageModelError(f"Ollama request failed: {exc}") from exc

        if response.status_code != 200:
            raise LanguageModelError(
                f"Ollama returned status {response.status_code}: {response.text}"
            )
        try:
            body = response.json()
            content = body["message"]["content"]
        except (ValueError, KeyError, TypeError) as exc:
            raise LanguageModelError("Ollama returned an unreadable chat response") from exc
        if not isinstance(content, str):
            raise LanguageModelError("Ollama chat response carried no text content")
        return content


@dataclass
class AvailabilityStatus:
    available: bool
    has_model: bool
    checked_at: float
    error: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def usable(self) -> bool:
        return self.available and self.has_model

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "available": self.available,
            "has_model": self.has_model,
        }
        if self.error is not None:
            payload["error"] = self.error
        if self.details:
            payload["details"] = self.details
        return payload


class AvailabilityProbe:
    """Reports whether the Ollama server is up and has the model installed.

    Results are reused for ``ttl_seconds`` measured on ``clock``; a failed
    probe is cached the same way so an unreachable server is not hammered.
    """

    def __init__(
        self,
        endpoint: str = DEFAULT_OLLAMA_ENDPOINT,
        model: str = DEFAULT_OLLAMA_MODEL,
        *,
        ttl_seconds: float = 30.0,
        timeout_seconds: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.endpoint = endpoint.rstrip("/")
        self.model = model
        self._ttl = ttl_seconds
        self._timeout = timeout_seconds
        self._clock = clock
        self._transport = transport
        self._cached: Optional[AvailabilityStatus] = None

    def invalidate(self) -> None:
        self._cached = None

    def _has_model(self, body: Any) -> bool:
        models = body.get("models") if isinstance(body, dict) else None
        if not isinstance(models, list):
            return False
        for entry in models:
            name = entry.get("name") if isinstance(entry, dict) else None
            if isinstance(name, str) and (name == self.model or name.startswith(f"{self.model}:")):
                return True
        return False

    async def check(self) -> AvailabilityStatus:
        now = self._clock()
        cached = self._cached
        if cached is not None and now - cached.checked_at < self._ttl:
            return cached

        try:
            async with httpx.AsyncClient(
                base_url=self.endpoint, timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.get("/api/tags")
            if response.status_code != 200:
                raise LanguageModelError(f"Ollama returned status {response.status_code}")
            body = response.json()
        except (httpx.HTTPError, LanguageModelError, ValueError) as exc:
            logger.warning("Ollama availability check failed: {}", exc)
            status = AvailabilityStatus(
                available=False, has_model=False, checked_at=now, error=str(exc)
            )
        else:
            has_model = self._has_model(body)
            models = body.get("models") if isinstance(body, dict) else None
            status = AvailabilityStatus(
                available=True,
                has_model=has_model,
                checked_at=now,
                details={"model_count": len(models) if isinstance(models, list) else 0},
            )
            logger.info("Ollama available (model {} installed: {})", self.model, has_model)
        self._cached = status
        return status
