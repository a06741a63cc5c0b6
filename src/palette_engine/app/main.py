from __future__ import annotations

from typing import Optional

from loguru import logger

from ..services.cache import ClassificationCache
from ..services.llm import AvailabilityProbe, OllamaClient
from ..services.orchestrator import ModeSelector
from .settings import Settings, get_settings


def create_selector(settings: Optional[Settings] = None) -> ModeSelector:
    """Wire the mode selector with its language model, probe and cache."""
    settings = settings or get_settings()
    if settings.offline:
        logger.info("Palette engine running offline; keyword detection only")
        return ModeSelector(settings=settings)

    client = OllamaClient(
        settings.ollama_endpoint,
        settings.ollama_model,
        max_tokens=settings.max_tokens,
        context_length=settings.context_length,
    )
    probe = AvailabilityProbe(
        settings.ollama_endpoint,
        settings.ollama_model,
        ttl_seconds=settings.availability_ttl_seconds,
        timeout_seconds=settings.availability_timeout_seconds,
    )
    cache = ClassificationCache(settings.classification_cache_size)
    logger.info(
        "Palette engine using Ollama model {} at {}",
        settings.ollama_model,
        settings.ollama_endpoint,
    )
    return ModeSelector(client, availability=probe, cache=cache, settings=settings)
