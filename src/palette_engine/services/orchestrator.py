"""Tiered mode selection: override, keywords, language model, fallback."""

from __future__ import annotations

import asyncio
import json
import re
from typing import Optional

from loguru import logger
from pydantic import ValidationError

from ..app.models import ClassificationReply, ModeSelection, SelectionTier
from ..app.settings import Settings, get_settings
from .cache import ClassificationCache
from .detection import (
    detect_combination,
    detect_genre,
    detect_harmonic,
    detect_polyrhythm_combination,
    detect_time_signature,
    detect_time_signature_journey,
)
from .exceptions import ClassificationParseError, SelectionFailure
from .llm import AvailabilityProbe, LanguageModel
from .registry import (
    GENRES,
    HARMONIC_STYLES,
    MODE_COMBINATIONS,
    POLYRHYTHM_COMBINATIONS,
)
from .rng import Rng

FALLBACK_REASONING = "Keyword detection (LLM failed)"

_CODE_FENCE = re.compile(r"^```[a-zA-Z0-9_-]*\s*|\s*```$")

SPELLING_INSTRUCTION = (
    "You correct misspelled music genre names. Rewrite the user's text with "
    "genre names spelled correctly and change nothing else. Reply with the "
    "corrected text only."
)


def _build_classification_instruction() -> str:
    lines = [
        "You classify song descriptions into musical categories.",
        "Reply with a single JSON object and nothing else, using these keys:",
        '{"genre": string|null, "combination": string|null, "single_mode": string|null,',
        ' "polyrhythm_combination": string|null, "reasoning": string}',
        "Use only ids from the lists below. Choose either a combination or a",
        "single_mode, never both. Use null when nothing fits.",
        "",
        "Genres: " + ", ".join(GENRES),
    ]
    lines.append("Combinations:")
    lines.extend(
        f"- {combo_id}: {combo.description}" for combo_id, combo in MODE_COMBINATIONS.items()
    )
    lines.append("Single modes:")
    lines.extend(
        f"- {style_id}: {style.description}" for style_id, style in HARMONIC_STYLES.items()
    )
    lines.append("Polyrhythm combinations:")
    lines.extend(
        f"- {combo_id}: {combo.description}"
        for combo_id, combo in POLYRHYTHM_COMBINATIONS.items()
    )
    return "\n".join(lines)


CLASSIFICATION_INSTRUCTION = _build_classification_instruction()


def parse_classification_reply(text: str) -> ClassificationReply:
    """Read a model reply, tolerating code fences and chatter around the JSON."""
    cleaned = _CODE_FENCE.sub("", text.strip()).strip()
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end < start:
        raise ClassificationParseError("classification reply contains no JSON object")
    try:
        data = json.loads(cleaned[start : end + 1])
    except json.JSONDecodeError as exc:
        raise ClassificationParseError(f"classification reply is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ClassificationParseError("classification reply is not a JSON object")
    return ClassificationReply.model_validate(data)


def resolve_genre_override(genre_override: str) -> Optional[str]:
    normalised = genre_override.strip().casefold()
    if normalised in GENRES:
        return normalised
    tokens = normalised.split()
    if tokens and tokens[0] in GENRES:
        return tokens[0]
    return None


def _cancel_requested() -> bool:
    task = asyncio.current_task()
    return task is not None and task.cancelling() > 0


class ModeSelector:
    """Combines keyword detection with an optional language model.

    Without a language model (or when the availability probe reports it
    unusable) every request is answered by keyword detection alone.
    """

    def __init__(
        self,
        language_model: Optional[LanguageModel] = None,
        *,
        availability: Optional[AvailabilityProbe] = None,
        cache: Optional[ClassificationCache[ClassificationReply]] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._model = language_model
        self._availability = availability
        self._cache = cache
        self._settings = settings or get_settings()

    @property
    def offline(self) -> bool:
        return self._model is None

    async def select_modes(
        self,
        description: str,
        rng: Rng,
        genre_override: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
    ) -> ModeSelection:
        """Select genre, modes and rhythms for ``description``.

        ``timeout`` bounds each language model call and replaces the configured
        timeouts. A failed model call, including one cancelled inside the
        collaborator, falls back to keyword detection. Cancelling the calling
        task still propagates.
        """
        if genre_override and genre_override.strip():
            return self._from_override(description, genre_override)

        keyword_genre = detect_genre(description, rng)
        keyword_reasoning = f"Direct match: {keyword_genre}" if keyword_genre else ""

        if not await self._model_usable():
            return self._fallback(description, keyword_genre, keyword_reasoning)

        if keyword_genre is None:
            corrected = await self._correct_spelling(description, rng, timeout)
            if corrected is not None:
                keyword_genre = corrected
                keyword_reasoning = f"Spelling corrected match: {corrected}"

        try:
            reply = await self._classify(description, timeout)
        except asyncio.CancelledError:
            if _cancel_requested():
                raise
            logger.warning("Classification call was cancelled; using keyword detection")
            return self._fallback(description, keyword_genre, keyword_reasoning)
        except asyncio.TimeoutError:
            logger.warning("Classification timed out; using keyword detection")
            return self._fallback(description, keyword_genre, keyword_reasoning)
        except (SelectionFailure, ValidationError) as exc:
            logger.warning("Classification failed: {}", exc)
            return self._fallback(description, keyword_genre, keyword_reasoning)
        except Exception:  # noqa: BLE001
            logger.exception("Unexpected error from language model during classification")
            return self._fallback(description, keyword_genre, keyword_reasoning)

        combination = reply.combination
        selection = ModeSelection(
            genre=keyword_genre or reply.genre,
            combination=combination,
            single_mode=None if combination else reply.single_mode,
            polyrhythm_combination=reply.polyrhythm_combination,
            time_signature=detect_time_signature(description),
            time_signature_journey=detect_time_signature_journey(description),
            reasoning=keyword_reasoning or reply.reasoning,
            tier=SelectionTier.CLASSIFY,
        )
        logger.debug("Mode selection via classification: {}", selection.model_dump())
        return selection

    def _from_override(self, description: str, genre_override: str) -> ModeSelection:
        return ModeSelection(
            genre=resolve_genre_override(genre_override),
            combination=detect_combination(description),
            single_mode=None,
            polyrhythm_combination=detect_polyrhythm_combination(description),
            time_signature=detect_time_signature(description),
            time_signature_journey=detect_time_signature_journey(description),
            reasoning=f"User selected: {genre_override}",
            tier=SelectionTier.GENRE_OVERRIDE,
        )

    def _fallback(
        self, description: str, genre: Optional[str], reasoning: str
    ) -> ModeSelection:
        combination = detect_combination(description)
        selection = ModeSelection(
            genre=genre,
            combination=combination,
            single_mode=None if combination else detect_harmonic(description),
            polyrhythm_combination=detect_polyrhythm_combination(description),
            time_signature=detect_time_signature(description),
            time_signature_journey=detect_time_signature_journey(description),
            reasoning=reasoning or FALLBACK_REASONING,
            tier=SelectionTier.DETERMINISTIC_FALLBACK,
        )
        logger.debug("Mode selection via keyword fallback: {}", selection.model_dump())
        return selection

    async def _model_usable(self) -> bool:
        if self._model is None:
            return False
        if self._availability is None:
            return True
        status = await self._availability.check()
        if not status.usable:
            logger.info("Language model unavailable ({}); using keyword detection", status.as_dict())
        return status.usable

    async def _call_model(
        self, instruction: str, text: str, *, timeout: float, temperature: float
    ) -> str:
        assert self._model is not None
        return await asyncio.wait_for(
            self._model.classify(instruction, text, timeout=timeout, temperature=temperature),
            timeout=timeout,
        )

    async def _correct_spelling(
        self, description: str, rng: Rng, timeout: Optional[float]
    ) -> Optional[str]:
        try:
            corrected = await self._call_model(
                SPELLING_INSTRUCTION,
                description,
                timeout=timeout or self._settings.spelling_timeout_seconds,
                temperature=self._settings.spelling_temperature,
            )
        except (SelectionFailure, asyncio.TimeoutError) as exc:
            logger.warning("Genre spelling correction failed: {}", str(exc) or type(exc).__name__)
            return None
        except asyncio.CancelledError:
            if _cancel_requested():
                raise
            logger.warning("Genre spelling correction was cancelled")
            return None
        except Exception:  # noqa: BLE001
            logger.exception("Unexpected error from language model during spelling correction")
            return None
        genre = detect_genre(corrected, rng)
        if genre is not None:
            logger.debug("Spelling correction '{}' matched genre {}", corrected.strip(), genre)
        return genre

    async def _classify(self, description: str, timeout: Optional[float]) -> ClassificationReply:
        if self._cache is not None:
            cached = self._cache.get(description)
            if cached is not None:
                logger.debug("Classification cache hit")
                return cached
        text = await self._call_model(
            CLASSIFICATION_INSTRUCTION,
            description,
            timeout=timeout or self._settings.classify_timeout_seconds,
            temperature=self._settings.classify_temperature,
        )
        reply = parse_classification_reply(text)
        if self._cache is not None:
            self._cache.put(description, reply)
        return reply

