from __future__ import annotations

import asyncio
from typing import List, Sequence, Union

import pytest

from palette_engine.app.models import MAX_REASONING_LENGTH, ClassificationReply, SelectionTier
from palette_engine.app.settings import Settings
from palette_engine.services.cache import ClassificationCache
from palette_engine.services.exceptions import ClassificationParseError, LanguageModelError
from palette_engine.services.llm import AvailabilityStatus
from palette_engine.services.orchestrator import (
    CLASSIFICATION_INSTRUCTION,
    FALLBACK_REASONING,
    SPELLING_INSTRUCTION,
    ModeSelector,
    parse_classification_reply,
)
from palette_engine.services.rng import create_seeded_rng

Reply = Union[str, BaseException]


class ScriptedModel:
    def __init__(self, replies: Sequence[Reply]) -> None:
        self._replies = list(replies)
        self.calls: List[str] = []

    async def classify(
        self,
        system_instruction: str,
        user_text: str,
        *,
        timeout: float,
        temperature: float,
    ) -> str:
        self.calls.append(system_instruction)
        reply = self._replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply


class SlowModel:
    def __init__(self) -> None:
        self.calls = 0

    async def classify(self, system_instruction: str, user_text: str, *, timeout: float, temperature: float) -> str:
        self.calls += 1
        await asyncio.sleep(5)
        return "{}"


class StaticProbe:
    def __init__(self, usable: bool) -> None:
        self._usable = usable

    async def check(self) -> AvailabilityStatus:
        return AvailabilityStatus(available=self._usable, has_model=self._usable, checked_at=0.0)


def _settings(**overrides: object) -> Settings:
    return Settings(**overrides)


@pytest.mark.asyncio
async def test_offline_uses_keyword_detection() -> None:
    selector = ModeSelector(settings=_settings())
    selection = await selector.select_modes("smooth jazz night session", create_seeded_rng(1))
    assert selector.offline
    assert selection.genre == "jazz"
    assert selection.reasoning == "Direct match: jazz"
    assert selection.tier == SelectionTier.DETERMINISTIC_FALLBACK


@pytest.mark.asyncio
async def test_offline_without_signal_reports_fallback() -> None:
    selector = ModeSelector(settings=_settings())
    selection = await selector.select_modes("gibberish xyz", create_seeded_rng(1))
    assert selection.is_empty()
    assert selection.reasoning == FALLBACK_REASONING


@pytest.mark.asyncio
async def test_override_with_empty_text() -> None:
    model = ScriptedModel([])
    selector = ModeSelector(model, settings=_settings())
    selection = await selector.select_modes("", create_seeded_rng(1), "ambient")
    assert selection.model_dump() == {
        "genre": "ambient",
        "combination": None,
        "single_mode": None,
        "polyrhythm_combination": None,
        "time_signature": None,
        "time_signature_journey": None,
        "reasoning": "User selected: ambient",
        "tier": SelectionTier.GENRE_OVERRIDE,
    }
    assert model.calls == []


@pytest.mark.asyncio
async def test_override_ignores_text_genre_but_keeps_secondary_detection() -> None:
    model = ScriptedModel([])
    selector = ModeSelector(model, settings=_settings())
    selection = await selector.select_modes(
        "dreamy jazz lydian in a balkan fusion suite", create_seeded_rng(3), "rock ballad"
    )
    assert selection.genre == "rock"
    assert selection.reasoning.startswith("User selected:")
    assert selection.single_mode is None
    assert selection.time_signature == "time_7_8"
    assert selection.time_signature_journey == "balkan_fusion"
    assert model.calls == []


@pytest.mark.asyncio
async def test_override_always_wins_for_any_text() -> None:
    selector = ModeSelector(settings=_settings())
    for text in ("metal", "smooth jazz", "", "lofi beats to study to"):
        selection = await selector.select_modes(text, create_seeded_rng(0), "rock")
        assert selection.genre == "rock"
        assert selection.reasoning.startswith("User selected:")


@pytest.mark.asyncio
async def test_classify_merges_keyword_genre_with_model_reply() -> None:
    reply = (
        "```json\n"
        '{"genre": "rock", "combination": "dorian_lydian", "single_mode": "dorian",'
        ' "polyrhythm_combination": "triplet_exploration", "reasoning": "model says rock"}\n'
        "```"
    )
    model = ScriptedModel([reply])
    selector = ModeSelector(model, settings=_settings())
    selection = await selector.select_modes("smooth jazz night session", create_seeded_rng(1))
    assert model.calls == [CLASSIFICATION_INSTRUCTION]
    assert selection.genre == "jazz"
    assert selection.combination == "dorian_lydian"
    assert selection.single_mode is None
    assert selection.polyrhythm_combination == "triplet_exploration"
    assert selection.reasoning == "Direct match: jazz"
    assert selection.tier == SelectionTier.CLASSIFY


@pytest.mark.asyncio
async def test_spelling_retry_recovers_genre() -> None:
    model = ScriptedModel(["smooth jazz vibes", '{"genre": "lofi", "reasoning": "model"}'])
    selector = ModeSelector(model, settings=_settings())
    selection = await selector.select_modes("smoth jaz vibes", create_seeded_rng(1))
    assert model.calls == [SPELLING_INSTRUCTION, CLASSIFICATION_INSTRUCTION]
    assert selection.genre == "jazz"
    assert selection.reasoning == "Spelling corrected match: jazz"


@pytest.mark.asyncio
async def test_model_genre_used_when_keywords_find_nothing() -> None:
    model = ScriptedModel(
        [
            "something for a long drive",
            '{"genre": "synthwave", "singleMode": "dorian", "reasoning": "night driving"}',
        ]
    )
    selector = ModeSelector(model, settings=_settings())
    selection = await selector.select_modes("something for a long drive", create_seeded_rng(1))
    assert selection.genre == "synthwave"
    assert selection.single_mode == "dorian"
    assert selection.reasoning == "night driving"


@pytest.mark.asyncio
async def test_combination_wins_over_single_mode_from_model() -> None:
    model = ScriptedModel(['{"combination": "major_minor", "single_mode": "ionian"}'])
    selector = ModeSelector(model, settings=_settings())
    selection = await selector.select_modes("jazz", create_seeded_rng(1))
    assert selection.combination == "major_minor"
    assert selection.single_mode is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "reply",
    [
        "not json at all",
        '{"genre": "polka"}',
        "[1, 2, 3]",
        LanguageModelError("connection refused"),
        RuntimeError("unexpected"),
    ],
)
async def test_classification_failures_fall_back(reply: Reply) -> None:
    model = ScriptedModel([reply])
    selector = ModeSelector(model, settings=_settings())
    selection = await selector.select_modes("smooth jazz dorian", create_seeded_rng(1))
    assert selection.tier == SelectionTier.DETERMINISTIC_FALLBACK
    assert selection.genre == "jazz"
    assert selection.single_mode == "dorian"
    assert selection.reasoning == "Direct match: jazz"


@pytest.mark.asyncio
async def test_total_model_failure_without_keywords() -> None:
    model = ScriptedModel([LanguageModelError("down"), LanguageModelError("down")])
    selector = ModeSelector(model, settings=_settings())
    selection = await selector.select_modes("gibberish xyz", create_seeded_rng(1))
    assert selection.genre is None
    assert selection.reasoning == FALLBACK_REASONING
    assert len(model.calls) == 2


@pytest.mark.asyncio
async def test_timeout_routes_to_fallback() -> None:
    model = SlowModel()
    settings = _settings(classify_timeout_seconds=0.05, spelling_timeout_seconds=0.05)
    selector = ModeSelector(model, settings=settings)
    selection = await selector.select_modes("smooth jazz in 7/8", create_seeded_rng(1))
    assert model.calls == 1
    assert selection.tier == SelectionTier.DETERMINISTIC_FALLBACK
    assert selection.genre == "jazz"
    assert selection.time_signature == "time_7_8"


@pytest.mark.asyncio
async def test_cancelled_model_call_routes_to_fallback() -> None:
    model = ScriptedModel([asyncio.CancelledError()])
    selector = ModeSelector(model, settings=_settings())
    selection = await selector.select_modes("smooth jazz dorian", create_seeded_rng(1))
    assert selection.tier == SelectionTier.DETERMINISTIC_FALLBACK
    assert selection.genre == "jazz"
    assert selection.single_mode == "dorian"


@pytest.mark.asyncio
async def test_cancelled_spelling_call_still_classifies() -> None:
    model = ScriptedModel([asyncio.CancelledError(), '{"genre": "lofi", "reasoning": "model"}'])
    selector = ModeSelector(model, settings=_settings())
    selection = await selector.select_modes("gibberish xyz", create_seeded_rng(1))
    assert model.calls == [SPELLING_INSTRUCTION, CLASSIFICATION_INSTRUCTION]
    assert selection.tier == SelectionTier.CLASSIFY
    assert selection.genre == "lofi"


@pytest.mark.asyncio
async def test_cancelling_caller_task_propagates() -> None:
    model = SlowModel()
    selector = ModeSelector(model, settings=_settings())
    task = asyncio.create_task(selector.select_modes("smooth jazz", create_seeded_rng(1)))
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert model.calls == 1


@pytest.mark.asyncio
async def test_call_timeout_overrides_settings() -> None:
    model = SlowModel()
    selector = ModeSelector(model, settings=_settings())
    selection = await selector.select_modes("smooth jazz", create_seeded_rng(1), timeout=0.05)
    assert model.calls == 1
    assert selection.tier == SelectionTier.DETERMINISTIC_FALLBACK
    assert selection.reasoning == "Direct match: jazz"


@pytest.mark.asyncio
async def test_long_model_reasoning_is_truncated() -> None:
    reply = '{"combination": "major_minor", "reasoning": "%s"}' % ("x" * 1100)
    model = ScriptedModel(["something for a long drive", reply])
    selector = ModeSelector(model, settings=_settings())
    selection = await selector.select_modes("something for a long drive", create_seeded_rng(1))
    assert selection.tier == SelectionTier.CLASSIFY
    assert selection.combination == "major_minor"
    assert selection.reasoning == "x" * MAX_REASONING_LENGTH


@pytest.mark.asyncio
async def test_unavailable_model_is_never_called() -> None:
    model = ScriptedModel([])
    selector = ModeSelector(model, availability=StaticProbe(False), settings=_settings())
    selection = await selector.select_modes("bittersweet dorian", create_seeded_rng(1))
    assert model.calls == []
    assert selection.combination == "major_minor"
    assert selection.single_mode is None
    assert selection.reasoning == FALLBACK_REASONING


@pytest.mark.asyncio
async def test_available_probe_allows_classification() -> None:
    model = ScriptedModel(['{"single_mode": "lydian"}'])
    selector = ModeSelector(model, availability=StaticProbe(True), settings=_settings())
    selection = await selector.select_modes("jazz", create_seeded_rng(1))
    assert selection.single_mode == "lydian"
    assert selection.tier == SelectionTier.CLASSIFY


@pytest.mark.asyncio
async def test_cache_reuses_classification() -> None:
    model = ScriptedModel(['{"single_mode": "dorian", "reasoning": "cached"}'])
    cache: ClassificationCache[ClassificationReply] = ClassificationCache(capacity=4)
    selector = ModeSelector(model, cache=cache, settings=_settings())
    first = await selector.select_modes("Smooth Jazz", create_seeded_rng(1))
    second = await selector.select_modes("smooth   jazz", create_seeded_rng(1))
    assert len(model.calls) == 1
    assert first == second
    assert len(cache) == 1


@pytest.mark.asyncio
async def test_offline_selection_is_deterministic() -> None:
    selector = ModeSelector(settings=_settings())
    texts = ["rainy evening", "dreamy lydian waltz", "bittersweet reverse hemiola"]
    for text in texts:
        first = await selector.select_modes(text, create_seeded_rng(42))
        second = await selector.select_modes(text, create_seeded_rng(42))
        assert first == second
        assert not (first.combination and first.single_mode)


def test_parse_classification_reply_tolerates_chatter() -> None:
    reply = parse_classification_reply('Sure! {"genre": "JAZZ", "reasoning": null} Enjoy.')
    assert reply.genre == "jazz"
    assert reply.reasoning == ""
    with pytest.raises(ClassificationParseError):
        parse_classification_reply("no braces here")
