from __future__ import annotations

from enum import Enum
from typing import Mapping, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

from ..services.registry import (
    GENRES,
    HARMONIC_STYLES,
    MODE_COMBINATIONS,
    POLYRHYTHM_COMBINATIONS,
    TIME_SIGNATURE_JOURNEYS,
    TIME_SIGNATURES,
)

MAX_REASONING_LENGTH = 1024


class SelectionTier(str, Enum):
    GENRE_OVERRIDE = "genre_override"
    CLASSIFY = "classify"
    DETERMINISTIC_FALLBACK = "deterministic_fallback"


def _known(value: Optional[str], catalog: Mapping[str, object], label: str) -> Optional[str]:
    if value is None:
        return None
    normalised = value.strip().casefold()
    if not normalised:
        return None
    if normalised not in catalog:
        raise ValueError(f"unknown {label} '{value}'")
    return normalised


class ClassificationReply(BaseModel):
    """Schema for the JSON object returned by the language model."""

    genre: Optional[str] = None
    combination: Optional[str] = None
    single_mode: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("single_mode", "singleMode"),
    )
    polyrhythm_combination: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("polyrhythm_combination", "polyrhythmCombination"),
    )
    reasoning: str = ""

    @field_validator("genre")
    @classmethod
    def _check_genre(cls, value: Optional[str]) -> Optional[str]:
        return _known(value, GENRES, "genre")

    @field_validator("combination")
    @classmethod
    def _check_combination(cls, value: Optional[str]) -> Optional[str]:
        return _known(value, MODE_COMBINATIONS, "combination")

    @field_validator("single_mode")
    @classmethod
    def _check_single_mode(cls, value: Optional[str]) -> Optional[str]:
        return _known(value, HARMONIC_STYLES, "harmonic style")

    @field_validator("polyrhythm_combination")
    @classmethod
    def _check_polyrhythm_combination(cls, value: Optional[str]) -> Optional[str]:
        return _known(value, POLYRHYTHM_COMBINATIONS, "polyrhythm combination")

    @field_validator("reasoning", mode="before")
    @classmethod
    def _coerce_reasoning(cls, value: object) -> str:
        return "" if value is None else str(value)[:MAX_REASONING_LENGTH]


class ModeSelection(BaseModel):
    genre: Optional[str] = None
    combination: Optional[str] = None
    single_mode: Optional[str] = None
    polyrhythm_combination: Optional[str] = None
    time_signature: Optional[str] = None
    time_signature_journey: Optional[str] = None
    reasoning: str = ""
    tier: SelectionTier = SelectionTier.DETERMINISTIC_FALLBACK

    @field_validator("genre")
    @classmethod
    def _check_genre(cls, value: Optional[str]) -> Optional[str]:
        return _known(value, GENRES, "genre")

    @field_validator("combination")
    @classmethod
    def _check_combination(cls, value: Optional[str]) -> Optional[str]:
        return _known(value, MODE_COMBINATIONS, "combination")

    @field_validator("single_mode")
    @classmethod
    def _check_single_mode(cls, value: Optional[str]) -> Optional[str]:
        return _known(value, HARMONIC_STYLES, "harmonic style")

    @field_validator("polyrhythm_combination")
    @classmethod
    def _check_polyrhythm_combination(cls, value: Optional[str]) -> Optional[str]:
        return _known(value, POLYRHYTHM_COMBINATIONS, "polyrhythm combination")

    @field_validator("time_signature")
    @classmethod
    def _check_time_signature(cls, value: Optional[str]) -> Optional[str]:
        return _known(value, TIME_SIGNATURES, "time signature")

    @field_validator("time_signature_journey")
    @classmethod
    def _check_journey(cls, value: Optional[str]) -> Optional[str]:
        return _known(value, TIME_SIGNATURE_JOURNEYS, "time signature journey")

    @model_validator(mode="after")
    def _modes_exclusive(self) -> "ModeSelection":
        if self.combination is not None and self.single_mode is not None:
            raise ValueError("combination and single_mode are mutually exclusive")
        return self

    def is_empty(self) -> bool:
        return not any(
            (
                self.genre,
                self.combination,
                self.single_mode,
                self.polyrhythm_combination,
                self.time_signature,
                self.time_signature_journey,
            )
        )
