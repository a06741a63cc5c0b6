"""Immutable style catalogs loaded once from the packaged data files."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional

_DATA_DIR = Path(__file__).resolve().parents[1] / "data"

POOL_CATEGORIES = ("harmonic", "pad", "color", "movement", "rare")


@dataclass(frozen=True)
class BpmRange:
    min: int
    max: int
    typical: int


@dataclass(frozen=True)
class InstrumentPool:
    pick_min: int
    pick_max: int
    instruments: tuple[str, ...]
    chance_to_include: Optional[float] = None


@dataclass(frozen=True)
class GenreDefinition:
    name: str
    keywords: tuple[str, ...]
    description: str
    pools: Mapping[str, InstrumentPool]
    pool_order: tuple[str, ...]
    max_tags: int
    exclusion_rules: tuple[tuple[str, str], ...]
    bpm: Optional[BpmRange] = None
    moods: tuple[str, ...] = ()


@dataclass(frozen=True)
class PoolSet:
    """A named pool configuration consumed by the instrument selector."""

    id: str
    name: str
    pools: Mapping[str, InstrumentPool]
    pool_order: tuple[str, ...]
    max_tags: int
    exclusion_rules: tuple[tuple[str, str], ...]


@dataclass(frozen=True)
class SectionGuide:
    intro_verse: str
    chorus: Optional[str] = None
    bridge_outro: Optional[str] = None
    chorus_bridge_outro: Optional[str] = None

    def lines(self) -> list[tuple[str, str]]:
        rows = [("INTRO/VERSE", self.intro_verse)]
        if self.chorus:
            rows.append(("CHORUS", self.chorus))
        if self.bridge_outro:
            rows.append(("BRIDGE/OUTRO", self.bridge_outro))
        elif self.chorus_bridge_outro:
            rows.append(("CHORUS/BRIDGE/OUTRO", self.chorus_bridge_outro))
        return rows


@dataclass(frozen=True)
class HarmonicStyle:
    name: str
    keywords: tuple[str, ...]
    description: str
    chord_type: str
    formula: str
    characteristics: tuple[str, ...]
    progressions: tuple[str, ...]
    key_examples: str
    best_instruments: tuple[str, ...] = ()


@dataclass(frozen=True)
class ModeCombination:
    name: str
    kind: str
    modes: tuple[str, ...]
    keywords: tuple[str, ...]
    description: str
    emotional_arc: str
    progressions: tuple[str, ...]
    best_instruments: tuple[str, ...]
    borrowed_chords: tuple[str, ...] = ()
    section_guide: Optional[SectionGuide] = None


@dataclass(frozen=True)
class Polyrhythm:
    name: str
    ratio: str
    keywords: tuple[str, ...]
    description: str
    characteristics: tuple[str, ...]


@dataclass(frozen=True)
class PolyrhythmCombination:
    name: str
    kind: str
    rhythms: tuple[str, ...]
    keywords: tuple[str, ...]
    description: str
    emotional_arc: str
    section_guide: SectionGuide
    best_instruments: tuple[str, ...]


@dataclass(frozen=True)
class TimeSignature:
    name: str
    signature: str
    beats: int
    subdivision: str
    keywords: tuple[str, ...]
    groupings: tuple[str, ...]
    description: str
    feel: str
    characteristics: tuple[str, ...]
    best_genres: tuple[str, ...]
    complexity: str


@dataclass(frozen=True)
class TimeSignatureJourney:
    name: str
    signatures: tuple[str, ...]
    keywords: tuple[str, ...]
    description: str
    emotional_arc: str
    section_guide: SectionGuide
    best_genres: tuple[str, ...]


def _casefold(value: str) -> str:
    return value.casefold()


def _folded(values: list[str]) -> tuple[str, ...]:
    return tuple(_casefold(value) for value in values)


def _read(name: str) -> dict[str, Any]:
    path = _DATA_DIR / name
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:  # pragma: no cover - configuration error
        raise RuntimeError(f"registry data file missing at {path}") from exc


def _pairs(entries: list[list[str]]) -> tuple[tuple[str, str], ...]:
    return tuple((entry[0], entry[1]) for entry in entries)


def _build_section_guide(raw: Optional[dict[str, str]]) -> Optional[SectionGuide]:
    if raw is None:
        return None
    return SectionGuide(
        intro_verse=raw["intro_verse"],
        chorus=raw.get("chorus"),
        bridge_outro=raw.get("bridge_outro"),
        chorus_bridge_outro=raw.get("chorus_bridge_outro"),
    )


def _build_genre(genre_id: str, raw: dict[str, Any]) -> GenreDefinition:
    pools = {
        name: InstrumentPool(
            pick_min=entry["pick"]["min"],
            pick_max=entry["pick"]["max"],
            instruments=tuple(entry["instruments"]),
            chance_to_include=entry.get("chance_to_include"),
        )
        for name, entry in raw["pools"].items()
    }
    pool_order = tuple(raw["pool_order"])
    if set(pool_order) != set(pools):
        raise ValueError(f"genre '{genre_id}' pool_order does not match its pools")
    bpm_raw = raw.get("bpm")
    return GenreDefinition(
        name=raw["name"],
        keywords=_folded(raw["keywords"]),
        description=raw["description"],
        pools=MappingProxyType(pools),
        pool_order=pool_order,
        max_tags=raw["max_tags"],
        exclusion_rules=_pairs(raw.get("exclusion_rules", [])),
        bpm=BpmRange(**bpm_raw) if bpm_raw else None,
        moods=tuple(raw.get("moods", [])),
    )


def _build_harmonic_style(raw: dict[str, Any]) -> HarmonicStyle:
    return HarmonicStyle(
        name=raw["name"],
        keywords=_folded(raw["keywords"]),
        description=raw["description"],
        chord_type=raw["chord_type"],
        formula=raw["formula"],
        characteristics=tuple(raw["characteristics"]),
        progressions=tuple(raw["progressions"]),
        key_examples=raw["key_examples"],
        best_instruments=tuple(raw.get("best_instruments", [])),
    )


def _build_combination(raw: dict[str, Any]) -> ModeCombination:
    return ModeCombination(
        name=raw["name"],
        kind=raw["kind"],
        modes=tuple(raw["modes"]),
        keywords=_folded(raw["keywords"]),
        description=raw["description"],
        emotional_arc=raw["emotional_arc"],
        progressions=tuple(raw["progressions"]),
        best_instruments=tuple(raw["best_instruments"]),
        borrowed_chords=tuple(raw.get("borrowed_chords", [])),
        section_guide=_build_section_guide(raw.get("section_guide")),
    )


def _build_palette(mode_id: str, raw: dict[str, Any], categories: Mapping[str, tuple[str, ...]],
                   exclusion_rules: tuple[tuple[str, str], ...]) -> PoolSet:
    pools: dict[str, InstrumentPool] = {}
    for category, config in raw["pools"].items():
        if category not in categories:
            raise ValueError(f"mode palette '{mode_id}' uses unknown category '{category}'")
        pools[category] = InstrumentPool(
            pick_min=config["min"],
            pick_max=config["max"],
            instruments=categories[category],
            chance_to_include=config.get("chance"),
        )
    return PoolSet(
        id=mode_id,
        name=raw["name"],
        pools=MappingProxyType(pools),
        pool_order=tuple(pools),
        max_tags=raw["max_tags"],
        exclusion_rules=exclusion_rules,
    )


def _build_polyrhythm(raw: dict[str, Any]) -> Polyrhythm:
    return Polyrhythm(
        name=raw["name"],
        ratio=raw["ratio"],
        keywords=_folded(raw["keywords"]),
        description=raw["description"],
        characteristics=tuple(raw["characteristics"]),
    )


def _build_polyrhythm_combination(raw: dict[str, Any]) -> PolyrhythmCombination:
    guide = _build_section_guide(raw["section_guide"])
    assert guide is not None
    return PolyrhythmCombination(
        name=raw["name"],
        kind=raw["kind"],
        rhythms=tuple(raw["rhythms"]),
        keywords=_folded(raw["keywords"]),
        description=raw["description"],
        emotional_arc=raw["emotional_arc"],
        section_guide=guide,
        best_instruments=tuple(raw["best_instruments"]),
    )


def _build_time_signature(raw: dict[str, Any]) -> TimeSignature:
    return TimeSignature(
        name=raw["name"],
        signature=raw["signature"],
        beats=raw["beats"],
        subdivision=raw["subdivision"],
        keywords=_folded(raw["keywords"]),
        groupings=tuple(raw["groupings"]),
        description=raw["description"],
        feel=raw["feel"],
        characteristics=tuple(raw["characteristics"]),
        best_genres=tuple(raw["best_genres"]),
        complexity=raw["complexity"],
    )


def _build_journey(raw: dict[str, Any]) -> TimeSignatureJourney:
    guide = _build_section_guide(raw["section_guide"])
    assert guide is not None
    return TimeSignatureJourney(
        name=raw["name"],
        signatures=tuple(raw["signatures"]),
        keywords=_folded(raw["keywords"]),
        description=raw["description"],
        emotional_arc=raw["emotional_arc"],
        section_guide=guide,
        best_genres=tuple(raw["best_genres"]),
    )


def _check_references(owner: str, ids: tuple[str, ...], catalog: Mapping[str, object], minimum: int) -> None:
    missing = [item for item in ids if item not in catalog]
    if missing:
        raise ValueError(f"{owner} references unknown ids {missing}")
    if len(ids) < minimum:
        raise ValueError(f"{owner} needs at least {minimum} entries")


def _genre_pool_set(genre_id: str, genre: GenreDefinition) -> PoolSet:
    return PoolSet(
        id=genre_id,
        name=genre.name,
        pools=genre.pools,
        pool_order=genre.pool_order,
        max_tags=genre.max_tags,
        exclusion_rules=genre.exclusion_rules,
    )


_genres_raw = _read("genres.json")
_modes_raw = _read("modes.json")
_rhythms_raw = _read("rhythms.json")
_instruments_raw = _read("instruments.json")

GENRES: Mapping[str, GenreDefinition] = MappingProxyType(
    {genre_id: _build_genre(genre_id, raw) for genre_id, raw in _genres_raw["genres"].items()}
)

HARMONIC_STYLES: Mapping[str, HarmonicStyle] = MappingProxyType(
    {style_id: _build_harmonic_style(raw) for style_id, raw in _modes_raw["harmonic_styles"].items()}
)

MODE_COMBINATIONS: Mapping[str, ModeCombination] = MappingProxyType(
    {combo_id: _build_combination(raw) for combo_id, raw in _modes_raw["combinations"].items()}
)

POLYRHYTHMS: Mapping[str, Polyrhythm] = MappingProxyType(
    {rhythm_id: _build_polyrhythm(raw) for rhythm_id, raw in _rhythms_raw["polyrhythms"].items()}
)

POLYRHYTHM_COMBINATIONS: Mapping[str, PolyrhythmCombination] = MappingProxyType(
    {
        combo_id: _build_polyrhythm_combination(raw)
        for combo_id, raw in _rhythms_raw["polyrhythm_combinations"].items()
    }
)

TIME_SIGNATURES: Mapping[str, TimeSignature] = MappingProxyType(
    {sig_id: _build_time_signature(raw) for sig_id, raw in _rhythms_raw["time_signatures"].items()}
)

TIME_SIGNATURE_JOURNEYS: Mapping[str, TimeSignatureJourney] = MappingProxyType(
    {journey_id: _build_journey(raw) for journey_id, raw in _rhythms_raw["time_signature_journeys"].items()}
)

INSTRUMENT_CATEGORIES: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {category: tuple(_instruments_raw["categories"][category]) for category in POOL_CATEGORIES}
)

MODE_EXCLUSION_RULES: tuple[tuple[str, str], ...] = _pairs(_instruments_raw["exclusion_rules"])

MODE_PALETTES: Mapping[str, PoolSet] = MappingProxyType(
    {
        mode_id: _build_palette(mode_id, raw, INSTRUMENT_CATEGORIES, MODE_EXCLUSION_RULES)
        for mode_id, raw in _modes_raw["palettes"].items()
    }
)


def _build_pool_sets() -> Mapping[str, PoolSet]:
    pool_sets = {genre_id: _genre_pool_set(genre_id, genre) for genre_id, genre in GENRES.items()}
    for mode_id, palette in MODE_PALETTES.items():
        if mode_id in pool_sets:
            raise ValueError(f"pool set id '{mode_id}' is both a genre and a mode palette")
        pool_sets[mode_id] = palette
    return MappingProxyType(pool_sets)


def _validate() -> None:
    for combo_id, combo in MODE_COMBINATIONS.items():
        _check_references(f"combination '{combo_id}'", combo.modes, HARMONIC_STYLES, 2)
    for combo_id, combo in POLYRHYTHM_COMBINATIONS.items():
        _check_references(f"polyrhythm combination '{combo_id}'", combo.rhythms, POLYRHYTHMS, 2)
    for journey_id, journey in TIME_SIGNATURE_JOURNEYS.items():
        _check_references(f"journey '{journey_id}'", journey.signatures, TIME_SIGNATURES, 3)
    _check_references("mode palettes", tuple(MODE_PALETTES), HARMONIC_STYLES, 1)


_validate()

POOL_SETS: Mapping[str, PoolSet] = _build_pool_sets()


def get_genre(genre_id: str) -> Optional[GenreDefinition]:
    return GENRES.get(genre_id)


def get_pool_set(pool_set_id: str) -> Optional[PoolSet]:
    return POOL_SETS.get(pool_set_id)


def is_valid_genre(value: str) -> bool:
    return _casefold(value) in GENRES
