"""Genre-to-style mapping tables and compound-genre blending."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Generic, List, Mapping, Optional, Tuple, TypeVar, Union

from .genre_parser import parse_genre_components
from .registry import GENRES, HARMONIC_STYLES, POLYRHYTHMS, TIME_SIGNATURES
from .rng import Rng, pick_random

T = TypeVar("T")

TOP_HALF_SELECTION_WEIGHT = 0.75

_MAPPINGS_PATH = Path(__file__).resolve().parents[1] / "data" / "mappings.json"


@dataclass(frozen=True)
class Found(Generic[T]):
    values: Tuple[T, ...]


@dataclass(frozen=True)
class UsingDefault(Generic[T]):
    values: Tuple[T, ...]


@dataclass(frozen=True)
class NoMapping:
    pass


LookupResult = Union[Found[T], UsingDefault[T], NoMapping]


class GenreMappingTable(Generic[T]):
    """Partial genre -> values table with an optional default.

    ``lookup`` keeps "the genre has its own entry" distinct from "the table
    default applies" and from "nothing applies at all".
    """

    def __init__(
        self,
        name: str,
        entries: Mapping[str, Tuple[T, ...]],
        default: Optional[Tuple[T, ...]] = None,
    ) -> None:
        self.name = name
        self._entries: Mapping[str, Tuple[T, ...]] = MappingProxyType(dict(entries))
        self._default = default

    @property
    def default(self) -> Optional[Tuple[T, ...]]:
        return self._default

    def __contains__(self, genre: object) -> bool:
        return genre in self._entries

    def lookup(self, genre: str) -> LookupResult[T]:
        values = self._entries.get(genre)
        if values is not None:
            return Found(values)
        if self._default is not None:
            return UsingDefault(self._default)
        return NoMapping()


def _found_values(components: List[str], table: GenreMappingTable[T]) -> List[Tuple[T, ...]]:
    found: List[Tuple[T, ...]] = []
    for component in components:
        result = table.lookup(component)
        if isinstance(result, Found):
            found.append(result.values)
    return found


def blend_all(genre_string: str, table: GenreMappingTable[T]) -> List[T]:
    """Union the entries of every recognised component, first seen first.

    Falls back to the table default when no component has its own entry.
    """
    components = parse_genre_components(genre_string)
    pool: List[T] = []
    for values in _found_values(components, table):
        for value in values:
            if value not in pool:
                pool.append(value)
    if pool:
        return pool
    return list(table.default or ())


def blend_pick(genre_string: str, table: GenreMappingTable[T], rng: Rng) -> Optional[T]:
    if not parse_genre_components(genre_string):
        return None
    return pick_random(blend_all(genre_string, table), rng)


def blend_time_signature(genre_string: str, rng: Rng) -> Optional[str]:
    """Pick a time signature favouring those shared by several components."""
    components = parse_genre_components(genre_string)
    if not components:
        return None
    frequency: Dict[str, int] = {}
    found = _found_values(components, TIME_SIGNATURE_TABLE)
    if not found and TIME_SIGNATURE_TABLE.default:
        found = [TIME_SIGNATURE_TABLE.default]
    for values in found:
        for signature in values:
            frequency[signature] = frequency.get(signature, 0) + 1
    if not frequency:
        return None
    ranked = sorted(frequency, key=lambda signature: -frequency[signature])
    top_half = ranked[: math.ceil(len(ranked) / 2)]
    pool = top_half if rng() < TOP_HALF_SELECTION_WEIGHT else ranked
    return pick_random(pool, rng)


def _load_table(raw: Dict[str, Any], name: str, catalog: Mapping[str, object]) -> GenreMappingTable[str]:
    section = raw[name]
    entries: Dict[str, Tuple[str, ...]] = {}
    for genre_id, values in section["entries"].items():
        if genre_id not in GENRES:
            raise ValueError(f"{name} mapping references unknown genre '{genre_id}'")
        entries[genre_id] = tuple(values)
    default_raw = section.get("default")
    default = tuple(default_raw) if default_raw is not None else None
    for values in list(entries.values()) + ([default] if default else []):
        unknown = [value for value in values if value not in catalog]
        if unknown:
            raise ValueError(f"{name} mapping references unknown ids {unknown}")
    return GenreMappingTable(name, entries, default)


def _read_mappings() -> Dict[str, Any]:
    try:
        return json.loads(_MAPPINGS_PATH.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:  # pragma: no cover - configuration error
        raise RuntimeError(f"mapping data file missing at {_MAPPINGS_PATH}") from exc


_mappings_raw = _read_mappings()

HARMONIC_STYLE_TABLE: GenreMappingTable[str] = _load_table(_mappings_raw, "harmonic_styles", HARMONIC_STYLES)
POLYRHYTHM_TABLE: GenreMappingTable[str] = _load_table(_mappings_raw, "polyrhythms", POLYRHYTHMS)
TIME_SIGNATURE_TABLE: GenreMappingTable[str] = _load_table(_mappings_raw, "time_signatures", TIME_SIGNATURES)
