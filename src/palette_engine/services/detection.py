"""Priority-ordered keyword detectors over the style registries."""

from __future__ import annotations

from typing import Iterable, Mapping, Optional, Sequence

from .registry import (
    GENRES,
    HARMONIC_STYLES,
    MODE_COMBINATIONS,
    POLYRHYTHM_COMBINATIONS,
    POLYRHYTHMS,
    TIME_SIGNATURE_JOURNEYS,
    TIME_SIGNATURES,
)
from .rng import Rng, pick_random

MAX_DETECTED_GENRES = 4

# More specific ids come first so compound names win over their substrings.
GENRE_PRIORITY: tuple[str, ...] = (
    "hyperpop",
    "dreampop",
    "synthwave",
    "chillwave",
    "melodictechno",
    "lofi",
    "drill",
    "trap",
    "afrobeat",
    "downtempo",
    "newage",
    "videogame",
    "symphonic",
    "cinematic",
    "classical",
    "metal",
    "punk",
    "indie",
    "disco",
    "funk",
    "soul",
    "rnb",
    "blues",
    "jazz",
    "country",
    "folk",
    "latin",
    "reggae",
    "house",
    "trance",
    "electronic",
    "retro",
    "ambient",
    "rock",
    "pop",
)

HARMONIC_PRIORITY: tuple[str, ...] = (
    "lydian_dominant",
    "lydian_augmented",
    "lydian_sharp_two",
    "mixolydian",
    "lydian",
    "harmonic_minor",
    "melodic_minor",
    "phrygian",
    "locrian",
    "dorian",
    "aeolian",
    "ionian",
)

COMBINATION_PRIORITY: tuple[str, ...] = (
    "lydian_exploration",
    "minor_journey",
    "major_modes",
    "dark_modes",
    "lydian_minor",
    "lydian_major",
    "dorian_lydian",
    "harmonic_major",
    "phrygian_major",
    "major_minor",
)

POLYRHYTHM_PRIORITY: tuple[str, ...] = (
    "reverse_hemiola",
    "african_compound",
    "afrobeat",
    "limping",
    "shifting",
    "evolving",
    "hemiola",
)

POLYRHYTHM_COMBINATION_PRIORITY: tuple[str, ...] = (
    "complexity_build",
    "triplet_exploration",
    "odd_journey",
    "tension_arc",
    "groove_to_drive",
    "tension_release",
    "afrobeat_journey",
    "complex_simple",
)

TIME_SIGNATURE_PRIORITY: tuple[str, ...] = (
    "time_15_8",
    "time_13_8",
    "time_11_8",
    "time_9_8",
    "time_5_8",
    "time_7_8",
    "time_7_4",
    "time_5_4",
    "time_6_8",
    "time_3_4",
    "time_4_4",
)

JOURNEY_PRIORITY: tuple[str, ...] = (
    "metal_complexity",
    "math_rock_descent",
    "balkan_fusion",
    "jazz_exploration",
    "celtic_journey",
    "gentle_odd",
    "prog_odyssey",
)

GENRE_ALIASES: Mapping[str, str] = {
    "hip hop": "trap",
    "hip-hop": "trap",
    "hiphop": "trap",
    "r&b": "rnb",
    "r and b": "rnb",
    "lo-fi": "lofi",
    "lo fi": "lofi",
    "edm": "electronic",
    "dnb": "electronic",
    "drum and bass": "electronic",
    "dance": "house",
    "orchestral": "cinematic",
    "film score": "cinematic",
    "soundtrack": "cinematic",
    "acoustic": "folk",
    "singer-songwriter": "folk",
    "singer songwriter": "folk",
    "progressive rock": "rock",
    "prog rock": "rock",
    "hard rock": "rock",
    "classic rock": "rock",
    "alternative": "indie",
    "alt rock": "indie",
    "nu metal": "metal",
    "heavy metal": "metal",
    "neo-soul": "soul",
    "bossa": "jazz",
    "smooth jazz": "jazz",
    "fusion": "jazz",
}

# Text triggers and the genre mood labels they stand for. Checked in
# declaration order; the first trigger found supplies the candidates.
MOOD_TERMS: Mapping[str, tuple[str, ...]] = {
    "late night": ("late night",),
    "rainy": ("rainy",),
    "coding": ("chill", "cozy", "late night"),
    "study": ("chill", "calm", "meditative"),
    "chill": ("chill", "relaxed", "laid-back"),
    "relax": ("relaxed", "laid-back", "calm"),
    "calm": ("calm", "serene", "meditative"),
    "peaceful": ("peaceful", "serene", "healing"),
    "dreamy": ("dreamy", "floaty", "ethereal"),
    "nostalgic": ("nostalgic",),
    "epic": ("epic",),
    "heroic": ("heroic", "triumphant"),
    "aggressive": ("aggressive", "menacing", "intense"),
    "angry": ("angry", "defiant", "rebellious"),
    "dark": ("dark",),
    "energetic": ("energetic", "driving", "pulsing"),
    "party": ("party", "festive", "glamorous"),
    "groovy": ("groovy", "funky"),
    "romantic": ("romantic", "sensual", "intimate"),
    "melancholy": ("melancholic", "wistful", "bittersweet"),
    "sad": ("melancholic", "weary", "lonesome", "bittersweet"),
    "happy": ("joyful", "feel-good", "upbeat"),
    "sunny": ("sunny",),
    "summer": ("sunny", "carefree"),
    "mysterious": ("mysterious", "moody"),
    "playful": ("playful", "whimsical", "quirky"),
    "spiritual": ("spiritual", "healing"),
    "euphoric": ("euphoric", "soaring"),
}


def _build_mood_genres() -> dict[str, tuple[str, ...]]:
    """Reverse-index genre moods: each trigger maps to the genres declaring one of its labels."""
    mapping: dict[str, tuple[str, ...]] = {}
    for term, labels in MOOD_TERMS.items():
        wanted = set(labels)
        candidates = tuple(
            genre_id
            for genre_id in GENRE_PRIORITY
            if wanted.intersection(mood.casefold() for mood in GENRES[genre_id].moods)
        )
        if not candidates:
            raise ValueError(f"mood term '{term}' matches no genre moods")
        mapping[term] = candidates
    return mapping


MOOD_GENRES: Mapping[str, tuple[str, ...]] = _build_mood_genres()


def _normalise(text: str) -> str:
    return text.casefold()


def _first_match(
    text: str, priority: Sequence[str], catalog: Mapping[str, object]
) -> Optional[str]:
    lowered = _normalise(text)
    for item_id in priority:
        keywords: Iterable[str] = getattr(catalog[item_id], "keywords")
        if any(keyword in lowered for keyword in keywords):
            return item_id
    return None


def _alias_hits(lowered: str) -> list[str]:
    return [genre for alias, genre in GENRE_ALIASES.items() if alias in lowered]


def detect_genre_from_mood(text: str, rng: Optional[Rng] = None) -> Optional[str]:
    """Infer a genre from the first mood word present in ``text``.

    Several genres can suit a mood; ``rng`` chooses among them. Without an
    ``rng`` the first listed candidate is returned.
    """
    lowered = _normalise(text)
    for mood, candidates in MOOD_GENRES.items():
        if mood in lowered:
            if rng is None:
                return candidates[0]
            return pick_random(candidates, rng)
    return None


def detect_genre(text: str, rng: Optional[Rng] = None) -> Optional[str]:
    lowered = _normalise(text)
    direct = _first_match(lowered, GENRE_PRIORITY, GENRES)
    if direct is not None:
        return direct
    aliases = set(_alias_hits(lowered))
    for genre_id in GENRE_PRIORITY:
        if genre_id in aliases:
            return genre_id
    return detect_genre_from_mood(lowered, rng)


def detect_all_genres(text: str) -> list[str]:
    lowered = _normalise(text)
    aliases = set(_alias_hits(lowered))
    found: list[str] = []
    for genre_id in GENRE_PRIORITY:
        direct = any(keyword in lowered for keyword in GENRES[genre_id].keywords)
        if direct or genre_id in aliases:
            found.append(genre_id)
        if len(found) == MAX_DETECTED_GENRES:
            break
    return found


def detect_harmonic(text: str) -> Optional[str]:
    return _first_match(text, HARMONIC_PRIORITY, HARMONIC_STYLES)


def detect_rhythm(text: str) -> Optional[str]:
    return _first_match(text, POLYRHYTHM_PRIORITY, POLYRHYTHMS)


def detect_combination(text: str) -> Optional[str]:
    return _first_match(text, COMBINATION_PRIORITY, MODE_COMBINATIONS)


def detect_polyrhythm_combination(text: str) -> Optional[str]:
    return _first_match(text, POLYRHYTHM_COMBINATION_PRIORITY, POLYRHYTHM_COMBINATIONS)


def detect_time_signature(text: str) -> Optional[str]:
    return _first_match(text, TIME_SIGNATURE_PRIORITY, TIME_SIGNATURES)


def detect_time_signature_journey(text: str) -> Optional[str]:
    return _first_match(text, JOURNEY_PRIORITY, TIME_SIGNATURE_JOURNEYS)


def _check_priorities() -> None:
    pairs = (
        ("genre", GENRE_PRIORITY, GENRES),
        ("harmonic", HARMONIC_PRIORITY, HARMONIC_STYLES),
        ("combination", COMBINATION_PRIORITY, MODE_COMBINATIONS),
        ("polyrhythm", POLYRHYTHM_PRIORITY, POLYRHYTHMS),
        ("polyrhythm combination", POLYRHYTHM_COMBINATION_PRIORITY, POLYRHYTHM_COMBINATIONS),
        ("time signature", TIME_SIGNATURE_PRIORITY, TIME_SIGNATURES),
        ("journey", JOURNEY_PRIORITY, TIME_SIGNATURE_JOURNEYS),
    )
    for label, priority, catalog in pairs:
        if set(priority) != set(catalog):
            raise ValueError(f"{label} priority list does not cover its registry")
    referenced = set(GENRE_ALIASES.values())
    for candidates in MOOD_GENRES.values():
        referenced.update(candidates)
    unknown = referenced.difference(GENRES)
    if unknown:
        raise ValueError(f"alias or mood tables reference unknown genres {sorted(unknown)}")


_check_priorities()
