"""Render a mode selection and instrument list as guidance text blocks."""

from __future__ import annotations

from typing import List, Optional, Sequence

from ..app.models import ModeSelection
from .registry import (
    GENRES,
    HARMONIC_STYLES,
    MODE_COMBINATIONS,
    POLYRHYTHM_COMBINATIONS,
    POLYRHYTHMS,
    TIME_SIGNATURE_JOURNEYS,
    TIME_SIGNATURES,
    SectionGuide,
)

CHARACTERISTIC_LIMIT = 3
MOOD_LIMIT = 3


def _section_lines(guide: Optional[SectionGuide]) -> List[str]:
    if guide is None:
        return []
    lines = ["SECTION GUIDE:"]
    lines.extend(f"- {label}: {text}" for label, text in guide.lines())
    return lines


def _characteristics(values: Sequence[str]) -> List[str]:
    return [f"- {value}" for value in values[:CHARACTERISTIC_LIMIT]]


def format_harmonic_style(style_id: str) -> Optional[str]:
    style = HARMONIC_STYLES.get(style_id)
    if style is None:
        return None
    lines = [
        f"HARMONIC STYLE ({style.name}):",
        style.description,
        f"Chord type: {style.chord_type}",
        f"Formula: {style.formula}",
    ]
    lines.extend(_characteristics(style.characteristics))
    if style.progressions:
        lines.append(f"Progression: {style.progressions[0]}")
    return "\n".join(lines)


def format_combination(combination_id: str) -> Optional[str]:
    combo = MODE_COMBINATIONS.get(combination_id)
    if combo is None:
        return None
    modes = " -> ".join(HARMONIC_STYLES[mode].name for mode in combo.modes)
    lines = [
        f"MODAL COMBINATION: {combo.name}",
        f"Modes: {modes}",
        combo.description,
        f"Emotional arc: {combo.emotional_arc}",
    ]
    if combo.borrowed_chords:
        lines.append(f"Borrowed chords: {', '.join(combo.borrowed_chords)}")
    if combo.progressions:
        lines.append(f"Progression: {combo.progressions[0]}")
    lines.extend(_section_lines(combo.section_guide))
    return "\n".join(lines)


def format_polyrhythm(polyrhythm_id: str) -> Optional[str]:
    rhythm = POLYRHYTHMS.get(polyrhythm_id)
    if rhythm is None:
        return None
    lines = [f"POLYRHYTHM: {rhythm.name} ({rhythm.ratio})", rhythm.description]
    lines.extend(_characteristics(rhythm.characteristics))
    return "\n".join(lines)


def format_polyrhythm_combination(combination_id: str) -> Optional[str]:
    combo = POLYRHYTHM_COMBINATIONS.get(combination_id)
    if combo is None:
        return None
    rhythms = " -> ".join(
        f"{POLYRHYTHMS[rhythm].name} ({POLYRHYTHMS[rhythm].ratio})" for rhythm in combo.rhythms
    )
    lines = [
        f"POLYRHYTHM COMBINATION: {combo.name}",
        f"Rhythms: {rhythms}",
        combo.description,
        f"Emotional arc: {combo.emotional_arc}",
    ]
    lines.extend(_section_lines(combo.section_guide))
    return "\n".join(lines)


def format_time_signature(signature_id: str) -> Optional[str]:
    signature = TIME_SIGNATURES.get(signature_id)
    if signature is None:
        return None
    lines = [
        f"TIME SIGNATURE: {signature.name} ({signature.signature})",
        signature.description,
        f"Feel: {signature.feel}",
    ]
    if signature.groupings:
        lines.append(f"Groupings: {', '.join(signature.groupings)}")
    lines.extend(_characteristics(signature.characteristics))
    return "\n".join(lines)


def format_time_signature_journey(journey_id: str) -> Optional[str]:
    journey = TIME_SIGNATURE_JOURNEYS.get(journey_id)
    if journey is None:
        return None
    path = " -> ".join(TIME_SIGNATURES[sig].signature for sig in journey.signatures)
    lines = [
        f"TIME SIGNATURE JOURNEY: {journey.name}",
        f"Signatures: {path}",
        journey.description,
        f"Emotional arc: {journey.emotional_arc}",
    ]
    lines.extend(_section_lines(journey.section_guide))
    return "\n".join(lines)


def format_instruments(genre_id: Optional[str], instruments: Sequence[str]) -> Optional[str]:
    genre = GENRES.get(genre_id) if genre_id else None
    if not instruments and genre is None:
        return None
    lines = ["SUGGESTED INSTRUMENTS:" if instruments else "GENRE:"]
    if genre is not None:
        lines.append(f"{genre.name}: {genre.description}")
        if genre.bpm is not None:
            lines.append(
                f"Tempo: {genre.bpm.typical} BPM (range: {genre.bpm.min}-{genre.bpm.max})"
            )
        if genre.moods:
            lines.append(f"Moods: {', '.join(genre.moods[:MOOD_LIMIT])}")
    if instruments:
        lines.append(", ".join(instruments))
    return "\n".join(lines)


def format_guidance(selection: ModeSelection, instruments: Sequence[str]) -> List[str]:
    """Build one text block per populated field of ``selection``.

    A combination replaces the single-mode block and a journey replaces the
    time-signature block. Empty selections produce no blocks.
    """
    blocks: List[Optional[str]] = []
    if selection.combination:
        blocks.append(format_combination(selection.combination))
    elif selection.single_mode:
        blocks.append(format_harmonic_style(selection.single_mode))
    if selection.polyrhythm_combination:
        blocks.append(format_polyrhythm_combination(selection.polyrhythm_combination))
    if selection.time_signature_journey:
        blocks.append(format_time_signature_journey(selection.time_signature_journey))
    elif selection.time_signature:
        blocks.append(format_time_signature(selection.time_signature))
    blocks.append(format_instruments(selection.genre, instruments))
    return [block for block in blocks if block]


def render_guidance(selection: ModeSelection, instruments: Sequence[str]) -> str:
    return "\n\n".join(format_guidance(selection, instruments))
