"""
CLI entry point to turn a description into mode selection and instrument guidance.

Example:
    python -m palette_engine.guide --prompt "late night coding, rainy window" --seed 7
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import List, Optional, Sequence

from loguru import logger

from .app.main import create_selector
from .app.models import ModeSelection
from .app.settings import Settings
from .services.blending import (
    HARMONIC_STYLE_TABLE,
    POLYRHYTHM_TABLE,
    TIME_SIGNATURE_TABLE,
    blend_all,
    blend_pick,
    blend_time_signature,
)
from .services.formatter import render_guidance
from .services.rng import Rng, create_seeded_rng
from .services.selector import select_instruments_for_genre, select_instruments_for_mode


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Suggest genre, modes and instruments for a description.")
    parser.add_argument("--prompt", required=True, help="Free-text description of the song.")
    parser.add_argument(
        "--genre",
        default=None,
        help="Optional genre override (skips detection and classification).",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed for the random source; identical seeds reproduce identical output.",
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Use keyword detection only, without the local language model.",
    )
    parser.add_argument(
        "--blend",
        action="store_true",
        help="Also print blended harmonic, polyrhythm and time signature suggestions.",
    )
    parser.add_argument(
        "--instrument",
        action="append",
        default=[],
        dest="instruments",
        help="Instrument to include ahead of the genre picks (repeatable).",
    )
    parser.add_argument(
        "--max-tags",
        type=int,
        default=None,
        help="Cap on suggested instruments (defaults to the genre's own cap).",
    )
    return parser.parse_args()


def _instruments_for(
    selection: ModeSelection,
    rng: Rng,
    user_instruments: Sequence[str] = (),
    max_tags: Optional[int] = None,
) -> List[str]:
    if selection.genre:
        return select_instruments_for_genre(
            selection.genre, rng, user_instruments=user_instruments, max_tags=max_tags
        )
    if selection.single_mode:
        return select_instruments_for_mode(selection.single_mode, rng)
    return []


def _print_blend(genre_string: str, rng: Rng) -> None:
    print(f"blend_genres  : {genre_string}")
    print(f"harmonic      : {', '.join(blend_all(genre_string, HARMONIC_STYLE_TABLE)) or '-'}")
    print(f"polyrhythms   : {', '.join(blend_all(genre_string, POLYRHYTHM_TABLE)) or '-'}")
    print(f"time_sigs     : {', '.join(blend_all(genre_string, TIME_SIGNATURE_TABLE)) or '-'}")
    print(f"pick_harmonic : {blend_pick(genre_string, HARMONIC_STYLE_TABLE, rng) or '-'}")
    print(f"pick_rhythm   : {blend_pick(genre_string, POLYRHYTHM_TABLE, rng) or '-'}")
    print(f"pick_time_sig : {blend_time_signature(genre_string, rng) or '-'}")


async def _run(
    prompt: str,
    *,
    genre: Optional[str],
    seed: Optional[int],
    offline: bool,
    blend: bool,
    instruments: Sequence[str] = (),
    max_tags: Optional[int] = None,
    settings: Optional[Settings] = None,
) -> ModeSelection:
    if settings is None:
        settings = Settings(offline=True) if offline else Settings()
    elif offline and not settings.offline:
        settings = settings.model_copy(update={"offline": True})

    selector = create_selector(settings)
    rng = create_seeded_rng(seed)

    selection = await selector.select_modes(prompt, rng, genre_override=genre)
    suggested = _instruments_for(selection, rng, instruments, max_tags)

    print(f"genre         : {selection.genre or '-'}")
    print(f"combination   : {selection.combination or '-'}")
    print(f"single_mode   : {selection.single_mode or '-'}")
    print(f"polyrhythm    : {selection.polyrhythm_combination or '-'}")
    print(f"time_sig      : {selection.time_signature or '-'}")
    print(f"journey       : {selection.time_signature_journey or '-'}")
    print(f"tier          : {selection.tier.value}")
    print(f"reasoning     : {selection.reasoning or '-'}")
    print(f"instruments   : {', '.join(suggested) or '-'}")

    if blend:
        genre_string = genre or selection.genre
        if genre_string:
            _print_blend(genre_string, rng)
        else:
            print("blend_genres  : -")

    guidance = render_guidance(selection, suggested)
    if guidance:
        print()
        print(guidance)
    return selection


def main() -> None:
    args = _parse_args()
    settings = Settings(offline=True) if args.offline else Settings()
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)
    asyncio.run(
        _run(
            args.prompt,
            genre=args.genre,
            seed=args.seed,
            offline=args.offline,
            blend=args.blend,
            instruments=args.instruments,
            max_tags=args.max_tags,
            settings=settings,
        )
    )


if __name__ == "__main__":
    main()
