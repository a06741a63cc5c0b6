"""Decompose compound genre strings into registry genre ids."""

from __future__ import annotations

import re
from typing import List

from .registry import is_valid_genre

_SEPARATORS = re.compile(r"\s+and\s+|[\s,/&+\-]+")


def parse_genre_components(genre: str) -> List[str]:
    """Return the recognised genre ids of ``genre`` in the order they appear.

    ``"ambient symphonic rock"`` yields ``["ambient", "symphonic", "rock"]``.
    Unrecognised words are dropped and repeated ids are kept once.
    """
    normalised = (genre or "").strip().casefold()
    if not normalised:
        return []
    if is_valid_genre(normalised):
        return [normalised]

    components: List[str] = []
    for part in _SEPARATORS.split(normalised):
        if part and is_valid_genre(part) and part not in components:
            components.append(part)
    return components
