"""Random-source helpers shared by every selection step.

All helpers take the random source explicitly. An ``Rng`` is any zero-argument
callable returning a float in ``[0, 1)``; ``random.Random(seed).random`` is the
usual concrete choice.
"""

from __future__ import annotations

import math
import random
from typing import Callable, Optional, Sequence, TypeVar

T = TypeVar("T")

Rng = Callable[[], float]


def create_seeded_rng(seed: Optional[int] = None) -> Rng:
    """Return an independent random source; identical seeds replay identically."""
    return random.Random(seed).random


def random_int_inclusive(minimum: int, maximum: int, rng: Rng) -> int:
    if maximum < minimum:
        minimum, maximum = maximum, minimum
    return minimum + math.floor(rng() * (maximum - minimum + 1))


def roll_chance(chance: float, rng: Rng) -> bool:
    """Draw once; succeed when the draw falls below ``chance``."""
    return rng() < chance


def shuffle(items: Sequence[T], rng: Rng) -> list[T]:
    """Fisher-Yates shuffle returning a new list."""
    result = list(items)
    for index in range(len(result) - 1, 0, -1):
        swap = math.floor(rng() * (index + 1))
        result[index], result[swap] = result[swap], result[index]
    return result


def pick_random(items: Sequence[T], rng: Rng) -> Optional[T]:
    if not items:
        return None
    return items[math.floor(rng() * len(items))]


def select_random_n(items: Sequence[T], count: int, rng: Rng) -> list[T]:
    if count <= 0:
        return []
    return shuffle(items, rng)[:count]
