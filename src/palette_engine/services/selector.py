"""Bounded random instrument picking over registry pool sets."""

from __future__ import annotations

from typing import Collection, Iterable, List, Optional, Sequence, Tuple

from loguru import logger

from .registry import InstrumentPool, PoolSet, get_pool_set
from .rng import Rng, random_int_inclusive, roll_chance, select_random_n


def _pick_from_pool(pool: InstrumentPool, rng: Rng) -> List[str]:
    if pool.chance_to_include is not None and not roll_chance(pool.chance_to_include, rng):
        return []
    count = random_int_inclusive(pool.pick_min, pool.pick_max, rng)
    return select_random_n(pool.instruments, count, rng)


def resolve_exclusions(
    instruments: Sequence[str],
    rules: Iterable[Tuple[str, str]],
    rng: Rng,
    *,
    protected: Collection[str] = (),
) -> List[str]:
    """Drop one member of every exclusion pair present in ``instruments``.

    Each rule is checked once against the list produced by the previous rules;
    a coin flip decides which member goes. Names in ``protected`` count as
    present but are never dropped: their partner goes without a draw, and a
    pair made only of protected names is left alone. The input is never
    modified.
    """
    resolved = list(instruments)
    for first, second in rules:
        present = set(resolved).union(protected)
        if first not in present or second not in present:
            continue
        if first in protected and second in protected:
            continue
        if first in protected:
            loser = second
        elif second in protected:
            loser = first
        else:
            loser = first if rng() < 0.5 else second
        resolved = [name for name in resolved if name != loser]
    return resolved


def _seed_user_instruments(user_instruments: Sequence[str], cap: int) -> List[str]:
    seeded: List[str] = []
    for name in user_instruments:
        name = name.strip()
        if name and name not in seeded:
            seeded.append(name)
    return seeded[:cap]


def select_from_pool_set(
    pool_set: PoolSet,
    rng: Rng,
    *,
    user_instruments: Sequence[str] = (),
    max_tags: Optional[int] = None,
) -> List[str]:
    """Pick instruments pool by pool, then resolve exclusions and cap the list.

    ``user_instruments`` lead the result and count toward the cap; exclusion
    resolution never drops them. ``max_tags`` replaces the pool set's own cap.
    """
    cap = pool_set.max_tags if max_tags is None else max_tags
    if cap <= 0:
        return []
    seeded = _seed_user_instruments(user_instruments, cap)
    picked: List[str] = []
    for pool_name in pool_set.pool_order:
        for name in _pick_from_pool(pool_set.pools[pool_name], rng):
            if name not in picked and name not in seeded:
                picked.append(name)
    resolved = resolve_exclusions(picked, pool_set.exclusion_rules, rng, protected=seeded)
    return (seeded + resolved)[:cap]


def select_instruments(
    pool_set_id: str,
    rng: Rng,
    *,
    user_instruments: Sequence[str] = (),
    max_tags: Optional[int] = None,
) -> List[str]:
    pool_set = get_pool_set(pool_set_id)
    if pool_set is None:
        logger.debug("No pool set registered for '{}'", pool_set_id)
        return []
    return select_from_pool_set(
        pool_set, rng, user_instruments=user_instruments, max_tags=max_tags
    )


def select_instruments_for_genre(
    genre_id: str,
    rng: Rng,
    *,
    user_instruments: Sequence[str] = (),
    max_tags: Optional[int] = None,
) -> List[str]:
    return select_instruments(
        genre_id.casefold(), rng, user_instruments=user_instruments, max_tags=max_tags
    )


def select_instruments_for_mode(mode_id: str, rng: Rng) -> List[str]:
    return select_instruments(mode_id, rng)
