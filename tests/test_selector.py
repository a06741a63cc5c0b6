from __future__ import annotations

from types import MappingProxyType

from palette_engine.services.registry import POOL_SETS, InstrumentPool, PoolSet
from palette_engine.services.rng import create_seeded_rng
from palette_engine.services.selector import (
    resolve_exclusions,
    select_from_pool_set,
    select_instruments,
    select_instruments_for_genre,
    select_instruments_for_mode,
)


def _pool_set(pools: dict[str, InstrumentPool], *, max_tags: int = 10, rules=()) -> PoolSet:
    return PoolSet(
        id="test",
        name="Test",
        pools=MappingProxyType(pools),
        pool_order=tuple(pools),
        max_tags=max_tags,
        exclusion_rules=tuple(rules),
    )


def test_unknown_pool_set_returns_empty() -> None:
    assert select_instruments("polka", create_seeded_rng(1)) == []


def test_zero_chance_pool_is_always_skipped() -> None:
    pool_set = _pool_set(
        {"never": InstrumentPool(pick_min=1, pick_max=3, instruments=("a", "b", "c"), chance_to_include=0.0)}
    )
    for seed in range(25):
        assert select_from_pool_set(pool_set, create_seeded_rng(seed)) == []


def test_full_chance_pool_is_always_used() -> None:
    pool_set = _pool_set(
        {"always": InstrumentPool(pick_min=1, pick_max=1, instruments=("a", "b"), chance_to_include=1.0)}
    )
    for seed in range(25):
        assert len(select_from_pool_set(pool_set, create_seeded_rng(seed))) == 1


def test_truncation_keeps_earlier_pools() -> None:
    pool_set = _pool_set(
        {
            "first": InstrumentPool(pick_min=2, pick_max=2, instruments=("a", "b")),
            "second": InstrumentPool(pick_min=2, pick_max=2, instruments=("c", "d")),
        },
        max_tags=2,
    )
    result = select_from_pool_set(pool_set, create_seeded_rng(5))
    assert sorted(result) == ["a", "b"]


def test_count_never_exceeds_pool_size() -> None:
    pool_set = _pool_set({"small": InstrumentPool(pick_min=5, pick_max=5, instruments=("a", "b"))})
    assert sorted(select_from_pool_set(pool_set, create_seeded_rng(2))) == ["a", "b"]


def test_instrument_shared_by_pools_is_not_repeated() -> None:
    pool_set = _pool_set(
        {
            "one": InstrumentPool(pick_min=1, pick_max=1, instruments=("shared",)),
            "two": InstrumentPool(pick_min=1, pick_max=1, instruments=("shared",)),
        }
    )
    assert select_from_pool_set(pool_set, create_seeded_rng(0)) == ["shared"]


def test_resolve_exclusions_is_pure_and_symmetric() -> None:
    instruments = ["felt piano", "Rhodes", "cello"]
    rules = [("felt piano", "Rhodes")]
    assert resolve_exclusions(instruments, rules, lambda: 0.1) == ["Rhodes", "cello"]
    assert resolve_exclusions(instruments, rules, lambda: 0.9) == ["felt piano", "cello"]
    assert instruments == ["felt piano", "Rhodes", "cello"]


def test_resolve_exclusions_only_draws_for_present_pairs() -> None:
    draws: list[float] = []

    def rng() -> float:
        draws.append(0.2)
        return 0.2

    assert resolve_exclusions(["a", "c"], [("a", "b"), ("c", "d")], rng) == ["a", "c"]
    assert draws == []


def test_every_pool_set_respects_exclusions_and_cap() -> None:
    for pool_set_id, pool_set in POOL_SETS.items():
        for seed in range(40):
            result = select_instruments(pool_set_id, create_seeded_rng(seed))
            assert len(result) <= pool_set.max_tags
            assert len(result) == len(set(result))
            for first, second in pool_set.exclusion_rules:
                assert not (first in result and second in result), (pool_set_id, seed)


def test_selection_is_reproducible() -> None:
    for pool_set_id in ("ambient", "jazz", "lydian", "phrygian"):
        first = select_instruments(pool_set_id, create_seeded_rng(2024))
        second = select_instruments(pool_set_id, create_seeded_rng(2024))
        assert first == second


def test_genre_and_mode_helpers() -> None:
    assert select_instruments_for_genre("JAZZ", create_seeded_rng(1)) == select_instruments(
        "jazz", create_seeded_rng(1)
    )
    assert select_instruments_for_mode("dorian", create_seeded_rng(1))


def test_user_instruments_lead_and_count_toward_cap() -> None:
    pool_set = _pool_set(
        {"pool": InstrumentPool(pick_min=3, pick_max=3, instruments=("a", "b", "c"))},
        max_tags=3,
    )
    result = select_from_pool_set(
        pool_set, create_seeded_rng(4), user_instruments=["kalimba", "a", " kalimba "]
    )
    assert result[:2] == ["kalimba", "a"]
    assert len(result) == 3
    assert result[2] in ("b", "c")


def test_user_instruments_are_capped() -> None:
    pool_set = _pool_set({"pool": InstrumentPool(pick_min=1, pick_max=1, instruments=("a",))}, max_tags=2)
    result = select_from_pool_set(pool_set, create_seeded_rng(0), user_instruments=["x", "y", "z"])
    assert result == ["x", "y"]


def test_max_tags_overrides_pool_set_cap() -> None:
    pool_set = _pool_set(
        {"pool": InstrumentPool(pick_min=4, pick_max=4, instruments=("a", "b", "c", "d"))},
        max_tags=4,
    )
    assert len(select_from_pool_set(pool_set, create_seeded_rng(1), max_tags=2)) == 2
    assert select_from_pool_set(pool_set, create_seeded_rng(1), max_tags=0) == []


def test_user_instruments_survive_exclusions() -> None:
    pool_set = _pool_set(
        {"pool": InstrumentPool(pick_min=2, pick_max=2, instruments=("Rhodes", "cello"))},
        rules=[("felt piano", "Rhodes")],
    )
    for seed in range(20):
        result = select_from_pool_set(pool_set, create_seeded_rng(seed), user_instruments=["felt piano"])
        assert result == ["felt piano", "cello"]


def test_resolve_exclusions_spares_protected_names() -> None:
    rules = [("felt piano", "Rhodes"), ("x", "y")]
    assert resolve_exclusions(["Rhodes", "cello"], rules, lambda: 0.9, protected={"felt piano"}) == ["cello"]
    assert resolve_exclusions(["cello"], rules, lambda: 0.9, protected={"x", "y"}) == ["cello"]


def test_genre_helper_accepts_user_instruments_and_cap() -> None:
    result = select_instruments_for_genre(
        "Jazz", create_seeded_rng(3), user_instruments=["theremin"], max_tags=2
    )
    assert result[0] == "theremin"
    assert len(result) <= 2
