import asyncio

import pytest

from funger.errors import DependencyUnavailable, StoreConflict, StoreWriteFailed
from funger.helpers.game_state_helper import GARDEN_STATS, GRID, ORNAMENTS_CAPABILITY, grid_key, user_key


async def test_insert_rejects_duplicate_keys(store):
    await store.insert(GRID, grid_key(1, 0, 0), {"user_id": 1, "x": 0, "y": 0})

    with pytest.raises(StoreConflict) as excinfo:
        await store.insert(GRID, grid_key(1, 0, 0), {"user_id": 1, "x": 0, "y": 0})

    assert excinfo.value.table == GRID


async def test_fetch_enforces_row_ownership(store):
    await store.upsert(GARDEN_STATS, user_key(1), {"user_id": 1, "currency_available": 3})

    assert (await store.fetch(GARDEN_STATS, user_key(1), owner=1))["currency_available"] == 3
    assert await store.fetch(GARDEN_STATS, user_key(1), owner=2) is None


async def test_fetched_rows_are_copies(store):
    await store.upsert(GARDEN_STATS, user_key(1), {"user_id": 1, "currency_available": 3})

    row = await store.fetch(GARDEN_STATS, user_key(1))
    row["currency_available"] = 100

    assert (await store.fetch(GARDEN_STATS, user_key(1)))["currency_available"] == 3


async def test_increment_creates_row_from_defaults(store):
    row = await store.increment(GARDEN_STATS, user_key(1), {"currency_available": 2},
                                {"user_id": 1, "currency_available": 0})
    assert row == {"user_id": 1, "currency_available": 2}


async def test_increment_refuses_to_cross_floor(store):
    defaults = {"user_id": 1, "currency_available": 0}
    await store.increment(GARDEN_STATS, user_key(1), {"currency_available": 4}, defaults)

    refused = await store.increment(GARDEN_STATS, user_key(1), {"currency_available": -5}, defaults,
                                    floors={"currency_available": 0})

    assert refused is None
    assert (await store.fetch(GARDEN_STATS, user_key(1)))["currency_available"] == 4


async def test_concurrent_increments_converge(store):
    defaults = {"user_id": 1, "currency_available": 0}

    await asyncio.gather(*[
        store.increment(GARDEN_STATS, user_key(1), {"currency_available": 1}, defaults) for _ in range(20)
    ])

    assert (await store.fetch(GARDEN_STATS, user_key(1)))["currency_available"] == 20


async def test_compare_and_set_only_applies_when_expectation_holds(store):
    await store.upsert(GRID, "k", {"user_id": 1, "tier": "basic"})

    assert await store.compare_and_set(GRID, "k", {"tier": "rare"}, {"tier": "epic"}) is False
    assert await store.compare_and_set(GRID, "k", {"tier": "basic"}, {"tier": "rare"}) is True
    assert (await store.fetch(GRID, "k"))["tier"] == "rare"


async def test_delete_hands_the_row_to_exactly_one_caller(store):
    await store.upsert(GRID, "k", {"user_id": 1, "tier": "basic"})

    results = await asyncio.gather(store.delete(GRID, "k", owner=1), store.delete(GRID, "k", owner=1))

    assert sum(1 for r in results if r is not None) == 1


async def test_delete_checks_owner_and_expected_fields(store):
    await store.upsert(GRID, "k", {"user_id": 1, "tier": "basic"})

    assert await store.delete(GRID, "k", owner=2) is None
    assert await store.delete(GRID, "k", owner=1, expected={"tier": "rare"}) is None
    assert (await store.delete(GRID, "k", owner=1, expected={"tier": "basic"}))["tier"] == "basic"


async def test_commit_and_load_round_trip_through_config(store, config, logger):
    await store.upsert(GARDEN_STATS, user_key(1), {"user_id": 1, "currency_available": 7})
    store.set_global_state("grass_session_minutes", 15)
    await store.commit_to_disk()

    fresh = type(store)(config, logger)
    await fresh.load_game_state()

    assert (await fresh.fetch(GARDEN_STATS, user_key(1)))["currency_available"] == 7
    assert fresh.get_global_state("grass_session_minutes") == 15
    assert fresh.get_global_state("ornaments_enabled") is True


async def test_commit_failure_raises_store_write_failed(store, config):
    config.game_state.fail_writes = True

    with pytest.raises(StoreWriteFailed):
        await store.commit_to_disk()


def test_capability_flag(store):
    store.require_capability(ORNAMENTS_CAPABILITY)

    store.set_global_state("ornaments_enabled", False)

    assert store.is_capability_enabled(ORNAMENTS_CAPABILITY) is False
    with pytest.raises(DependencyUnavailable):
        store.require_capability(ORNAMENTS_CAPABILITY)


def test_next_sequence_is_monotonic(store):
    assert [store.next_sequence("grid") for _ in range(3)] == [1, 2, 3]
