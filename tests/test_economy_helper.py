import asyncio

from funger.helpers.game_state_helper import GARDEN_STATS, user_key
from funger.models import ErrorCode, ItemRef


async def give_currency(store, user_id, amount):
    """Credits currency the way a completed session does, without going through sessions."""
    await store.increment(
        GARDEN_STATS, user_key(user_id),
        {"total_sessions_completed": amount, "total_currency_earned": amount, "currency_available": amount},
        {"user_id": user_id, "total_sessions_completed": 0, "total_currency_earned": 0, "currency_available": 0})


async def test_buy_place_sell_scenario(economy, grid, catalog, touch_grass):
    await touch_grass(1, times=5)
    stats = await economy.get_garden_stats(1)
    assert (stats.currency_available, stats.total_sessions_completed) == (5, 5)

    carrot = catalog.plant_item("veggie", "basic")
    bought = await economy.purchase_or_withdraw_from_inventory(1, "veggie", "basic")
    assert bought.ok
    assert bought.value == (carrot, "purchase")
    assert (await economy.get_garden_stats(1)).currency_available == 0
    assert await economy.get_inventory_count(1, carrot) == 1

    placed = await grid.place_item(1, 0, 0, carrot)
    assert placed.ok
    assert placed.value.paid_with == "inventory"
    view = await grid.get_grid(1)
    assert [(p.x, p.y, p.item) for p in view.placements] == [(0, 0, carrot)]
    assert await economy.get_inventory_count(1, carrot) == 0

    sold = await economy.sell_item(1, ItemRef.cell(0, 0))
    assert sold.ok
    assert sold.value == 5
    assert (await economy.get_garden_stats(1)).currency_available == 5
    assert (await economy.audit_currency(1))["consistent"]


async def test_inventory_is_preferred_over_spending(economy, store):
    await give_currency(store, 1, 20)

    first = await economy.purchase_or_withdraw_from_inventory(1, "fruit", "basic")
    second = await economy.purchase_or_withdraw_from_inventory(1, "fruit", "basic")

    assert first.value[1] == "purchase"
    assert second.value[1] == "inventory"
    assert (await economy.get_garden_stats(1)).currency_available == 10


async def test_insufficient_funds_changes_nothing(economy, store, catalog):
    await give_currency(store, 1, 14)

    result = await economy.purchase_or_withdraw_from_inventory(1, "tree", "basic")

    assert result.error == ErrorCode.INSUFFICIENT_FUNDS
    assert (await economy.get_garden_stats(1)).currency_available == 14
    assert await economy.get_inventory_count(1, catalog.plant_item("tree", "basic")) == 0
    assert await economy.get_ledger(1) == []


async def test_rare_needs_a_basic_regardless_of_balance(economy, store):
    await give_currency(store, 1, 1000)

    assert not await economy.can_afford(1, "veggie", "rare")
    result = await economy.purchase_or_withdraw_from_inventory(1, "veggie", "rare")

    assert result.error == ErrorCode.MISSING_PREREQUISITE
    assert (await economy.get_garden_stats(1)).currency_available == 1000


async def test_prerequisite_counts_placed_items(economy, grid, store, catalog):
    await give_currency(store, 1, 20)
    await grid.place_item(1, 2, 2, catalog.plant_item("veggie", "basic"))

    assert await economy.can_afford(1, "veggie", "rare")
    assert not await economy.can_afford(1, "veggie", "epic")
    result = await economy.purchase_or_withdraw_from_inventory(1, "veggie", "rare")

    assert result.ok
    assert (await economy.get_garden_stats(1)).currency_available == 10


async def test_daisies_are_limited_by_currency(economy, store, catalog):
    await give_currency(store, 1, 2)
    daisy = catalog.plant_item("flower", "basic")

    assert (await economy.purchase_or_withdraw_from_inventory(1, "flower", "basic")).ok
    assert await economy.get_inventory_count(1, daisy) == 1

    assert await economy.can_afford(1, "flower", "basic")
    await economy.add_to_inventory(1, daisy)
    assert not await economy.can_afford(1, "flower", "basic")
    assert (await economy.get_garden_stats(1)).currency_available == 2


async def test_flower_upgrades_skip_the_prerequisite(economy, store):
    await give_currency(store, 1, 5)

    assert await economy.can_afford(1, "flower", "rare")
    assert not await economy.can_afford(1, "flower", "epic")


async def test_sell_from_inventory(economy, store, catalog):
    await give_currency(store, 1, 10)
    await economy.purchase_or_withdraw_from_inventory(1, "fruit", "basic")

    result = await economy.sell_item(1, ItemRef.inventory(catalog.plant_item("fruit", "basic")))

    assert result.value == 10
    assert (await economy.get_garden_stats(1)).currency_available == 10
    missing = await economy.sell_item(1, ItemRef.inventory(catalog.plant_item("fruit", "basic")))
    assert missing.error == ErrorCode.ITEM_NOT_FOUND


async def test_ornaments_cannot_be_sold_or_upgraded(economy, grid, catalog):
    gnome = catalog.ornament_item("gnome")
    await economy.add_to_inventory(1, gnome)
    await grid.place_item(1, 1, 1, gnome)

    assert (await economy.sell_item(1, ItemRef.cell(1, 1))).error == ErrorCode.NOT_SELLABLE
    assert (await economy.upgrade_item(1, ItemRef.cell(1, 1))).error == ErrorCode.NOT_UPGRADABLE
    assert (await grid.get_cell(1, 1, 1)).item == gnome


async def test_upgrade_in_place(economy, grid, store, catalog):
    await give_currency(store, 1, 20)
    await grid.place_item(1, 3, 4, catalog.plant_item("veggie", "basic"))
    before = await grid.get_cell(1, 3, 4)

    result = await economy.upgrade_item(1, ItemRef.cell(3, 4))

    assert result.ok
    assert result.value == catalog.plant_item("veggie", "rare")
    after = await grid.get_cell(1, 3, 4)
    assert (after.x, after.y, after.tier, after.placed_at) == (3, 4, "rare", before.placed_at)
    assert (await economy.get_garden_stats(1)).currency_available == 10


async def test_upgrade_failures(economy, grid, store, catalog):
    await give_currency(store, 1, 5)
    await grid.place_item(1, 0, 0, catalog.plant_item("veggie", "basic"))

    short = await economy.upgrade_item(1, ItemRef.cell(0, 0))
    empty = await economy.upgrade_item(1, ItemRef.cell(4, 4))

    assert short.error == ErrorCode.INSUFFICIENT_FUNDS
    assert (await grid.get_cell(1, 0, 0)).tier == "basic"
    assert empty.error == ErrorCode.ITEM_NOT_FOUND


async def test_legendary_is_the_last_tier(economy, grid, store, catalog):
    await give_currency(store, 1, 100)
    await grid.place_item(1, 0, 0, catalog.plant_item("tree", "basic"))
    for _ in range(3):
        assert (await economy.upgrade_item(1, ItemRef.cell(0, 0))).ok

    result = await economy.upgrade_item(1, ItemRef.cell(0, 0))

    assert result.error == ErrorCode.MAX_TIER
    assert (await economy.get_garden_stats(1)).currency_available == 100 - 15 - 30


async def test_upgrade_in_inventory(economy, store, catalog):
    await give_currency(store, 1, 20)
    await economy.purchase_or_withdraw_from_inventory(1, "fruit", "basic")

    result = await economy.upgrade_item(1, ItemRef.inventory(catalog.plant_item("fruit", "basic")))

    assert result.ok
    assert await economy.get_inventory_count(1, catalog.plant_item("fruit", "basic")) == 0
    assert await economy.get_inventory_count(1, catalog.plant_item("fruit", "rare")) == 1


async def test_concurrent_upgrades_debit_once_per_step(economy, grid, store, catalog):
    await give_currency(store, 1, 5)
    await grid.place_item(1, 0, 0, catalog.plant_item("flower", "basic"))

    results = await asyncio.gather(economy.upgrade_item(1, ItemRef.cell(0, 0)),
                                   economy.upgrade_item(1, ItemRef.cell(0, 0)))

    assert sum(1 for r in results if r.ok) == 1
    assert (await grid.get_cell(1, 0, 0)).tier == "rare"
    assert (await economy.get_garden_stats(1)).currency_available == 0


async def test_correction_reclaims_placed_daisy_without_credit(economy, grid, catalog, touch_grass):
    await touch_grass(1)
    daisy = catalog.plant_item("flower", "basic")
    assert (await grid.place_item(1, 0, 0, daisy)).ok

    report = await economy.apply_currency_correction(1, 0)

    assert report.reclaimed_from_grid == ((0, 0),)
    assert await grid.get_cell(1, 0, 0) is None
    assert await economy.get_inventory_count(1, daisy) == 0
    assert (await economy.get_garden_stats(1)).currency_available == 0
    assert (await economy.audit_currency(1))["consistent"]


async def test_reclaim_takes_inventory_then_newest_cells(economy, grid, store, catalog, clock):
    await give_currency(store, 1, 4)
    daisy = catalog.plant_item("flower", "basic")
    for x in range(3):
        assert (await grid.place_item(1, x, 0, daisy)).ok
        clock.advance(10)
    await economy.purchase_or_withdraw_from_inventory(1, "flower", "basic")

    report = await economy.apply_currency_correction(1, 1)

    assert report.reclaimed_from_inventory == 1
    assert report.reclaimed_from_grid == ((2, 0), (1, 0))
    assert [(p.x, p.y) for p in (await grid.get_grid(1)).placements] == [(0, 0)]
    assert any("Reconciliation" in message for message, _ in economy.logger.queued)


async def test_spending_reclaims_unbacked_daisies(economy, grid, store, catalog):
    await give_currency(store, 1, 5)
    daisy = catalog.plant_item("flower", "basic")
    await grid.place_item(1, 0, 0, daisy)

    await economy.purchase_or_withdraw_from_inventory(1, "veggie", "basic")

    assert await economy.count_materialized_currency(1) == 0


async def test_selling_daisies_credits_their_sell_value(economy, grid, store, catalog):
    await give_currency(store, 1, 6)
    daisy = catalog.plant_item("flower", "basic")

    assert (await grid.place_item(1, 0, 0, daisy)).ok
    sold = await economy.sell_item(1, ItemRef.cell(0, 0))
    assert sold.ok
    assert sold.value == 1
    assert (await economy.get_garden_stats(1)).currency_available == 7

    assert (await grid.place_item(1, 1, 0, daisy)).ok
    assert (await economy.upgrade_item(1, ItemRef.cell(1, 0))).ok
    sold = await economy.sell_item(1, ItemRef.cell(1, 0))
    assert sold.value == 6
    assert (await economy.get_garden_stats(1)).currency_available == 7 - 5 + 6

    ledger = await economy.get_ledger(1)
    assert [entry.amount for entry in ledger if entry.kind == "sale"] == [1, 6]
    assert (await economy.audit_currency(1))["consistent"]


async def test_currency_is_conserved_across_a_mixed_session(economy, grid, catalog, touch_grass):
    await touch_grass(1, times=40)
    await economy.purchase_or_withdraw_from_inventory(1, "luck", "basic")
    await grid.place_item(1, 0, 0, catalog.plant_item("luck", "basic"))
    await economy.upgrade_item(1, ItemRef.cell(0, 0))
    await grid.place_item(1, 1, 0, catalog.plant_item("fruit", "basic"))
    await economy.sell_item(1, ItemRef.cell(1, 0))
    await grid.place_item(1, 2, 0, catalog.plant_item("flower", "basic"))
    await economy.upgrade_item(1, ItemRef.cell(2, 0))
    await economy.sell_item(1, ItemRef.cell(2, 0))

    audit = await economy.audit_currency(1)
    ledger = await economy.get_ledger(1)
    stats = await economy.get_garden_stats(1)

    assert audit["consistent"]
    assert stats.currency_available == 40 - 20 - 5 - 10 + 10 - 5 + 6
    assert {entry.kind for entry in ledger} == {"purchase", "upgrade", "sale"}
