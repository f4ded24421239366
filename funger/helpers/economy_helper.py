import uuid
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..models import (
    PLANT_CATEGORY,
    PLANT_TIERS,
    CatalogItem,
    ErrorCode,
    GardenStats,
    GridPlacement,
    InventoryEntry,
    ItemRef,
    LedgerEntry,
    OperationResult,
    ReconciliationReport,
)
from .catalog_helper import CatalogHelper
from .game_state_helper import (
    GARDEN_STATS,
    GRID,
    INVENTORY,
    LEDGER,
    ORNAMENTS_CAPABILITY,
    GameStateHelper,
    grid_key,
    inventory_key,
    user_key,
)
from .logging_helper import LoggingHelper
from .time_helper import TimeHelper

BASIC = PLANT_TIERS[0]


def garden_stats_defaults(user_id: int) -> Dict[str, Any]:
    return {
        "user_id": user_id,
        "total_sessions_completed": 0,
        "total_currency_earned": 0,
        "currency_available": 0,
    }


class EconomyHelper:
    """
    The currency and inventory ledger.

    Ordering policy for every multi-row operation: validate fully, write the item first,
    then move currency with a floor-guarded atomic increment. If the currency step is refused
    the item write is reversed, so a failed operation never leaves a debit without an item.
    """

    def __init__(self, game_state_helper: GameStateHelper, catalog_helper: CatalogHelper, logger: LoggingHelper,
                 clock: Callable[[], int] = TimeHelper.get_current_timestamp):
        self.game_state_helper = game_state_helper
        self.catalog = catalog_helper
        self.logger = logger
        self.clock = clock

    # --- Stats ---

    async def get_garden_stats(self, user_id: int) -> GardenStats:
        row = await self.game_state_helper.fetch(GARDEN_STATS, user_key(user_id), owner=user_id)
        return GardenStats(**(row or garden_stats_defaults(user_id)))

    async def credit_session_reward(self, user_id: int, amount: int = 1) -> GardenStats:
        """One completed grass session: a single increment-upsert of all three counters."""
        row = await self.game_state_helper.increment(
            GARDEN_STATS, user_key(user_id),
            {"total_sessions_completed": 1, "total_currency_earned": amount, "currency_available": amount},
            garden_stats_defaults(user_id),
        )
        return GardenStats(**row)

    async def _adjust_currency(self, user_id: int, delta: int) -> Optional[GardenStats]:
        """Atomically moves currency. Debits that would overdraw are refused and return None."""
        floors = {"currency_available": 0} if delta < 0 else None
        row = await self.game_state_helper.increment(
            GARDEN_STATS, user_key(user_id), {"currency_available": delta},
            garden_stats_defaults(user_id), floors=floors,
        )
        return GardenStats(**row) if row is not None else None

    async def _record(self, user_id: int, kind: str, amount: int, item: Optional[CatalogItem] = None):
        entry_id = uuid.uuid4().hex
        await self.game_state_helper.insert(LEDGER, entry_id, {
            "id": entry_id,
            "user_id": user_id,
            "kind": kind,
            "amount": amount,
            "created_at": self.clock(),
            "category": item.category if item else None,
            "item_type": item.item_type if item else None,
            "tier": item.tier if item else None,
        })

    async def get_ledger(self, user_id: int) -> List[LedgerEntry]:
        rows = await self.game_state_helper.select(LEDGER, user_id=user_id)
        return sorted((LedgerEntry(**row) for row in rows), key=lambda e: e.created_at)

    # --- Inventory ---

    async def get_inventory(self, user_id: int) -> List[InventoryEntry]:
        rows = await self.game_state_helper.select(INVENTORY, user_id=user_id)
        entries = [InventoryEntry(**row) for row in rows if row["count"] > 0]
        return sorted(entries, key=lambda e: (e.category, e.item_type, e.tier))

    async def get_inventory_count(self, user_id: int, item: CatalogItem) -> int:
        row = await self.game_state_helper.fetch(INVENTORY, inventory_key(user_id, *item.key), owner=user_id)
        return row["count"] if row else 0

    async def add_to_inventory(self, user_id: int, item: CatalogItem, quantity: int = 1,
                               check_capability: bool = True) -> int:
        """
        Adds items to inventory. New ornaments require the ornament subsystem (DependencyUnavailable
        otherwise); ornaments coming back from the grid pass check_capability=False.
        """
        if item.is_ornament and check_capability:
            self.game_state_helper.require_capability(ORNAMENTS_CAPABILITY)

        row = await self.game_state_helper.increment(
            INVENTORY, inventory_key(user_id, *item.key), {"count": quantity},
            {"user_id": user_id, "category": item.category, "item_type": item.item_type, "tier": item.tier,
             "count": 0},
        )
        return row["count"]

    async def take_from_inventory(self, user_id: int, item: CatalogItem, quantity: int = 1) -> bool:
        row = await self.game_state_helper.increment(
            INVENTORY, inventory_key(user_id, *item.key), {"count": -quantity},
            {"user_id": user_id, "category": item.category, "item_type": item.item_type, "tier": item.tier,
             "count": 0},
            floors={"count": 0},
        )
        return row is not None

    # --- Ownership ---

    async def get_placements(self, user_id: int) -> List[GridPlacement]:
        rows = await self.game_state_helper.select(GRID, user_id=user_id)
        return [GridPlacement(**row) for row in rows]

    async def count_owned(self, user_id: int, item: CatalogItem) -> int:
        """Units of this exact item held in inventory plus units placed on the grid."""
        in_inventory = await self.get_inventory_count(user_id, item)
        placed = await self.game_state_helper.select(
            GRID, user_id=user_id, category=item.category, item_type=item.item_type, tier=item.tier)
        return in_inventory + len(placed)

    async def count_materialized_currency(self, user_id: int) -> int:
        return await self.count_owned(user_id, self.catalog.plant_item(self.catalog.currency_plant.id, BASIC))

    # --- Affordability ---

    async def check_acquisition(self, user_id: int, item_type: str,
                                tier: str) -> Tuple[Optional[ErrorCode], int, str]:
        """Returns (error, cost, message) for materialising a new plant. `error` is None when allowed."""
        item = self.catalog.plant_item(item_type, tier)
        if not self.catalog.is_known(item):
            return ErrorCode.UNKNOWN_ITEM, 0, f"Unknown plant '{item_type}' ({tier})."

        cost = self.catalog.acquisition_cost(item_type, tier)
        stats = await self.get_garden_stats(user_id)

        if self.catalog.is_currency(item_type):
            if tier == BASIC:
                materialized = await self.count_materialized_currency(user_id)
                if materialized >= stats.currency_available:
                    return (ErrorCode.INSUFFICIENT_FUNDS, 0,
                            f"All {stats.currency_available} of your daisies are already in the garden.")
                return None, 0, ""
        elif tier != BASIC:
            prerequisite = self.catalog.plant_item(item_type, self.catalog.previous_tier(tier))
            if await self.count_owned(user_id, prerequisite) == 0:
                return (ErrorCode.MISSING_PREREQUISITE, cost,
                        f"You need a {self.catalog.display_name(prerequisite)} before you can get a "
                        f"{self.catalog.display_name(item)}.")

        if stats.currency_available < cost:
            return (ErrorCode.INSUFFICIENT_FUNDS, cost,
                    f"This costs {cost} daisies but you only have {stats.currency_available}.")
        return None, cost, ""

    async def can_afford(self, user_id: int, item_type: str, target_tier: str) -> bool:
        error, _, _ = await self.check_acquisition(user_id, item_type, target_tier)
        return error is None

    async def pay_for_new_item(self, user_id: int, item: CatalogItem) -> OperationResult:
        """
        Second half of an acquisition: the item has already been written by the caller.
        Re-validates and debits; on failure the caller must reverse its item write.
        """
        error, cost, message = await self.check_acquisition(user_id, item.item_type, item.tier)
        if error is not None and error != ErrorCode.INSUFFICIENT_FUNDS:
            return OperationResult.failure(error, message)

        if self.catalog.is_currency_item(item):
            # A basic daisy is free; it counts against the balance instead. The item is already
            # materialised, so the count includes it.
            stats = await self.get_garden_stats(user_id)
            if await self.count_materialized_currency(user_id) > stats.currency_available:
                return OperationResult.failure(
                    ErrorCode.INSUFFICIENT_FUNDS, "All of your daisies are already in the garden.")
            return OperationResult.success(0)

        if await self._adjust_currency(user_id, -cost) is None:
            stats = await self.get_garden_stats(user_id)
            return OperationResult.failure(
                ErrorCode.INSUFFICIENT_FUNDS,
                f"This costs {cost} daisies but you only have {stats.currency_available}.")

        if cost:
            await self._record(user_id, "purchase", -cost, item)
        return OperationResult.success(cost)

    # --- Operations ---

    async def purchase_or_withdraw_from_inventory(self, user_id: int, item_type: str, tier: str) -> OperationResult:
        """
        Makes one unit of the plant available in the user's inventory.
        An existing inventory unit is always preferred and costs nothing; otherwise a new unit
        is bought. The returned value is (item, source) with source 'inventory' or 'purchase'.
        """
        item = self.catalog.plant_item(item_type, tier)
        if not self.catalog.is_known(item):
            return OperationResult.failure(ErrorCode.UNKNOWN_ITEM, f"Unknown plant '{item_type}' ({tier}).")

        if await self.get_inventory_count(user_id, item) > 0:
            return OperationResult.success((item, "inventory"), "Taken from your inventory.")

        error, _, message = await self.check_acquisition(user_id, item_type, tier)
        if error is not None:
            return OperationResult.failure(error, message)

        await self.add_to_inventory(user_id, item)
        payment = await self.pay_for_new_item(user_id, item)
        if not payment.ok:
            await self.take_from_inventory(user_id, item)
            return payment

        await self.reconcile(user_id)
        return OperationResult.success((item, "purchase"), f"Bought for {payment.value} daisies.")

    async def sell_item(self, user_id: int, ref: ItemRef) -> OperationResult:
        """Sells a placed or inventoried plant. The value is the currency credited."""
        if ref.on_grid:
            key = grid_key(user_id, ref.x, ref.y)
            row = await self.game_state_helper.fetch(GRID, key, owner=user_id)
            if row is None:
                return OperationResult.failure(ErrorCode.ITEM_NOT_FOUND, f"Cell ({ref.x}, {ref.y}) is empty.")

            item = GridPlacement(**row).item
            value = self.catalog.sell_value(item)
            if value is None:
                return OperationResult.failure(ErrorCode.NOT_SELLABLE, "Ornaments cannot be sold.")

            removed = await self.game_state_helper.delete(
                GRID, key, owner=user_id,
                expected={"category": item.category, "item_type": item.item_type, "tier": item.tier})
            if removed is None:
                return OperationResult.failure(ErrorCode.ITEM_NOT_FOUND, f"Cell ({ref.x}, {ref.y}) has changed.")
        else:
            item = ref.item
            value = self.catalog.sell_value(item) if item else None
            if value is None:
                return OperationResult.failure(ErrorCode.NOT_SELLABLE, "That item cannot be sold.")
            if not await self.take_from_inventory(user_id, item):
                return OperationResult.failure(ErrorCode.ITEM_NOT_FOUND, "You have none of those in inventory.")

        await self._adjust_currency(user_id, value)
        await self._record(user_id, "sale", value, item)
        await self.reconcile(user_id)
        return OperationResult.success(value, f"Sold {self.catalog.display_name(item)} for {value} daisies.")

    async def upgrade_item(self, user_id: int, ref: ItemRef) -> OperationResult:
        """Raises a plant one tier in place, paying the step cost. The value is the upgraded item."""
        if ref.on_grid:
            key = grid_key(user_id, ref.x, ref.y)
            row = await self.game_state_helper.fetch(GRID, key, owner=user_id)
            if row is None:
                return OperationResult.failure(ErrorCode.ITEM_NOT_FOUND, f"Cell ({ref.x}, {ref.y}) is empty.")
            item = GridPlacement(**row).item
        else:
            item = ref.item
            if item is None or await self.get_inventory_count(user_id, item) == 0:
                return OperationResult.failure(ErrorCode.ITEM_NOT_FOUND, "You have none of those in inventory.")

        if item.category != PLANT_CATEGORY:
            return OperationResult.failure(ErrorCode.NOT_UPGRADABLE, "Ornaments cannot be upgraded.")

        next_tier = self.catalog.next_tier(item.tier)
        if next_tier is None:
            return OperationResult.failure(ErrorCode.MAX_TIER, "This plant is already legendary.")

        cost = self.catalog.step_cost(next_tier)
        stats = await self.get_garden_stats(user_id)
        if stats.currency_available < cost:
            return OperationResult.failure(
                ErrorCode.INSUFFICIENT_FUNDS,
                f"Upgrading costs {cost} daisies but you only have {stats.currency_available}.")

        upgraded = self.catalog.plant_item(item.item_type, next_tier)

        if ref.on_grid:
            if not await self.game_state_helper.compare_and_set(
                    GRID, key, {"category": item.category, "item_type": item.item_type, "tier": item.tier},
                    {"tier": next_tier}):
                return OperationResult.failure(ErrorCode.ITEM_NOT_FOUND, f"Cell ({ref.x}, {ref.y}) has changed.")

            if await self._adjust_currency(user_id, -cost) is None:
                await self.game_state_helper.compare_and_set(GRID, key, {"tier": next_tier}, {"tier": item.tier})
                return OperationResult.failure(ErrorCode.INSUFFICIENT_FUNDS, "Your balance changed; try again.")
        else:
            if not await self.take_from_inventory(user_id, item):
                return OperationResult.failure(ErrorCode.ITEM_NOT_FOUND, "You have none of those in inventory.")
            await self.add_to_inventory(user_id, upgraded)

            if await self._adjust_currency(user_id, -cost) is None:
                await self.take_from_inventory(user_id, upgraded)
                await self.add_to_inventory(user_id, item)
                return OperationResult.failure(ErrorCode.INSUFFICIENT_FUNDS, "Your balance changed; try again.")

        await self._record(user_id, "upgrade", -cost, upgraded)
        await self.reconcile(user_id)
        return OperationResult.success(
            upgraded, f"Upgraded to {self.catalog.display_name(upgraded)} for {cost} daisies.")

    # --- Reconciliation ---

    async def reconcile(self, user_id: int) -> ReconciliationReport:
        """
        Materialised basic daisies may never outnumber the available currency. Excess is reclaimed
        from inventory first, then from the most recently placed cells. Nothing is credited back.
        """
        async with self.game_state_helper.row_lock(GARDEN_STATS, user_key(user_id)):
            daisy = self.catalog.plant_item(self.catalog.currency_plant.id, BASIC)
            stats = await self.get_garden_stats(user_id)
            in_inventory = await self.get_inventory_count(user_id, daisy)
            placed = [p for p in await self.get_placements(user_id) if p.item == daisy]

            excess = in_inventory + len(placed) - stats.currency_available
            if excess <= 0:
                return ReconciliationReport()

            from_inventory = min(excess, in_inventory)
            if from_inventory and not await self.take_from_inventory(user_id, daisy, from_inventory):
                from_inventory = 0
            excess -= from_inventory

            reclaimed_cells = []
            for placement in sorted(placed, key=lambda p: (p.placed_at, p.sequence), reverse=True):
                if excess <= 0:
                    break
                removed = await self.game_state_helper.delete(
                    GRID, grid_key(user_id, placement.x, placement.y), owner=user_id,
                    expected={"category": daisy.category, "item_type": daisy.item_type, "tier": daisy.tier})
                if removed is not None:
                    reclaimed_cells.append((placement.x, placement.y))
                    excess -= 1

            report = ReconciliationReport(reclaimed_from_inventory=from_inventory,
                                          reclaimed_from_grid=tuple(reclaimed_cells))
            if report.total:
                await self._record(user_id, "reclaim", 0, daisy)
                await self.logger.log_to_discord(
                    f"Reconciliation: Reclaimed {report.total} daisies from user {user_id} "
                    f"(inventory {from_inventory}, cells {list(reclaimed_cells)}); "
                    f"balance is {stats.currency_available}.", "INFO")
            return report

    async def apply_currency_correction(self, user_id: int, currency_available: int) -> ReconciliationReport:
        """Overwrites the available balance (a corrective update), journals the delta, then reconciles."""
        new_balance = max(0, currency_available)
        previous: Dict[str, int] = {}

        def _set_balance(row: Dict[str, Any]) -> Dict[str, Any]:
            previous["currency_available"] = row["currency_available"]
            row["currency_available"] = new_balance
            return row

        await self.game_state_helper.update_row(
            GARDEN_STATS, user_key(user_id), _set_balance, garden_stats_defaults(user_id))

        delta = new_balance - previous["currency_available"]
        if delta:
            await self._record(user_id, "correction", delta)
        await self.logger.log_to_discord(
            f"Correction: User {user_id} currency set to {new_balance} (delta {delta:+d}).", "INFO")
        return await self.reconcile(user_id)

    async def audit_currency(self, user_id: int) -> Dict[str, Any]:
        """Checks currency_available == total_currency_earned + sum of ledger movements."""
        stats = await self.get_garden_stats(user_id)
        movements = sum(entry.amount for entry in await self.get_ledger(user_id))
        expected = stats.total_currency_earned + movements
        return {
            "expected": expected,
            "actual": stats.currency_available,
            "consistent": expected == stats.currency_available,
        }
