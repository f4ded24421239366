from types import MappingProxyType
from typing import Callable, List, Optional, Sequence, Tuple

from ..errors import StoreConflict
from ..models import (
    PLANT_TIERS,
    CatalogItem,
    ErrorCode,
    GardenView,
    GridPlacement,
    OperationResult,
    PlacementResult,
)
from .catalog_helper import GRID_SIZE, CatalogHelper
from .economy_helper import EconomyHelper
from .game_state_helper import GRID, GameStateHelper, grid_key
from .logging_helper import LoggingHelper
from .time_helper import TimeHelper

EMPTY_CELL = "🟫"

PLANT_EMOJIS = {
    "flower": ("🌼", "🌸", "🌺", "🌹"),
    "veggie": ("🥕", "🥦", "🌽", "🍆"),
    "fruit": ("🍎", "🍐", "🍓", "🍑"),
    "tree": ("🌳", "🌲", "🌴", "🎄"),
    "luck": ("☘️", "🍀", "🍀", "🍀"),
}

REPLACE_OPTIONS = ("replace", "true", "yes")


class GridHelper:
    """
    Manages the 5x5 garden grid. A cell holds at most one item; the store's (user, x, y)
    uniqueness decides concurrent writers.

    Placement order: validate, write the cell, then pay (inventory first, then currency).
    If payment fails the cell write is deleted and any displaced item is put back.
    """

    def __init__(self, game_state_helper: GameStateHelper, economy_helper: EconomyHelper,
                 catalog_helper: CatalogHelper, logger: LoggingHelper,
                 clock: Callable[[], int] = TimeHelper.get_current_timestamp):
        self.game_state_helper = game_state_helper
        self.economy = economy_helper
        self.catalog = catalog_helper
        self.logger = logger
        self.clock = clock

    @staticmethod
    def parse_place_options(options: Sequence[str]) -> Tuple[Optional[str], bool]:
        """Reads the optional tier and replace flag that follow an item name, in either order."""
        tier, replace = None, False
        for option in options:
            word = option.lower()
            if word in REPLACE_OPTIONS:
                replace = True
            else:
                tier = word
        return tier, replace

    @staticmethod
    def in_bounds(x: int, y: int) -> bool:
        return 0 <= x < GRID_SIZE and 0 <= y < GRID_SIZE

    def _placement_row(self, user_id: int, x: int, y: int, item: CatalogItem) -> dict:
        return {
            "user_id": user_id,
            "x": x,
            "y": y,
            "category": item.category,
            "item_type": item.item_type,
            "tier": item.tier,
            "placed_at": self.clock(),
            "sequence": self.game_state_helper.next_sequence(GRID),
        }

    async def get_cell(self, user_id: int, x: int, y: int) -> Optional[GridPlacement]:
        row = await self.game_state_helper.fetch(GRID, grid_key(user_id, x, y), owner=user_id)
        return GridPlacement(**row) if row else None

    # --- Placement ---

    async def place_item(self, user_id: int, x: int, y: int, item: CatalogItem,
                         confirm_replace: bool = False) -> OperationResult:
        """Places an item on a cell, paying from inventory or currency. The value is a PlacementResult."""
        if not self.in_bounds(x, y):
            return OperationResult.failure(
                ErrorCode.OUT_OF_BOUNDS, f"({x}, {y}) is outside the {GRID_SIZE}x{GRID_SIZE} garden.")

        if not self.catalog.is_known(item):
            return OperationResult.failure(ErrorCode.UNKNOWN_ITEM, "That item does not exist.")

        current = await self.get_cell(user_id, x, y)
        if current is not None:
            if current.item.is_ornament != item.is_ornament:
                return OperationResult.failure(
                    ErrorCode.INCOMPATIBLE_REPLACEMENT,
                    "Plants and ornaments cannot replace each other. Remove the item first.")
            if not confirm_replace:
                return OperationResult.failure(
                    ErrorCode.CELL_TAKEN,
                    f"Cell ({x}, {y}) already holds a {self.catalog.display_name(current.item)}.")

        in_inventory = await self.economy.get_inventory_count(user_id, item)
        if in_inventory == 0:
            if item.is_ornament:
                return OperationResult.failure(ErrorCode.ITEM_NOT_FOUND, "You have no such ornament in inventory.")
            error, _, message = await self.economy.check_acquisition(user_id, item.item_type, item.tier)
            if error is not None:
                return OperationResult.failure(error, message)

        displaced = None
        key = grid_key(user_id, x, y)
        if current is not None:
            removed = await self.game_state_helper.delete(
                GRID, key, owner=user_id,
                expected={"category": current.category, "item_type": current.item_type, "tier": current.tier})
            if removed is None:
                return OperationResult.failure(ErrorCode.CELL_TAKEN, f"Cell ({x}, {y}) changed; try again.")
            displaced = current.item
            await self.economy.add_to_inventory(user_id, displaced, check_capability=False)

        try:
            row = await self.game_state_helper.insert(GRID, key, self._placement_row(user_id, x, y, item))
        except StoreConflict:
            return OperationResult.failure(
                ErrorCode.CELL_TAKEN, f"Cell ({x}, {y}) was just taken. Try a different cell.")

        placement = GridPlacement(**row)

        if await self.economy.take_from_inventory(user_id, item):
            paid_with, cost = "inventory", 0
        else:
            payment = await self._pay_with_currency(user_id, item)
            if not payment.ok:
                await self._undo_placement(user_id, x, y, item, displaced)
                return payment
            paid_with, cost = "currency", payment.value

        await self.economy.reconcile(user_id)
        return OperationResult.success(PlacementResult(placement, paid_with, cost, displaced))

    async def _pay_with_currency(self, user_id: int, item: CatalogItem) -> OperationResult:
        if item.is_ornament:
            return OperationResult.failure(ErrorCode.ITEM_NOT_FOUND, "You have no such ornament in inventory.")
        return await self.economy.pay_for_new_item(user_id, item)

    async def _undo_placement(self, user_id: int, x: int, y: int, item: CatalogItem,
                              displaced: Optional[CatalogItem]):
        key = grid_key(user_id, x, y)
        await self.game_state_helper.delete(
            GRID, key, owner=user_id,
            expected={"category": item.category, "item_type": item.item_type, "tier": item.tier})

        if displaced is None:
            return

        if await self.economy.take_from_inventory(user_id, displaced):
            try:
                await self.game_state_helper.insert(GRID, key, self._placement_row(user_id, x, y, displaced))
            except StoreConflict:
                await self.economy.add_to_inventory(user_id, displaced, check_capability=False)

    async def remove_item(self, user_id: int, x: int, y: int) -> OperationResult:
        """Clears a cell and returns its item to inventory. The value is the returned item."""
        if not self.in_bounds(x, y):
            return OperationResult.failure(
                ErrorCode.OUT_OF_BOUNDS, f"({x}, {y}) is outside the {GRID_SIZE}x{GRID_SIZE} garden.")

        row = await self.game_state_helper.delete(GRID, grid_key(user_id, x, y), owner=user_id)
        if row is None:
            return OperationResult.failure(ErrorCode.ITEM_NOT_FOUND, f"Cell ({x}, {y}) is empty.")

        item = GridPlacement(**row).item
        await self.economy.add_to_inventory(user_id, item, check_capability=False)
        return OperationResult.success(item, f"{self.catalog.display_name(item)} moved to your inventory.")

    # --- Reads ---

    async def get_grid(self, user_id: int) -> GardenView:
        stats = await self.economy.get_garden_stats(user_id)
        placements = sorted(await self.economy.get_placements(user_id), key=lambda p: (p.y, p.x))
        inventory = {entry.item: entry.count for entry in await self.economy.get_inventory(user_id)}
        return GardenView(
            user_id=user_id,
            stats=stats,
            placements=tuple(placements),
            inventory=MappingProxyType(inventory),
            grid_size=GRID_SIZE,
        )

    async def find_empty_cell(self, user_id: int) -> Optional[Tuple[int, int]]:
        occupied = {(p.x, p.y) for p in await self.economy.get_placements(user_id)}
        for y in range(GRID_SIZE):
            for x in range(GRID_SIZE):
                if (x, y) not in occupied:
                    return x, y
        return None

    def item_emoji(self, item: CatalogItem) -> str:
        if item.is_ornament:
            ornament = self.catalog.get_ornament(item.item_type)
            return ornament.emoji if ornament and ornament.emoji else "🪨"

        emojis = PLANT_EMOJIS.get(item.item_type)
        if emojis is None:
            return "🌱"
        return emojis[PLANT_TIERS.index(item.tier)]

    def render_grid(self, view: GardenView) -> str:
        """Text rendering of the garden, one row per line, with column and row numbers."""
        lines: List[str] = ["⬛ " + " ".join(f"{x}\ufe0f\u20e3" for x in range(view.grid_size))]
        for y in range(view.grid_size):
            cells = []
            for x in range(view.grid_size):
                placement = view.at(x, y)
                cells.append(self.item_emoji(placement.item) if placement else EMPTY_CELL)
            lines.append(f"{y}\ufe0f\u20e3 " + " ".join(cells))
        return "\n".join(lines)
