from dataclasses import dataclass
from types import MappingProxyType
from typing import Optional, Tuple

from .catalog import CatalogItem

HUNGER = "hunger"
GRASS = "grass"
SESSION_KINDS: Tuple[str, ...] = (HUNGER, GRASS)


@dataclass
class TimedSession:
    """A hunger episode or a Touch Grass break."""
    id: str
    user_id: int
    kind: str
    start_time: int
    planned_duration_seconds: int
    end_time: Optional[int] = None
    completed: bool = False
    duration_seconds: Optional[int] = None
    reward_type: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.end_time is None and not self.completed

    @property
    def is_cancelled(self) -> bool:
        return self.end_time is not None and not self.completed

    def elapsed_seconds(self, now: int) -> int:
        end = self.end_time if self.end_time is not None else now
        return max(0, end - self.start_time)

    def is_overdue(self, now: int) -> bool:
        if not self.is_open or self.planned_duration_seconds <= 0:
            return False
        return self.elapsed_seconds(now) >= self.planned_duration_seconds


@dataclass(frozen=True)
class RewardEvent:
    """The single authoritative record of one cookie or one unit of currency."""
    id: str
    user_id: int
    reward_kind: str
    reward_type: str
    created_at: int
    source_session_id: Optional[str] = None
    streak_count: int = 0
    bonus_ornament: Optional[str] = None


@dataclass
class CookieStats:
    user_id: int
    total_cookies: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    last_cookie_timestamp: Optional[int] = None


@dataclass
class GardenStats:
    user_id: int
    total_sessions_completed: int = 0
    total_currency_earned: int = 0
    currency_available: int = 0


@dataclass(frozen=True)
class InventoryEntry:
    user_id: int
    category: str
    item_type: str
    tier: str
    count: int = 0

    @property
    def item(self) -> CatalogItem:
        return CatalogItem(self.category, self.item_type, self.tier)


@dataclass(frozen=True)
class GridPlacement:
    """An item occupying one cell of a user's garden grid."""
    user_id: int
    x: int
    y: int
    category: str
    item_type: str
    tier: str
    placed_at: int = 0
    sequence: int = 0

    @property
    def item(self) -> CatalogItem:
        return CatalogItem(self.category, self.item_type, self.tier)


@dataclass(frozen=True)
class LedgerEntry:
    """One currency movement. Amount is signed: debits negative, credits positive."""
    id: str
    user_id: int
    kind: str
    amount: int
    created_at: int
    category: Optional[str] = None
    item_type: Optional[str] = None
    tier: Optional[str] = None


@dataclass(frozen=True)
class ItemRef:
    """Points at an owned item, either on the grid or in inventory."""
    x: Optional[int] = None
    y: Optional[int] = None
    item: Optional[CatalogItem] = None

    @property
    def on_grid(self) -> bool:
        return self.x is not None and self.y is not None

    @classmethod
    def cell(cls, x: int, y: int) -> "ItemRef":
        return cls(x=x, y=y)

    @classmethod
    def inventory(cls, item: CatalogItem) -> "ItemRef":
        return cls(item=item)


# --- External Immutable View ---

@dataclass(frozen=True)
class GardenView:
    """The external read-only view of a user's garden."""
    user_id: int
    stats: GardenStats
    placements: Tuple[GridPlacement, ...]
    inventory: MappingProxyType
    grid_size: int = 5

    def at(self, x: int, y: int) -> Optional[GridPlacement]:
        for placement in self.placements:
            if placement.x == x and placement.y == y:
                return placement
        return None
