from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Optional, Tuple, TypeVar

from .catalog import CatalogItem
from .records import RewardEvent, TimedSession

T = TypeVar("T")


class ErrorCode(str, Enum):
    """Recoverable validation failures. Nothing is mutated when one of these is returned."""
    ALREADY_RUNNING = "already_running"
    SESSION_NOT_FOUND = "session_not_found"
    SESSION_NOT_OPEN = "session_not_open"
    CELL_TAKEN = "cell_taken"
    OUT_OF_BOUNDS = "out_of_bounds"
    INCOMPATIBLE_REPLACEMENT = "incompatible_replacement"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    MISSING_PREREQUISITE = "missing_prerequisite"
    ITEM_NOT_FOUND = "item_not_found"
    MAX_TIER = "max_tier"
    NOT_SELLABLE = "not_sellable"
    NOT_UPGRADABLE = "not_upgradable"
    UNKNOWN_ITEM = "unknown_item"


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    ok: bool
    value: Optional[T] = None
    error: Optional[ErrorCode] = None
    message: str = ""

    @classmethod
    def success(cls, value: Any = None, message: str = "") -> "OperationResult":
        return cls(ok=True, value=value, message=message)

    @classmethod
    def failure(cls, error: ErrorCode, message: str = "") -> "OperationResult":
        return cls(ok=False, error=error, message=message)


@dataclass(frozen=True)
class CookieAward:
    event: RewardEvent
    cookie_type: str
    streak: int
    longest_streak: int
    total_cookies: int


@dataclass(frozen=True)
class GrassAward:
    event: RewardEvent
    currency_available: int
    total_sessions_completed: int
    bonus_ornament: Optional[CatalogItem] = None


@dataclass(frozen=True)
class CompletionResult:
    """Outcome of complete_session. `already_completed` marks an idempotent replay."""
    session: TimedSession
    award: Optional[Any] = None
    already_completed: bool = False


@dataclass(frozen=True)
class PlacementResult:
    placement: Any
    paid_with: str
    cost: int = 0
    displaced: Optional[CatalogItem] = None


@dataclass(frozen=True)
class ReconciliationReport:
    reclaimed_from_inventory: int = 0
    reclaimed_from_grid: Tuple[Tuple[int, int], ...] = field(default_factory=tuple)

    @property
    def total(self) -> int:
        return self.reclaimed_from_inventory + len(self.reclaimed_from_grid)
