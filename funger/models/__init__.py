from .catalog import (
    PLANT_CATEGORY,
    ORNAMENT_CATEGORY,
    PLANT_TIERS,
    ORNAMENT_RARITIES,
    PlantDefinition,
    OrnamentDefinition,
    CookieDefinition,
    AchievementDefinition,
    RarityWeight,
    CatalogItem,
)
from .records import (
    HUNGER,
    GRASS,
    SESSION_KINDS,
    TimedSession,
    RewardEvent,
    CookieStats,
    GardenStats,
    InventoryEntry,
    GridPlacement,
    LedgerEntry,
    ItemRef,
    GardenView,
)
from .results import (
    ErrorCode,
    OperationResult,
    CookieAward,
    GrassAward,
    CompletionResult,
    PlacementResult,
    ReconciliationReport,
)

__all__ = [
    "PLANT_CATEGORY",
    "ORNAMENT_CATEGORY",
    "PLANT_TIERS",
    "ORNAMENT_RARITIES",
    "PlantDefinition",
    "OrnamentDefinition",
    "CookieDefinition",
    "AchievementDefinition",
    "RarityWeight",
    "CatalogItem",
    "HUNGER",
    "GRASS",
    "SESSION_KINDS",
    "TimedSession",
    "RewardEvent",
    "CookieStats",
    "GardenStats",
    "InventoryEntry",
    "GridPlacement",
    "LedgerEntry",
    "ItemRef",
    "GardenView",
    "ErrorCode",
    "OperationResult",
    "CookieAward",
    "GrassAward",
    "CompletionResult",
    "PlacementResult",
    "ReconciliationReport",
]
