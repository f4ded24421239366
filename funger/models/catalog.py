from dataclasses import dataclass, field
from typing import Tuple

PLANT_CATEGORY = "plant"
ORNAMENT_CATEGORY = "ornament"

PLANT_TIERS: Tuple[str, ...] = ("basic", "rare", "epic", "legendary")
ORNAMENT_RARITIES: Tuple[str, ...] = ("common", "uncommon", "rare", "epic", "legendary")


@dataclass(frozen=True)
class PlantDefinition:
    """Represents a single plant type from plants.json."""
    id: str
    base_cost: int
    tier_names: Tuple[str, ...] = field(default_factory=tuple)
    is_currency: bool = False


@dataclass(frozen=True)
class OrnamentDefinition:
    """Represents a single ornament from ornaments.json."""
    id: str
    name: str
    rarity: str
    emoji: str = ""


@dataclass(frozen=True)
class CookieDefinition:
    """A cookie type and its draw weight."""
    id: str
    rarity: str
    probability: float
    emoji: str = ""


@dataclass(frozen=True)
class AchievementDefinition:
    """Represents an achievement threshold from achievements.json."""
    id: str
    name: str
    requirement: int
    description: str = ""
    is_streak: bool = False


@dataclass(frozen=True)
class RarityWeight:
    rarity: str
    probability: float


@dataclass(frozen=True)
class CatalogItem:
    """Identifies a kind of grid item: (category, item_type, tier)."""
    category: str
    item_type: str
    tier: str

    @property
    def key(self) -> Tuple[str, str, str]:
        return self.category, self.item_type, self.tier

    @property
    def is_ornament(self) -> bool:
        return self.category == ORNAMENT_CATEGORY
