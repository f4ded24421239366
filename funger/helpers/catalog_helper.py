import random
from typing import Dict, List, Optional, Sequence, Tuple

from ..models import (
    PLANT_CATEGORY,
    ORNAMENT_CATEGORY,
    PLANT_TIERS,
    PlantDefinition,
    OrnamentDefinition,
    CookieDefinition,
    AchievementDefinition,
    RarityWeight,
    CatalogItem,
)

GRID_SIZE = 5

# Cost of moving *into* a tier from the one below it.
TIER_STEP_COSTS: Dict[str, int] = {"rare": 5, "epic": 10, "legendary": 15}

CURRENCY_SELL_BASE = 1


class CatalogHelper:
    """
    Manages the static plant, ornament, cookie and achievement definitions.
    All prices, tier steps and rarity draws are answered here so the ledger never hard-codes them.
    """

    def __init__(
        self,
        plants: List[PlantDefinition],
        ornaments: List[OrnamentDefinition],
        ornament_weights: List[RarityWeight],
        cookies: List[CookieDefinition],
        achievements: List[AchievementDefinition],
    ):
        self.plants_by_id: Dict[str, PlantDefinition] = {p.id: p for p in plants}
        self.ornaments_by_id: Dict[str, OrnamentDefinition] = {o.id: o for o in ornaments}
        self.ornament_weights = ornament_weights
        self.cookies = cookies
        self.achievements = achievements

        self.ornaments_by_rarity: Dict[str, List[OrnamentDefinition]] = {}
        self._categorize_ornaments()

        self.currency_plant: PlantDefinition = next(p for p in plants if p.is_currency)

    def _categorize_ornaments(self):
        """Groups all ornaments by rarity for the bonus draw."""

        for ornament in self.ornaments_by_id.values():
            self.ornaments_by_rarity.setdefault(ornament.rarity, []).append(ornament)

        for weight in self.ornament_weights:
            if weight.probability > 0 and weight.rarity not in self.ornaments_by_rarity:
                print(f"CRITICAL WARNING: No ornaments defined for rarity '{weight.rarity}'. "
                      f"Draws of that rarity will fall back to the most common ornament.")

    # --- Lookups ---

    def get_plant(self, plant_id: str) -> Optional[PlantDefinition]:
        return self.plants_by_id.get(plant_id)

    def get_ornament(self, ornament_id: str) -> Optional[OrnamentDefinition]:
        return self.ornaments_by_id.get(ornament_id)

    def is_currency(self, item_type: str) -> bool:
        return item_type == self.currency_plant.id

    def is_currency_item(self, item: CatalogItem) -> bool:
        return item.category == PLANT_CATEGORY and self.is_currency(item.item_type)

    def plant_item(self, item_type: str, tier: str) -> CatalogItem:
        return CatalogItem(PLANT_CATEGORY, item_type, tier)

    def ornament_item(self, ornament_id: str) -> Optional[CatalogItem]:
        ornament = self.get_ornament(ornament_id)
        if ornament is None:
            return None
        return CatalogItem(ORNAMENT_CATEGORY, ornament.id, ornament.rarity)

    def is_known(self, item: CatalogItem) -> bool:
        if item.category == PLANT_CATEGORY:
            return item.item_type in self.plants_by_id and item.tier in PLANT_TIERS
        if item.category == ORNAMENT_CATEGORY:
            ornament = self.get_ornament(item.item_type)
            return ornament is not None and ornament.rarity == item.tier
        return False

    def display_name(self, item: CatalogItem) -> str:
        if item.category == ORNAMENT_CATEGORY:
            ornament = self.get_ornament(item.item_type)
            return ornament.name if ornament else item.item_type

        plant = self.get_plant(item.item_type)
        if plant and item.tier in PLANT_TIERS and len(plant.tier_names) == len(PLANT_TIERS):
            return plant.tier_names[PLANT_TIERS.index(item.tier)]
        return f"{item.tier.capitalize()} {item.item_type}"

    # --- Tiers & prices ---

    @staticmethod
    def next_tier(tier: str) -> Optional[str]:
        index = PLANT_TIERS.index(tier)
        return PLANT_TIERS[index + 1] if index + 1 < len(PLANT_TIERS) else None

    @staticmethod
    def previous_tier(tier: str) -> Optional[str]:
        index = PLANT_TIERS.index(tier)
        return PLANT_TIERS[index - 1] if index > 0 else None

    @staticmethod
    def step_cost(target_tier: str) -> int:
        return TIER_STEP_COSTS.get(target_tier, 0)

    @staticmethod
    def cumulative_upgrade_cost(tier: str) -> int:
        """Sum of the step costs from basic up to `tier`: 0 / 5 / 15 / 30."""
        index = PLANT_TIERS.index(tier)
        return sum(TIER_STEP_COSTS[t] for t in PLANT_TIERS[1:index + 1])

    def acquisition_cost(self, item_type: str, tier: str) -> int:
        """Price of materialising a new plant of this tier without trading anything in."""
        if tier == PLANT_TIERS[0]:
            return self.plants_by_id[item_type].base_cost
        return self.step_cost(tier)

    def sell_value(self, item: CatalogItem) -> Optional[int]:
        """Worth of a plant: base cost plus every step cost paid into it. Ornaments have no market value."""
        if item.category != PLANT_CATEGORY or not self.is_known(item):
            return None

        base = CURRENCY_SELL_BASE if self.is_currency(item.item_type) else self.plants_by_id[item.item_type].base_cost
        return base + self.cumulative_upgrade_cost(item.tier)

    # --- Draws ---

    @staticmethod
    def draw_weighted(weights: Sequence[Tuple[str, float]], roll: float) -> str:
        """Maps a uniform roll in [0, 1) onto a categorical distribution. Zero weights are never drawn."""
        cumulative = 0.0
        last_drawable = None
        for name, probability in weights:
            if probability <= 0:
                continue
            cumulative += probability
            last_drawable = name
            if roll < cumulative:
                return name

        if last_drawable is None:
            raise ValueError("Distribution has no drawable entries.")
        return last_drawable

    def draw_cookie_type(self, rng: random.Random) -> str:
        return self.draw_weighted([(c.id, c.probability) for c in self.cookies], rng.random())

    def draw_ornament(self, rng: random.Random) -> CatalogItem:
        rarity = self.draw_weighted([(w.rarity, w.probability) for w in self.ornament_weights], rng.random())

        candidates = self.ornaments_by_rarity.get(rarity)
        if not candidates:
            fallback = max(self.ornament_weights, key=lambda w: w.probability).rarity
            candidates = self.ornaments_by_rarity[fallback]

        ornament = rng.choice(candidates)
        return CatalogItem(ORNAMENT_CATEGORY, ornament.id, ornament.rarity)

    def get_cookie(self, cookie_id: str) -> Optional[CookieDefinition]:
        return next((c for c in self.cookies if c.id == cookie_id), None)
