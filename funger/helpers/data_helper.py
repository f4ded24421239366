import json
import pathlib
from typing import Any, Dict, List

from ..models import (
    ORNAMENT_RARITIES,
    PlantDefinition,
    OrnamentDefinition,
    CookieDefinition,
    AchievementDefinition,
    RarityWeight,
)
from .logging_helper import LoggingHelper

DEFAULT_PLANTS = [
    {"id": "flower", "base_cost": 0, "is_currency": True,
     "tier_names": ["Daisy", "Cherry Blossom", "Hibiscus", "Rose"]},
    {"id": "veggie", "base_cost": 5, "tier_names": ["Carrot", "Broccoli", "Corn", "Eggplant"]},
    {"id": "fruit", "base_cost": 10, "tier_names": ["Apple", "Pear", "Strawberry", "Peach"]},
    {"id": "tree", "base_cost": 15, "tier_names": ["Oak Tree", "Pine Tree", "Palm Tree", "Festive Tree"]},
    {"id": "luck", "base_cost": 20,
     "tier_names": ["Lucky Clover", "Big Lucky Clover", "Grand Lucky Clover", "Legendary Lucky Clover"]},
]

DEFAULT_ORNAMENTS = {
    "rarity_weights": {"common": 0.5, "uncommon": 0.3, "rare": 0.15, "epic": 0.04, "legendary": 0.01},
    "items": [
        {"id": "rock", "name": "Garden Rock", "rarity": "common"},
        {"id": "mushroom", "name": "Mushroom", "rarity": "common"},
        {"id": "fountain", "name": "Fountain", "rarity": "uncommon"},
        {"id": "bench", "name": "Garden Bench", "rarity": "uncommon"},
        {"id": "gnome", "name": "Garden Gnome", "rarity": "rare"},
        {"id": "flamingo", "name": "Pink Flamingo", "rarity": "rare"},
        {"id": "statue", "name": "Garden Statue", "rarity": "epic"},
        {"id": "pond", "name": "Garden Pond", "rarity": "epic"},
        {"id": "golden_statue", "name": "Golden Statue", "rarity": "legendary"},
        {"id": "rainbow_fountain", "name": "Rainbow Fountain", "rarity": "legendary"},
    ],
}

DEFAULT_COOKIES = [
    {"id": "chocolate_chip", "rarity": "common", "probability": 0.7},
    {"id": "sugar", "rarity": "uncommon", "probability": 0.2},
    {"id": "rainbow", "rarity": "rare", "probability": 0.08},
    {"id": "golden", "rarity": "epic", "probability": 0.02},
    {"id": "special", "rarity": "legendary", "probability": 0.0},
]

DEFAULT_ACHIEVEMENTS = [
    {"id": "first_cookie", "name": "First Bite", "requirement": 1},
    {"id": "cookie_collector", "name": "Cookie Collector", "requirement": 10},
    {"id": "cookie_monster", "name": "Cookie Monster", "requirement": 25},
    {"id": "bakers_dozen", "name": "Baker's Dozen", "requirement": 13, "is_streak": True},
    {"id": "cookie_master", "name": "Cookie Master", "requirement": 50},
]


class DataHelper:
    """
    Handles the loading and validation of the catalog JSON files from the data directory.
    This class is responsible for parsing raw JSON into structured dataclass objects.
    It operates in a read-only manner on the data path.
    """

    def __init__(self, data_path_obj: pathlib.Path, logger: LoggingHelper):
        self.data_path = data_path_obj
        self.logger = logger

        self.plants: List[PlantDefinition] = []
        self.ornaments: List[OrnamentDefinition] = []
        self.ornament_weights: List[RarityWeight] = []
        self.cookies: List[CookieDefinition] = []
        self.achievements: List[AchievementDefinition] = []

    def load_all_data(self):
        """Master method to load all data files."""

        self.logger.init_log("Data loading process initiated.", "INFO")

        self.plants = self._load_plants_data()
        self.ornaments, self.ornament_weights = self._load_ornaments_data()
        self.cookies = self._load_cookies_data()
        self.achievements = self._load_achievements_data()

        self.logger.init_log("All data files loaded and processed.", "INFO")

    def _load_json_file(self, filename: str, default_data: Any) -> Any:
        """Generic JSON file loader with validation and logging. Does not write to disk."""

        file_path = self.data_path / filename
        log_prefix = f"Data Load ({filename}): "
        try:
            if file_path.exists():
                with open(file_path, 'r', encoding='utf-8') as f:
                    data = json.load(f)

                if data:
                    self.logger.init_log(f"{log_prefix}Successfully loaded {len(data)} entries.", "INFO")
                    return data
                else:
                    self.logger.init_log(f"{log_prefix}File is empty. Using default fallback data.", "WARNING")
                    return default_data
            else:
                self.logger.init_log(f"{log_prefix}File not found. Using default fallback data.", "WARNING")
                return default_data
        except (json.JSONDecodeError, OSError) as e:
            self.logger.init_log(f"{log_prefix}Failed to load or parse: {e}. Using default fallback data.", "ERROR")
            return default_data

    def _load_plants_data(self) -> List[PlantDefinition]:
        data = self._load_json_file("plants.json", DEFAULT_PLANTS)

        plants = []
        for p_dict in data:
            p_dict['tier_names'] = tuple(p_dict.get('tier_names', []))
            plants.append(PlantDefinition(**p_dict))

        if sum(1 for p in plants if p.is_currency) != 1:
            self.logger.init_log("Data Load (plants.json): Expected exactly one currency plant. "
                                 "Using default fallback data.", "ERROR")
            return [PlantDefinition(**{**p, 'tier_names': tuple(p['tier_names'])}) for p in DEFAULT_PLANTS]
        return plants

    def _load_ornaments_data(self):
        data = self._load_json_file("ornaments.json", DEFAULT_ORNAMENTS)
        items = data.get("items") or DEFAULT_ORNAMENTS["items"]
        weights: Dict[str, float] = data.get("rarity_weights") or DEFAULT_ORNAMENTS["rarity_weights"]

        ornaments = []
        for o_dict in items:
            if o_dict.get("rarity") not in ORNAMENT_RARITIES:
                self.logger.init_log(f"Data Load (ornaments.json): Skipping '{o_dict.get('id')}' with unknown rarity "
                                     f"'{o_dict.get('rarity')}'.", "WARNING")
                continue
            ornaments.append(OrnamentDefinition(**o_dict))
        rarity_weights = [RarityWeight(rarity=r, probability=float(p)) for r, p in weights.items()]
        return ornaments, rarity_weights

    def _load_cookies_data(self) -> List[CookieDefinition]:
        data = self._load_json_file("cookies.json", DEFAULT_COOKIES)
        return [CookieDefinition(**c_dict) for c_dict in data]

    def _load_achievements_data(self) -> List[AchievementDefinition]:
        data = self._load_json_file("achievements.json", DEFAULT_ACHIEVEMENTS)
        achievements = [AchievementDefinition(**a_dict) for a_dict in data]
        return sorted(achievements, key=lambda a: a.requirement)
