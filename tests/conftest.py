import copy
import pathlib
import random
from typing import Any, Dict, Iterable, Optional

import pytest

import funger
from funger.helpers import (
    CatalogHelper,
    DataHelper,
    EconomyHelper,
    GameStateHelper,
    GridHelper,
    LoggingHelper,
    RewardHelper,
    SessionHelper,
)
from funger.models import GRASS

DATA_PATH = pathlib.Path(funger.__file__).parent / "data"

START_TIME = 1_700_000_000


class FakeClock:
    def __init__(self, now: int = START_TIME):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int):
        self.now += seconds


class FixedRandom(random.Random):
    """Returns the given rolls in order, repeating the last one forever."""

    def __init__(self, rolls: Iterable[float] = (0.5,)):
        self.rolls = list(rolls)
        super().__init__(0)

    def random(self) -> float:
        if len(self.rolls) > 1:
            return self.rolls.pop(0)
        return self.rolls[0]


class FakeValue:
    def __init__(self, value: Optional[Dict[str, Any]] = None):
        self.value = value or {}
        self.fail_writes = False

    async def __call__(self) -> Dict[str, Any]:
        return copy.deepcopy(self.value)

    async def set(self, value: Dict[str, Any]):
        if self.fail_writes:
            raise OSError("disk full")
        self.value = copy.deepcopy(value)


class FakeConfig:
    """Stands in for redbot's Config group: `await config.game_state()` / `.set(...)`."""

    def __init__(self):
        self.game_state = FakeValue()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rng():
    # 0.5: chocolate chip cookies, and never an ornament bonus.
    return FixedRandom([0.5])


@pytest.fixture
def logger():
    return LoggingHelper(None, 0)


@pytest.fixture
def config():
    return FakeConfig()


@pytest.fixture
def store(config, logger):
    return GameStateHelper(config, logger)


@pytest.fixture
def catalog(logger):
    loader = DataHelper(DATA_PATH, logger)
    loader.load_all_data()
    return CatalogHelper(loader.plants, loader.ornaments, loader.ornament_weights, loader.cookies,
                         loader.achievements)


@pytest.fixture
def economy(store, catalog, logger, clock):
    return EconomyHelper(store, catalog, logger, clock=clock)


@pytest.fixture
def grid(store, economy, catalog, logger, clock):
    return GridHelper(store, economy, catalog, logger, clock=clock)


@pytest.fixture
def rewards(store, economy, catalog, logger, rng, clock):
    return RewardHelper(store, economy, catalog, logger, rng=rng, clock=clock)


@pytest.fixture
def sessions(store, rewards, logger, clock):
    return SessionHelper(store, rewards, logger, clock=clock)


@pytest.fixture
def touch_grass(sessions, clock):
    """Runs full Touch Grass breaks for a user and returns the last completion."""

    async def _touch_grass(user_id: int, times: int = 1):
        completion = None
        for _ in range(times):
            started = await sessions.start_session(user_id, GRASS)
            assert started.ok
            clock.advance(started.value.planned_duration_seconds)
            completed = await sessions.complete_session(user_id, started.value.id)
            assert completed.ok
            completion = completed.value
        return completion

    return _touch_grass
