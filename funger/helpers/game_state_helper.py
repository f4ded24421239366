import asyncio
import copy
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..errors import DependencyUnavailable, StoreConflict, StoreWriteFailed
from .lock_helper import LockHelper
from .logging_helper import LoggingHelper

SESSIONS = "sessions"
REWARD_EVENTS = "reward_events"
COOKIE_STATS = "cookie_stats"
GARDEN_STATS = "garden_stats"
INVENTORY = "inventory"
GRID = "grid"
LEDGER = "ledger"

TABLES: Tuple[str, ...] = (SESSIONS, REWARD_EVENTS, COOKIE_STATS, GARDEN_STATS, INVENTORY, GRID, LEDGER)

ORNAMENTS_CAPABILITY = "ornaments"


def user_key(user_id: int) -> str:
    return str(user_id)


def grid_key(user_id: int, x: int, y: int) -> str:
    return f"{user_id}:{x}:{y}"


def inventory_key(user_id: int, category: str, item_type: str, tier: str) -> str:
    return f"{user_id}:{category}:{item_type}:{tier}"


class GameStateHelper:
    """
    The single source of truth for all persistent game data.
    Holds every table in memory, is the sole gatekeeper for disk I/O with Red's Config,
    and offers only single-row atomic operations. Multi-row sequences belong to the callers.

    Every operation awaits once before touching state, so concurrent callers interleave
    between store calls exactly as they would against a remote database.
    """

    def __init__(self, config_object: Any, logger: LoggingHelper, lock_helper: Optional[LockHelper] = None):
        self.config = config_object
        self.logger = logger
        self.lock_helper = lock_helper or LockHelper()
        self.game_state: Dict[str, Any] = {}
        self._reset_tables()

    def _reset_tables(self):
        self.game_state.setdefault("tables", {})
        self.game_state.setdefault("global_state", {})
        for table in TABLES:
            self.game_state["tables"].setdefault(table, {})

        defaults = {
            "grass_session_minutes": 30,
            "ornaments_enabled": True,
            "log_channel_id": 0,
            "log_level": "INFO",
        }
        settings = self.game_state["global_state"]
        for key, value in defaults.items():
            settings.setdefault(key, value)

    async def load_game_state(self):
        """Loads the entire game state from disk into memory and initializes defaults."""

        self.game_state = await self.config.game_state()
        self._reset_tables()

        row_count = sum(len(rows) for rows in self.game_state["tables"].values())
        await self.logger.log_to_discord(f"System Startup: Game state loaded into memory ({row_count} rows).", "INFO")

    async def commit_to_disk(self):
        try:
            await self.config.game_state.set(self.game_state)
        except Exception as e:
            await self.logger.log_to_discord(f"Store: Commit to disk failed: {e}", "ERROR")
            raise StoreWriteFailed(str(e)) from e

    # --- Settings ---

    def get_global_state(self, key: str, default: Any = None) -> Any:
        return self.game_state.get("global_state", {}).get(key, default)

    def set_global_state(self, key: str, value: Any):
        self.game_state["global_state"][key] = value

    def next_sequence(self, name: str) -> int:
        """Monotonic counter persisted with the game state. Used to order rows written in the same second."""
        key = f"{name}_sequence"
        value = self.get_global_state(key, 0) + 1
        self.set_global_state(key, value)
        return value

    def is_capability_enabled(self, capability: str) -> bool:
        return bool(self.get_global_state(f"{capability}_enabled", False))

    def require_capability(self, capability: str):
        if not self.is_capability_enabled(capability):
            raise DependencyUnavailable(capability)

    # --- Row access ---

    def _table(self, table: str) -> Dict[str, Dict[str, Any]]:
        return self.game_state["tables"][table]

    @staticmethod
    async def _io_boundary():
        await asyncio.sleep(0)

    @staticmethod
    def _owned(row: Optional[Dict[str, Any]], owner: Optional[int]) -> bool:
        return row is not None and (owner is None or row.get("user_id") == owner)

    def row_lock(self, table: str, key: str) -> asyncio.Lock:
        """The lock serializing a read-compute-write sequence on one row."""
        return self.lock_helper.get_row_lock((table, key))

    async def fetch(self, table: str, key: str, owner: Optional[int] = None) -> Optional[Dict[str, Any]]:
        """Returns a copy of the row, or None if it does not exist or belongs to another user."""
        await self._io_boundary()
        row = self._table(table).get(key)
        return copy.deepcopy(row) if self._owned(row, owner) else None

    async def select(self, table: str, **filters: Any) -> List[Dict[str, Any]]:
        await self._io_boundary()
        return [
            copy.deepcopy(row) for row in self._table(table).values()
            if all(row.get(field) == value for field, value in filters.items())
        ]

    async def insert(self, table: str, key: str, row: Dict[str, Any]) -> Dict[str, Any]:
        """Inserts a new row. Raises StoreConflict if the key is already present."""
        await self._io_boundary()
        rows = self._table(table)
        if key in rows:
            raise StoreConflict(table, key)
        rows[key] = copy.deepcopy(row)
        return copy.deepcopy(row)

    async def upsert(self, table: str, key: str, row: Dict[str, Any]) -> Dict[str, Any]:
        await self._io_boundary()
        self._table(table)[key] = copy.deepcopy(row)
        return copy.deepcopy(row)

    async def delete(self, table: str, key: str, owner: Optional[int] = None,
                     expected: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        """
        Removes and returns the row. Returns None when it is absent, not owned, or does not
        match `expected`, so exactly one of several concurrent deleters receives the row.
        """
        await self._io_boundary()
        rows = self._table(table)
        row = rows.get(key)
        if not self._owned(row, owner):
            return None
        if expected and any(row.get(field) != value for field, value in expected.items()):
            return None
        return rows.pop(key)

    async def increment(self, table: str, key: str, deltas: Dict[str, int], defaults: Dict[str, Any],
                        floors: Optional[Dict[str, int]] = None) -> Optional[Dict[str, Any]]:
        """
        Atomic increment-upsert. Creates the row from `defaults` when missing, then adds each delta.
        If any field named in `floors` would end below its floor nothing is written and None is returned.
        """
        await self._io_boundary()
        rows = self._table(table)
        current = copy.deepcopy(rows.get(key)) if key in rows else copy.deepcopy(defaults)

        updated = dict(current)
        for field, delta in deltas.items():
            updated[field] = updated.get(field, 0) + delta

        for field, floor in (floors or {}).items():
            if updated.get(field, 0) < floor:
                return None

        rows[key] = updated
        return copy.deepcopy(updated)

    async def compare_and_set(self, table: str, key: str, expected: Dict[str, Any],
                              changes: Dict[str, Any]) -> bool:
        """Applies `changes` only if every field in `expected` still holds. Returns whether it did."""
        await self._io_boundary()
        row = self._table(table).get(key)
        if row is None:
            return False
        if any(row.get(field) != value for field, value in expected.items()):
            return False
        row.update(copy.deepcopy(changes))
        return True

    async def update_row(self, table: str, key: str, mutator: Callable[[Dict[str, Any]], Dict[str, Any]],
                         defaults: Dict[str, Any]) -> Dict[str, Any]:
        """Atomic upsert through a pure function of the current row."""
        await self._io_boundary()
        rows = self._table(table)
        current = copy.deepcopy(rows.get(key, defaults))
        updated = mutator(current)
        rows[key] = copy.deepcopy(updated)
        return copy.deepcopy(updated)
