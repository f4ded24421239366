import asyncio
import time
from typing import Any, Dict, Hashable, Optional


class LockHelper:
    """
    Manages all non-persistent, in-memory locks for the cog.
    User action locks are advisory flags checked by commands; row locks are asyncio locks
    that serialize read-modify-write sequences on a single store row.
    """

    def __init__(self):
        self._locks: Dict[int, Dict[str, Any]] = {}
        self._row_locks: Dict[Hashable, asyncio.Lock] = {}

    def get_user_lock(self, user_id: int) -> Optional[Dict[str, Any]]:
        """Retrieves the lock object for a user if they are locked."""
        return self._locks.get(user_id)

    def add_lock(self, user_id: int, lock_type: str, message: str):
        """
        Applies a lock to a user, including a timestamp.
        Does nothing if the user is already locked.
        """
        if user_id not in self._locks:
            self._locks[user_id] = {
                "user_id": user_id,
                "type": lock_type,
                "message": message,
                "timestamp": time.time()
            }

    def remove_lock_for_user(self, user_id: int):
        """Removes a lock from a specific user."""
        self._locks.pop(user_id, None)

    def get_row_lock(self, key: Hashable) -> asyncio.Lock:
        """Returns the asyncio lock guarding a single row, creating it on first use."""
        lock = self._row_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._row_locks[key] = lock
        return lock

    def clear_all_locks(self):
        """Removes all active locks. To be used on cog unload."""
        self._locks.clear()
        self._row_locks.clear()
