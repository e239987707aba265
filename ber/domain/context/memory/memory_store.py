from typing import Dict, Any, List, Tuple
from functools import lru_cache
import asyncio
import structlog

logger = structlog.get_logger(__name__)


class MemoryStore:
    """In-memory store for payloads awaiting a user-approved action.

    Entries live until the process exits: nothing expires and the store has
    no capacity limit.
    """

    def __init__(self):
        self.data: Dict[str, Any] = {}
        self._lock = asyncio.Lock()
        logger.info("Creating memory store")

    @staticmethod
    def action_key(action_name: str, workflow_id: str) -> str:
        """Key under which a payload for an action is stored"""

        return f"{action_name}-{workflow_id}"

    async def set(self, key: str, value: Any) -> None:
        """Store a value under key"""

        async with self._lock:
            self.data[key] = value

        logger.debug("Setting key in store", key=key)

    async def get(self, key: str) -> Tuple[Any, bool]:
        """Get a value and whether the key exists"""

        async with self._lock:
            exists = key in self.data
            value = self.data.get(key)

        logger.debug("Getting key from store", key=key, exists=exists)
        return value, exists

    async def delete(self, key: str) -> bool:
        """Delete a key from the store"""

        async with self._lock:
            if key in self.data:
                del self.data[key]
                logger.debug("Deleted key from store", key=key)
                return True
            return False

    async def length(self) -> int:
        """Number of stored entries"""

        async with self._lock:
            return len(self.data)

    async def get_all_data(self) -> Dict[str, Any]:
        """Snapshot of all stored entries"""

        async with self._lock:
            return self.data.copy()

    async def keys_with_substring(self, substring: str) -> List[str]:
        """Keys containing substring, e.g. every pending action of a workflow id"""

        async with self._lock:
            matches = [key for key in self.data if substring in key]

        logger.debug("Found keys containing substring", substring=substring, match_count=len(matches))
        return matches


@lru_cache(maxsize=1)
def get_memory_store() -> MemoryStore:
    """Return the process-wide default store"""

    return MemoryStore()
