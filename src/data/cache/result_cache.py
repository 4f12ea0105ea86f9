"""Process-local TTL cache for simulation results."""

import hashlib
import json
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A cached payload tagged with its insertion time."""

    timestamp: float
    payload: T


class ResultCache(Generic[T]):
    """
    In-memory cache with a fixed TTL and an optional capacity bound.

    Entries expire lazily on read. When full, the oldest-inserted entry is
    evicted (FIFO); reads and overwrites do not change an entry's position.
    """

    def __init__(
        self,
        ttl_seconds: float = 300,
        max_size: Optional[int] = 100,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry[T]]" = OrderedDict()

    @staticmethod
    def make_key(account_id: str, scenario_id: Optional[str] = None, options: Optional[Dict[str, Any]] = None) -> str:
        """
        Create a deterministic key from simulation parameters.

        Args:
            account_id: Account the simulation belongs to
            scenario_id: Scenario id (None = unscenario'd baseline)
            options: Simulation options (iterations, horizon, ...)

        Returns:
            Key of the form sim_{account}_{scenario|default}_{hash}
        """
        params = json.dumps(
            {"account_id": account_id, "scenario_id": scenario_id, **(options or {})},
            sort_keys=True,
            default=str,
        )
        digest = hashlib.sha256(params.encode()).hexdigest()[:16]
        return f"sim_{account_id}_{scenario_id or 'default'}_{digest}"

    def _is_expired(self, entry: CacheEntry[T]) -> bool:
        return self._clock() - entry.timestamp > self.ttl_seconds

    def get(self, key: str) -> Optional[T]:
        """
        Get a payload from the cache.

        Args:
            key: Cache key

        Returns:
            Cached payload, or None if absent or expired
        """
        entry = self._entries.get(key)
        if entry is None:
            return None

        if self._is_expired(entry):
            del self._entries[key]
            logger.debug(f"Cache entry expired: {key}")
            return None

        return entry.payload

    def set(self, key: str, payload: T) -> None:
        """
        Store a payload, evicting the oldest-inserted entry when at capacity.

        Args:
            key: Cache key
            payload: Value to cache
        """
        if key in self._entries:
            self._entries[key] = CacheEntry(timestamp=self._clock(), payload=payload)
            return

        if self.max_size is not None and len(self._entries) >= self.max_size:
            oldest_key, _ = self._entries.popitem(last=False)
            logger.debug(f"Cache full, evicted {oldest_key}")

        self._entries[key] = CacheEntry(timestamp=self._clock(), payload=payload)

    def delete(self, key: str) -> bool:
        """Delete a key; returns True if it was present."""
        return self._entries.pop(key, None) is not None

    def delete_prefix(self, prefix: str) -> int:
        """Delete every key starting with `prefix`; returns the count."""
        keys = [k for k in self._entries if k.startswith(prefix)]
        for k in keys:
            del self._entries[k]
        return len(keys)

    def clear(self) -> int:
        """Clear all entries; returns the number cleared."""
        count = len(self._entries)
        self._entries.clear()
        return count

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> dict:
        """Get cache statistics."""
        return {
            "size": len(self._entries),
            "max_size": self.max_size,
            "ttl_seconds": self.ttl_seconds,
        }


class CacheKeys:
    """Standard cache key patterns."""

    @staticmethod
    def simulation(account_id: str, scenario_id: Optional[str], **options) -> str:
        return ResultCache.make_key(account_id, scenario_id, options)

    @staticmethod
    def account_prefix(account_id: str) -> str:
        return f"sim_{account_id}_"

    @staticmethod
    def alerts(account_id: str) -> str:
        return f"alerts:{account_id}"
