"""
In-memory TTL cache of volume locations.

Maps a volume id to the server locations holding its replicas. Entries are
never served past their expiry; a miss or an expired entry makes the caller
perform a fresh lookup and put the result back.
"""

import threading
import time
from typing import Callable, Dict, List, Optional

from common.constants import LOCATION_CACHE_TTL_SECONDS
from common.logging_config import get_logger
from common.protocol import Location
from common.types import LocationCacheEntry

logger = get_logger(__name__)


class LocationCache:
    """
    Thread-safe volume id -> locations cache with per-entry expiry.

    One instance is shared by every session of a client. Concurrent misses
    for the same volume may both look it up; the later put wins.
    """

    def __init__(
        self,
        default_ttl: float = LOCATION_CACHE_TTL_SECONDS,
        clock: Optional[Callable[[], float]] = None
    ):
        """
        Initialize location cache.

        Args:
            default_ttl: Seconds an entry stays valid when put() is given no ttl
            clock: Time source returning seconds (default: time.monotonic)
        """
        self._default_ttl = default_ttl
        self._clock = clock or time.monotonic
        self._lock = threading.RLock()
        self._entries: Dict[str, LocationCacheEntry] = {}

    def now(self) -> float:
        """Current time according to the cache's clock."""
        return self._clock()

    def get(self, volume_id: str) -> Optional[List[Location]]:
        """
        Look up cached locations for a volume.

        Args:
            volume_id: Volume id

        Returns:
            List of locations, or None on a miss or an expired entry
        """
        with self._lock:
            entry = self._entries.get(volume_id)
            if entry is None:
                return None

            if self.now() >= entry.expires_at:
                del self._entries[volume_id]
                logger.debug(f"Location cache entry expired [volume_id={volume_id}]")
                return None

            return list(entry.locations)

    def put(self, volume_id: str, locations: List[Location], ttl: Optional[float] = None) -> None:
        """
        Store locations for a volume, replacing any previous entry.

        Args:
            volume_id: Volume id
            locations: Replica locations of the volume
            ttl: Seconds until the entry expires (default: cache default)
        """
        ttl = self._default_ttl if ttl is None else ttl

        with self._lock:
            self._entries[volume_id] = LocationCacheEntry(
                locations=list(locations),
                expires_at=self.now() + ttl
            )

        logger.debug(
            f"Location cache updated [volume_id={volume_id}, locations={len(locations)}, ttl={ttl}s]"
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
