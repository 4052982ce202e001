"""Shared client-side data types (cache entries, batch results)."""

from dataclasses import dataclass, field
from typing import List

from common.protocol import DeleteResult, Location


@dataclass(frozen=True)
class LocationCacheEntry:
    """
    Cached locations of a volume.
    """
    locations: List[Location]
    expires_at: float


@dataclass
class DeleteFilesResult:
    """
    Aggregate outcome of a batch delete.

    ``results`` holds structured per-fid outcomes reported by volume servers
    and client-side parse failures; ``errors`` holds everything that could
    not be attributed to a single fid (lookup failures, failed server calls).
    """
    results: List[DeleteResult] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
