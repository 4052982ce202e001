"""Client for the directory (master) tier: assign, lookup and delete by fid."""

from typing import Callable, Dict, Iterable, List, Optional, TypeVar, Union

import httpx
from pydantic import ValidationError

from common.exceptions import (
    AssignError,
    DeleteError,
    DirectoryError,
    LocationNotFoundError,
    ProtocolError,
    VolumeLookupError,
)
from common.fid import file_url, parse_file_id
from common.logging_config import get_logger
from common.protocol import AssignResult, Location, LookupResult, VolumeAssignRequest
from common.types import DeleteFilesResult
from directory.batch_delete import BatchDeleteCoordinator
from directory.location_cache import LocationCache
from storage.http_transport import HttpTransport

logger = get_logger(__name__)

T = TypeVar("T")

# Failures that make a seed call fall through to the next seed
SEED_ERRORS = (httpx.TransportError, ProtocolError, DirectoryError, ValidationError)


def split_seeds(seeds: Union[str, Iterable[str]]) -> List[str]:
    """
    Normalize a seed list.

    Args:
        seeds: Comma-separated "host:port" string or an iterable of addresses

    Returns:
        Ordered list of non-empty seed addresses
    """
    if isinstance(seeds, str):
        seeds = seeds.split(",")
    return [seed.strip() for seed in seeds if seed and seed.strip()]


class DirectoryClient:
    """
    Stateless facade over the directory seeds, volume servers and location cache.

    Every directory call is tried against each seed in order until one
    succeeds. There is no randomization and no backoff; the number of
    attempts is bounded by the number of seeds.
    """

    def __init__(
        self,
        seeds: Union[str, Iterable[str]],
        transport: HttpTransport,
        cache: LocationCache,
        cache_ttl: Optional[float] = None,
        delete_workers: Optional[int] = None
    ):
        """
        Initialize directory client.

        Args:
            seeds: Directory seed addresses ("host:port,host:port")
            transport: HTTP transport shared with the sessions
            cache: Shared location cache
            cache_ttl: Expiry horizon for cached lookups (default: cache default)
            delete_workers: Max concurrent per-server calls of a batch delete
        """
        self.seeds = split_seeds(seeds)
        if not self.seeds:
            raise ValueError("at least one directory seed is required")

        self.transport = transport
        self.cache = cache
        self.cache_ttl = cache_ttl
        self.delete_workers = delete_workers

    def _retry_seeds(self, operation: Callable[[str], T]) -> T:
        """
        Run operation against each seed in order until one succeeds.

        Args:
            operation: Callable taking a seed address

        Returns:
            Result of the first successful call

        Raises:
            The last seed's error if every seed failed
        """
        last_exception = None

        for attempt, seed in enumerate(self.seeds):
            try:
                return operation(seed)
            except SEED_ERRORS as e:
                last_exception = e
                logger.warning(
                    f"Directory seed failed (attempt {attempt + 1}/{len(self.seeds)}): "
                    f"seed={seed} error={type(e).__name__}: {e}"
                )

        raise last_exception

    def assign(self, request: VolumeAssignRequest) -> AssignResult:
        """
        Ask the directory for a new file id.

        Args:
            request: Assignment hints (count, replication, ttl, placement)

        Returns:
            Assignment carrying fid, url and public url

        Raises:
            AssignError: If the directory reported an error on every seed
            httpx.TransportError: If the last seed could not be reached
        """
        form = request.to_form()

        def do_assign(seed: str) -> AssignResult:
            data = self.transport.post_form(f"http://{seed}/dir/assign", form)
            result = AssignResult.model_validate(data)
            logger.debug(f"Assign result from {seed}: fid={result.fid} url={result.url} error={result.error!r}")
            if result.error or result.count <= 0:
                raise AssignError(result.error or f"no file id assigned by {seed}")
            return result

        return self._retry_seeds(do_assign)

    def lookup(self, volume_id: str) -> LookupResult:
        """
        Resolve a volume to its locations, using the cache when possible.

        Args:
            volume_id: Volume id

        Returns:
            Lookup result; served from cache on a hit
        """
        locations = self.cache.get(volume_id)
        if locations is not None:
            return LookupResult(volume_id=volume_id, locations=locations)

        def do_lookup(seed: str) -> LookupResult:
            data = self.transport.post_form(f"http://{seed}/dir/lookup", {"volumeId": volume_id})
            result = LookupResult.model_validate(data)
            if result.error:
                raise VolumeLookupError(result.error)
            return result

        result = self._retry_seeds(do_lookup)
        self.cache.put(volume_id, result.locations, self.cache_ttl)
        return result

    def lookup_file_id(self, fid: str) -> List[Location]:
        """
        Resolve the replica locations of a file id.

        Raises:
            InvalidFileIdError: If fid is malformed
            LocationNotFoundError: If the volume has no locations
        """
        volume_id, _ = parse_file_id(fid)

        result = self.lookup(volume_id)
        if not result.locations:
            raise LocationNotFoundError(f"file not found for {fid}")

        return result.locations

    def lookup_volume_ids(self, volume_ids: Iterable[str]) -> Dict[str, LookupResult]:
        """
        Resolve many volumes with at most one network round trip.

        Cached volumes are served from the cache; the rest are requested in
        a single /vol/lookup call. Successful results are cached before any
        failure is reported.

        Args:
            volume_ids: Volume ids to resolve

        Returns:
            Mapping of volume id to lookup result

        Raises:
            VolumeLookupError: If some volumes failed; ``results`` still holds
                every result, failed ones included
        """
        results: Dict[str, LookupResult] = {}
        unknown: List[str] = []

        for volume_id in volume_ids:
            if volume_id in results or volume_id in unknown:
                continue
            locations = self.cache.get(volume_id)
            if locations is not None:
                results[volume_id] = LookupResult(volume_id=volume_id, locations=locations)
            else:
                unknown.append(volume_id)

        if not unknown:
            return results

        def do_batch_lookup(seed: str) -> Dict[str, LookupResult]:
            data = self.transport.post_form(f"http://{seed}/vol/lookup", {"volumeId": unknown})
            if not isinstance(data, dict):
                raise ProtocolError(f"unexpected /vol/lookup reply from {seed}: {data!r}")
            return {str(vid): LookupResult.model_validate(value) for vid, value in data.items()}

        fetched = self._retry_seeds(do_batch_lookup)

        errors = []
        for volume_id in unknown:
            result = fetched.get(volume_id)
            if result is None:
                result = LookupResult(volume_id=volume_id, error=f"volume {volume_id} not found")
            if not result.volume_id:
                result = result.model_copy(update={"volume_id": volume_id})
            results[volume_id] = result

            if result.error:
                errors.append(f"[{volume_id}]: {result.error}")
                continue
            self.cache.put(volume_id, result.locations, self.cache_ttl)

        if errors:
            raise VolumeLookupError("\n".join(errors), results=results)

        return results

    def delete_file(self, fid: str) -> None:
        """
        Delete a file id, stopping at the first replica that confirms.

        The volume server forwards the delete to the other replicas, so one
        confirmed delete is overall success.

        Raises:
            DeleteError: If no replica confirmed the delete
        """
        locations = self.lookup_file_id(fid)

        errors = []
        for location in locations:
            url = file_url(location.public_url, fid)
            try:
                self.transport.delete(url)
                logger.debug(f"Deleted {fid} at {url}")
                return
            except (DeleteError, httpx.TransportError) as e:
                logger.warning(f"Failed to delete {fid} at {url}: {e}")
                errors.append(f"{url}: {e}")

        raise DeleteError("\n".join(errors))

    def delete_files(self, fids: Iterable[str]) -> DeleteFilesResult:
        """Delete many file ids; see BatchDeleteCoordinator."""
        coordinator = BatchDeleteCoordinator(self, max_workers=self.delete_workers)
        return coordinator.delete_files(fids)
