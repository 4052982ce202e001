"""Batch deletion of many file ids, fanned out per volume server."""

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, Iterable, List, Optional

import httpx
from pydantic import ValidationError

from common.constants import DEFAULT_DELETE_WORKERS
from common.exceptions import InvalidFileIdError, ProtocolError, VolumeLookupError
from common.fid import parse_file_id, sanitize_url
from common.logging_config import get_logger
from common.protocol import DeleteResult, LookupResult
from common.types import DeleteFilesResult

logger = get_logger(__name__)

BAD_REQUEST_STATUS = 400


class BatchDeleteCoordinator:
    """
    Deletes a set of file ids with one request per distinct volume server.

    Ids are grouped by volume, volumes are resolved in one batch lookup,
    and ids are regrouped by the server holding each replica. The per-server
    calls run concurrently and are all joined before the aggregate result
    is returned. A failure on one server or volume never stops the rest.
    """

    def __init__(self, directory, max_workers: Optional[int] = None):
        """
        Initialize coordinator.

        Args:
            directory: DirectoryClient used for lookups and transport
            max_workers: Upper bound on concurrent per-server calls
        """
        self.directory = directory
        self.max_workers = max_workers or DEFAULT_DELETE_WORKERS

    def delete_files(self, fids: Iterable[str]) -> DeleteFilesResult:
        """
        Delete file ids in bulk.

        Args:
            fids: File ids to delete

        Returns:
            DeleteFilesResult; malformed ids appear in ``results`` with status
            400, unresolvable volumes and failed server calls in ``errors``
        """
        ret = DeleteFilesResult()
        volume_to_fids: Dict[str, List[str]] = {}

        for fid in fids:
            try:
                volume_id, _ = parse_file_id(fid)
            except InvalidFileIdError as e:
                ret.results.append(DeleteResult(fid=fid, status=BAD_REQUEST_STATUS, error=str(e)))
                continue
            volume_to_fids.setdefault(volume_id, []).append(fid)

        if not volume_to_fids:
            return ret

        lookup_results = self._resolve_volumes(list(volume_to_fids), ret)

        server_to_fids: Dict[str, List[str]] = {}
        for volume_id, result in lookup_results.items():
            if result.error:
                ret.errors.append(f"[{volume_id}]: {result.error}")
                continue
            if not result.locations:
                ret.errors.append(f"[{volume_id}]: no locations for volume {volume_id}")
                continue
            for location in result.locations:
                server_to_fids.setdefault(location.url, []).extend(volume_to_fids.get(volume_id, []))

        if not server_to_fids:
            return ret

        logger.debug(
            f"Batch delete: {sum(len(v) for v in volume_to_fids.values())} fid(s) "
            f"across {len(server_to_fids)} server(s)"
        )

        workers = min(self.max_workers, len(server_to_fids))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                executor.submit(self._delete_on_server, server, fid_list): server
                for server, fid_list in server_to_fids.items()
            }

            for future in as_completed(futures):
                server = futures[future]
                try:
                    ret.results.extend(future.result())
                except (httpx.TransportError, ProtocolError, ValidationError) as e:
                    logger.warning(f"Batch delete failed on {server}: {e}")
                    ret.errors.append(f"{server}: {e}")

        return ret

    def _resolve_volumes(self, volume_ids: List[str], ret: DeleteFilesResult) -> Dict[str, LookupResult]:
        """Batch lookup that keeps partial results and records total failure in ret.errors."""
        try:
            return self.directory.lookup_volume_ids(volume_ids)
        except VolumeLookupError as e:
            if e.results:
                return e.results
            ret.errors.append(str(e))
        except (httpx.TransportError, ProtocolError, ValidationError) as e:
            logger.warning(f"Batch delete lookup failed for {len(volume_ids)} volume(s): {e}")
            ret.errors.append(str(e))
        return {}

    def _delete_on_server(self, server: str, fids: List[str]) -> List[DeleteResult]:
        """
        POST every fid a server is responsible for in one request.

        Args:
            server: Volume server address
            fids: File ids stored on that server

        Returns:
            Per-fid results reported by the server
        """
        data = self.directory.transport.post_form(f"{sanitize_url(server)}/delete", {"fid": fids})
        if not isinstance(data, list):
            raise ProtocolError(f"unexpected /delete reply from {server}: {data!r}")
        return [DeleteResult.model_validate(item) for item in data]
