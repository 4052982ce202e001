"""Entry point for storing, reading and removing objects."""

from typing import Iterable, Optional

import httpx

from common.logging_config import get_logger
from common.types import DeleteFilesResult
from directory.directory_client import DirectoryClient
from directory.location_cache import LocationCache
from storage.http_transport import HttpTransport
from weedfs.config import Config, clamp_chunk_size
from weedfs.session import ReadSession, WriteSession

logger = get_logger(__name__)


class WeedFS:
    """
    Client for a SeaweedFS-style object store.

    Owns one HTTP session and one location cache shared by every session it
    creates. Safe to use from several threads; each WriteSession must stay
    with a single writer.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        session: Optional[httpx.Client] = None,
        cache: Optional[LocationCache] = None
    ):
        """
        Initialize client.

        Args:
            config: Configuration (default: environment-derived Config())
            session: HTTP client to use (default: new httpx.Client with config timeout)
            cache: Location cache to share (default: new cache with config TTL)
        """
        self.config = config or Config()
        self.session = session or httpx.Client(timeout=self.config.get_timeout())
        self.cache = cache or LocationCache(default_ttl=self.config.get_location_cache_ttl())
        self.transport = HttpTransport(self.session)
        self.directory = DirectoryClient(
            self.config.get_seeds(),
            self.transport,
            self.cache,
            delete_workers=self.config.get_delete_workers()
        )
        logger.info(f"Initialized WeedFS client [seeds={','.join(self.directory.seeds)}]")

    def create(
        self,
        name: str = "",
        replication: Optional[str] = None,
        data_center: Optional[str] = None,
        rack: Optional[str] = None,
        chunk_size: Optional[int] = None,
        ttl: Optional[str] = None
    ) -> WriteSession:
        """
        Open a new object for writing.

        Args:
            name: Logical file name
            replication: Replication policy (default: config)
            data_center: Data center hint (default: config)
            rack: Rack hint (default: config)
            chunk_size: Split threshold in bytes, 0 disables chunking (default: config)
            ttl: Object TTL (default: config)

        Returns:
            WriteSession; call close() to commit
        """
        if chunk_size is None:
            chunk_size = self.config.get_chunk_size()
        else:
            chunk_size = clamp_chunk_size(chunk_size)

        return WriteSession.create(
            self.directory,
            self.transport,
            name=name,
            replication=self.config.get_replication() if replication is None else replication,
            data_center=self.config.get_data_center() if data_center is None else data_center,
            rack=self.config.get_rack() if rack is None else rack,
            chunk_size=chunk_size,
            ttl=self.config.get_default_ttl() if ttl is None else ttl
        )

    def open(self, fid: str) -> ReadSession:
        """Open an existing object for reading."""
        return ReadSession.open(self.directory, self.transport, fid)

    def remove(self, fid: str) -> bool:
        """
        Delete one object.

        Returns:
            True once a replica confirmed the delete

        Raises:
            DeleteError: If no replica confirmed the delete
        """
        self.directory.delete_file(fid)
        return True

    def remove_many(self, fids: Iterable[str]) -> DeleteFilesResult:
        """Delete many objects; inspect both results and errors of the outcome."""
        return self.directory.delete_files(fids)

    def close(self) -> None:
        """Close the HTTP session."""
        self.transport.close()

    def __enter__(self) -> "WeedFS":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
