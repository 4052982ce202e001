"""Write and read sessions over stored objects.

A WriteSession buffers what the caller writes and, once the buffer grows past
the chunk size, uploads it as independently assigned chunks. Closing the
session either commits (single upload, or tail chunk plus manifest) or
removes every chunk it already stored. A ReadSession streams one object from
the first replica that answers.
"""

import mimetypes
import posixpath
from abc import ABC, abstractmethod
from enum import Enum
from typing import Iterator, List, Optional, Tuple

import httpx

from common.constants import (
    CHUNK_MIME_TYPE,
    GZIP_RENAME_EXTENSIONS,
    MANIFEST_MIME_TYPE,
    MANIFEST_QUERY_PARAM,
)
from common.exceptions import DownloadError, SessionStateError
from common.fid import chunk_name, file_url
from common.logging_config import get_logger
from common.protocol import AssignResult, ChunkInfo, ChunkManifest, VolumeAssignRequest
from common.ttl import adjust_ttl, sanitize_ttl
from directory.directory_client import DirectoryClient
from storage.http_transport import HttpTransport

logger = get_logger(__name__)

READ_BLOCK_SIZE = 64 * 1024


class SessionState(Enum):
    """Lifecycle of a write session."""
    WRITABLE = "writable"
    POISONED = "poisoned"
    COMMITTED = "committed"
    ABORTED = "aborted"


class Session(ABC):
    """Capability shared by read and write sessions."""

    @abstractmethod
    def close(self) -> None:
        """Release the session, committing or discarding what it holds."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class WriteSession(Session):
    """
    Buffered, chunking writer for one logical object.

    Owned by a single writer; not safe for concurrent writes.
    """

    def __init__(
        self,
        directory: DirectoryClient,
        transport: HttpTransport,
        assignment: AssignResult,
        name: str = "",
        replication: str = "",
        data_center: str = "",
        rack: str = "",
        chunk_size: int = 0,
        ttl: str = ""
    ):
        """
        Initialize a write session for an already assigned fid.

        Args:
            directory: Directory client for chunk assignment and cleanup
            transport: HTTP transport for uploads
            assignment: Result of the primary assign call
            name: Logical file name (may be a path; only the base name is kept)
            replication: Replication policy for chunks (e.g. "001")
            data_center: Data center placement hint
            rack: Rack placement hint
            chunk_size: Split threshold in bytes, 0 disables chunking
            ttl: TTL of the object, chunks get it extended by one unit
        """
        self.directory = directory
        self.transport = transport

        self.fid = assignment.fid
        self.file_url = file_url(assignment.public_url, assignment.fid)
        self.file_name, self.real_name, self.mime_type, self.is_gzipped = resolve_names(name, self.fid)
        self.replication = replication
        self.data_center = data_center
        self.rack = rack
        self.chunk_size = chunk_size
        self.ttl = ttl
        self.size = 0

        self._buffer = bytearray()
        self._chunks: List[ChunkInfo] = []
        self._split = False
        self._state = SessionState.WRITABLE

    @classmethod
    def create(
        cls,
        directory: DirectoryClient,
        transport: HttpTransport,
        name: str = "",
        replication: str = "",
        data_center: str = "",
        rack: str = "",
        chunk_size: int = 0,
        ttl: str = ""
    ) -> "WriteSession":
        """
        Assign a primary fid and open a session for it.

        Raises:
            AssignError: If no seed could assign a fid
            httpx.TransportError: If the last seed could not be reached
        """
        assignment = directory.assign(VolumeAssignRequest(
            count=1,
            replication=replication,
            data_center=data_center,
            rack=rack,
            ttl=ttl
        ))

        session = cls(
            directory,
            transport,
            assignment,
            name=name,
            replication=replication,
            data_center=data_center,
            rack=rack,
            chunk_size=chunk_size,
            ttl=ttl
        )
        logger.debug(f"Created write session {session}")
        return session

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_split(self) -> bool:
        return self._split

    @property
    def chunks(self) -> Tuple[ChunkInfo, ...]:
        return tuple(self._chunks)

    def write(self, data: bytes) -> int:
        """
        Buffer data, uploading full chunks once the buffer exceeds chunk_size.

        Args:
            data: Bytes to append to the object

        Returns:
            Number of bytes accepted

        Raises:
            SessionStateError: If the session is no longer writable
            Any chunk upload error; the session is then poisoned and close()
            will remove the chunks already stored
        """
        if self._state is not SessionState.WRITABLE:
            raise SessionStateError(f"cannot write to {self._state.value} session {self.fid}")

        if not data:
            return 0

        self._buffer.extend(data)

        if self.chunk_size > 0 and len(self._buffer) > self.chunk_size:
            while len(self._buffer) >= self.chunk_size:
                self._upload_chunk(bytes(self._buffer[:self.chunk_size]))
                del self._buffer[:self.chunk_size]

        return len(data)

    def close(self) -> None:
        """
        Commit or abort the object.

        A poisoned session removes its chunks and returns normally, the
        failure having been raised by write(). Otherwise the buffered data is
        uploaded, as one object or as a tail chunk plus manifest. A failed
        chunked commit removes every chunk before re-raising.
        """
        if self._state in (SessionState.COMMITTED, SessionState.ABORTED):
            return

        if self._state is SessionState.POISONED:
            self._buffer.clear()
            self._delete_chunks()
            self._state = SessionState.ABORTED
            return

        try:
            if self._split:
                self._commit_chunked()
            else:
                self._commit_single()
        except Exception:
            self._state = SessionState.ABORTED
            raise

        self._state = SessionState.COMMITTED
        logger.info(f"Uploaded {self.real_name} to {self.file_url} ({self.size} bytes, {len(self._chunks)} chunk(s))")

    def abort(self) -> None:
        """Discard buffered data and remove every chunk stored so far."""
        if self._state in (SessionState.COMMITTED, SessionState.ABORTED):
            return
        self._buffer.clear()
        self._delete_chunks()
        self._state = SessionState.ABORTED

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is not None and self._state is SessionState.WRITABLE:
            logger.warning(f"Aborting {self.fid} after {exc_type.__name__} in caller")
            self.abort()
            return
        self.close()

    def _commit_single(self) -> None:
        data = bytes(self._buffer)
        url = sanitize_ttl(self.file_url, self.ttl)
        try:
            self.transport.upload(url, self.file_name, data, self.is_gzipped, self.mime_type)
        except Exception as e:
            logger.warning(f"Failed to upload {self.real_name} to {self.file_url}: {e}")
            raise
        self.size = len(data)
        self._buffer.clear()

    def _commit_chunked(self) -> None:
        try:
            if self._buffer:
                self._upload_chunk(bytes(self._buffer))
                self._buffer.clear()
            self._upload_manifest()
        except Exception as e:
            logger.warning(f"Failed to upload {self.real_name} to {self.file_url}: {e}")
            self._buffer.clear()
            self._delete_chunks()
            raise

    def _upload_chunk(self, data: bytes) -> None:
        """Upload one slice under a freshly assigned fid and record it."""
        index = len(self._chunks)
        self._split = True

        try:
            assignment = self.directory.assign(VolumeAssignRequest(
                count=1,
                replication=self.replication,
                data_center=self.data_center,
                rack=self.rack,
                ttl=self.ttl
            ))
            url = sanitize_ttl(file_url(assignment.public_url, assignment.fid), adjust_ttl(self.ttl))
            name = chunk_name(self.fid, index)
            logger.debug(f"Uploading chunk {name} to {url}...")
            result = self.transport.upload(url, name, data, False, CHUNK_MIME_TYPE)
        except Exception:
            self._state = SessionState.POISONED
            raise

        size = result.size or len(data)
        self._chunks.append(ChunkInfo(fid=assignment.fid, offset=index * self.chunk_size, size=size))
        self.size += size

    def _upload_manifest(self) -> None:
        manifest = ChunkManifest(
            name=self.real_name,
            size=self.size,
            mime=self.mime_type,
            chunks=list(self._chunks)
        )

        params = {MANIFEST_QUERY_PARAM: "true"}
        if self.ttl:
            params["ttl"] = self.ttl
        url = str(httpx.URL(self.file_url).copy_merge_params(params))

        self.transport.upload(url, manifest.name, manifest.to_json(), False, MANIFEST_MIME_TYPE)
        logger.debug(f"Uploaded chunk manifest {manifest.name} to {self.file_url}")

    def _delete_chunks(self) -> bool:
        """
        Best-effort removal of every stored chunk.

        Returns:
            True if all chunks were deleted
        """
        failed = 0
        for chunk in self._chunks:
            try:
                self.directory.delete_file(chunk.fid)
            except Exception as e:
                failed += 1
                logger.warning(f"Failed to remove chunk {chunk.fid} of {self.fid}: {e}")

        if failed:
            logger.error(f"Not all chunks deleted for {self.fid} ({failed}/{len(self._chunks)} failed)")
        return failed == 0

    def __str__(self) -> str:
        return (
            f"Fid:{self.fid}, FileName:{self.real_name}, IsGzipped:{self.is_gzipped}, "
            f"MimeType:{self.mime_type}, FileUrl:{self.file_url}, TTL:{self.ttl}"
        )


class ReadSession(Session):
    """Streaming reader over a downloaded object."""

    def __init__(self, fid: str, file_name: str, file_url: str, response: httpx.Response):
        self.fid = fid
        self.file_name = file_name
        self.file_url = file_url
        self._response = response
        self._stream = response.iter_bytes()
        self._pending = bytearray()
        self._eof = False
        self._closed = False

    @classmethod
    def open(cls, directory: DirectoryClient, transport: HttpTransport, fid: str) -> "ReadSession":
        """
        Download fid from the first of its locations that answers.

        Raises:
            InvalidFileIdError: If fid is malformed
            LocationNotFoundError: If the volume has no locations
            The last download error if every location failed
        """
        locations = directory.lookup_file_id(fid)

        last_error: Optional[Exception] = None
        for location in locations:
            url = file_url(location.public_url, fid)
            try:
                filename, response = transport.download(url)
            except (DownloadError, httpx.TransportError) as e:
                last_error = e
                logger.warning(f"Failed to download {fid} from {url}: {e}")
                continue

            logger.debug(f"Opened {fid} at {url}")
            return cls(fid, filename or fid, url, response)

        raise last_error

    def read(self, size: int = -1) -> bytes:
        """
        Read up to size bytes (all remaining bytes when size < 0).

        An empty piece from the underlying stream ends the stream, so b"" is
        returned from then on.
        """
        if self._closed:
            raise SessionStateError(f"read from closed session {self.fid}")

        while not self._eof and (size < 0 or len(self._pending) < size):
            piece = next(self._stream, b"")
            if not piece:
                self._eof = True
                break
            self._pending.extend(piece)

        if size < 0 or size > len(self._pending):
            size = len(self._pending)

        data = bytes(self._pending[:size])
        del self._pending[:size]
        return data

    def __iter__(self) -> Iterator[bytes]:
        while True:
            block = self.read(READ_BLOCK_SIZE)
            if not block:
                return
            yield block

    def close(self) -> None:
        """Release the underlying HTTP stream."""
        if self._closed:
            return
        self._closed = True
        self._response.close()
        logger.debug(f"Closed read session {self.fid} from {self.file_url}")


def resolve_names(name: str, fid: str) -> Tuple[str, str, str, bool]:
    """
    Derive the stored names and content metadata of a new object.

    The store strips ".gz" from names like "a.txt.gz" when serving them,
    so such objects are uploaded as "<fid>.gz" to keep their bytes intact.

    Args:
        name: Caller supplied name or path, may be empty
        fid: Assigned file id, used when name is empty

    Returns:
        Tuple of (file_name, real_name, mime_type, is_gzipped)
    """
    if not name:
        return fid, fid, "", False

    base_name = posixpath.basename(name.rstrip("/")) or fid
    ext = posixpath.splitext(base_name)[1].lower()
    if not ext:
        return base_name, base_name, "", False

    mime_type = mimetypes.guess_type(f"file{ext}")[0] or ""
    file_name = base_name
    is_gzipped = False

    if ext == ".gz":
        is_gzipped = True
        inner_ext = posixpath.splitext(base_name[:-len(ext)])[1].lower()
        if inner_ext in GZIP_RENAME_EXTENSIONS:
            file_name = f"{fid}.gz"

    return file_name, base_name, mime_type, is_gzipped
