"""Custom exception classes for the object store adaptor."""

from typing import Dict, Optional


class WeedFSError(Exception):
    """
    Base exception class for all adaptor errors.
    """
    pass


class InvalidFileIdError(WeedFSError, ValueError):
    """
    Raised when a file id is not of the form "<volumeId>,<cookie>".
    """
    pass


class InvalidTTLError(WeedFSError, ValueError):
    """
    Raised when a TTL string is not "<count><unit>".
    """
    pass


class ProtocolError(WeedFSError):
    """
    Raised when a server answers with a non-2xx status or an undecodable body.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class DirectoryError(WeedFSError):
    """
    Raised when the directory tier reports an error for a request.
    """
    pass


class AssignError(DirectoryError):
    """
    Raised when a file id assignment fails on every seed.
    """
    pass


class VolumeLookupError(DirectoryError):
    """
    Raised when one or more volume ids cannot be resolved.

    The results of the whole lookup, failed entries included, are kept on
    ``results`` so callers do not lose the entries that did resolve.
    """

    def __init__(self, message: str, results: Optional[Dict] = None):
        super().__init__(message)
        self.results = results or {}


class LocationNotFoundError(DirectoryError):
    """
    Raised when a volume resolves to no server locations.
    """
    pass


class UploadError(WeedFSError):
    """
    Raised when a volume server rejects an upload.
    """
    pass


class DownloadError(WeedFSError):
    """
    Raised when an object cannot be downloaded from a location.
    """
    pass


class DeleteError(WeedFSError):
    """
    Raised when an object cannot be deleted from any of its locations.
    """
    pass


class SessionStateError(WeedFSError):
    """
    Raised when a session operation is not allowed in its current state.
    """
    pass
