"""File id parsing and URL helpers."""

from typing import Tuple

from common.constants import FILE_ID_SEPARATOR, CHUNK_NAME_SEPARATOR
from common.exceptions import InvalidFileIdError


def parse_file_id(fid: str) -> Tuple[str, str]:
    """
    Split a file id into volume id and needle key/cookie.

    Args:
        fid: File id of the form "<volumeId>,<cookie>"

    Returns:
        Tuple of (volume_id, cookie)

    Raises:
        InvalidFileIdError: If the separator is missing or the volume id is empty
    """
    index = fid.find(FILE_ID_SEPARATOR)
    if index <= 0:
        raise InvalidFileIdError(f"wrong fid format: {fid}")
    return fid[:index], fid[index + 1:]


def chunk_name(session_fid: str, index: int) -> str:
    """Name of the chunk at 0-based ``index``, numbered from 1 on the wire."""
    return f"{session_fid}{CHUNK_NAME_SEPARATOR}{index + 1}"


def file_url(server: str, fid: str) -> str:
    """Build the object URL for fid on a volume server."""
    return f"{sanitize_url(server)}/{fid}"


def sanitize_url(url: str) -> str:
    if url.startswith("http://") or url.startswith("https://"):
        return url
    return f"http://{url}"
