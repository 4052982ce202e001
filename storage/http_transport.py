"""HTTP transport for directory and volume server requests."""

import mimetypes
from typing import Any, Dict, Optional, Tuple

import httpx

from common.constants import DELETE_OK_STATUS_CODES
from common.exceptions import DeleteError, DownloadError, ProtocolError, UploadError
from common.logging_config import get_logger
from common.protocol import UploadResult

logger = get_logger(__name__)


class HttpTransport:
    """
    Thin wrapper over a shared httpx.Client.

    Storage-server calls are never retried here; transport errors
    (httpx.TransportError) propagate unchanged to the caller.
    """

    def __init__(self, session: httpx.Client):
        """
        Initialize transport.

        Args:
            session: HTTP client shared by every request of the adaptor
        """
        self.session = session

    def post_form(self, url: str, data: Dict[str, Any]) -> Any:
        """
        POST url-encoded form values and decode the JSON reply.

        Args:
            url: Absolute request URL
            data: Form values; list values are sent as repeated fields

        Returns:
            Decoded JSON body

        Raises:
            ProtocolError: On non-2xx status or a body that is not JSON
        """
        response = self.session.post(url, data=data)
        logger.debug(f"POST {url} status={response.status_code}")

        if not response.is_success:
            raise ProtocolError(
                f"{url}: {response.status_code} {response.reason_phrase} {self._error_detail(response)}".rstrip(),
                status_code=response.status_code
            )

        try:
            return response.json()
        except ValueError as e:
            raise ProtocolError(f"{url}: invalid JSON response: {e}", status_code=response.status_code)

    def upload(
        self,
        url: str,
        filename: str,
        data: bytes,
        is_gzipped: bool = False,
        mime_type: str = ""
    ) -> UploadResult:
        """
        Upload bytes as a multipart form to a volume server.

        Args:
            url: Target URL (http://<server>/<fid>[?ttl=..][&cm=true])
            filename: Filename of the form part
            data: Content to store
            is_gzipped: Mark the part with Content-Encoding: gzip
            mime_type: Content type of the part (guessed from filename if empty)

        Returns:
            Parsed upload result

        Raises:
            UploadError: On non-2xx status or a JSON error field
        """
        if not mime_type:
            mime_type = mimetypes.guess_type(filename)[0] or ""

        part_headers = {}
        if is_gzipped:
            part_headers["Content-Encoding"] = "gzip"

        files = {"file": (filename, data, mime_type or None, part_headers)}

        logger.debug(f"Uploading {filename} ({len(data)} bytes) to {url}")
        response = self.session.post(url, files=files)

        if not response.is_success:
            raise UploadError(
                f"{url}: {response.status_code} {response.reason_phrase} {self._error_detail(response)}".rstrip()
            )

        try:
            result = UploadResult.model_validate(response.json())
        except ValueError as e:
            raise UploadError(f"{url}: invalid upload response: {e}")

        if result.error:
            raise UploadError(result.error)

        return result

    def download(self, url: str) -> Tuple[str, httpx.Response]:
        """
        Start a streaming GET of an object.

        Args:
            url: Object URL

        Returns:
            Tuple of (filename from Content-Disposition or "", open response).
            The caller owns the response and must close it.

        Raises:
            DownloadError: If the server does not answer 200
        """
        request = self.session.build_request("GET", url)
        response = self.session.send(request, stream=True)

        if response.status_code != 200:
            response.close()
            raise DownloadError(f"{url}: {response.status_code} {response.reason_phrase}")

        filename = self._parse_filename(response.headers.get("Content-Disposition"))
        return filename, response

    def delete(self, url: str) -> None:
        """
        DELETE an object; 200, 202 and 404 all count as deleted.

        Raises:
            DeleteError: With the server's error message on any other status
        """
        response = self.session.delete(url)
        logger.debug(f"DELETE {url} status={response.status_code}")

        if response.status_code in DELETE_OK_STATUS_CODES:
            return

        raise DeleteError(self._error_detail(response) or f"{url}: {response.status_code} {response.reason_phrase}")

    def close(self) -> None:
        """Close the HTTP session."""
        self.session.close()

    @staticmethod
    def _parse_filename(content_disposition: Optional[str]) -> str:
        if not content_disposition:
            return ""
        index = content_disposition.find("filename=")
        if index == -1:
            return ""
        return content_disposition[index + len("filename="):].strip().strip('"')

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        """Error message from a JSON body, else the raw body text."""
        try:
            body = response.json()
        except ValueError:
            return response.text
        if isinstance(body, dict) and isinstance(body.get("error"), str):
            return body["error"]
        return response.text
