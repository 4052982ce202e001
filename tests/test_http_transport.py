"""Unit tests for HttpTransport."""

import httpx
import pytest

from common.exceptions import DeleteError, DownloadError, ProtocolError, UploadError
from storage.http_transport import HttpTransport
from conftest import parse_multipart


def _transport(handler):
    return HttpTransport(httpx.Client(transport=httpx.MockTransport(handler)))


class TestUpload:
    """Tests for multipart upload."""

    def test_upload_sends_file_part(self):
        captured = {}

        def handler(request):
            captured["filename"], captured["headers"], captured["data"] = parse_multipart(request)
            return httpx.Response(201, json={"name": "a.txt", "size": 5})

        result = _transport(handler).upload("http://vs1:8080/3,01", "a.txt", b"hello", mime_type="text/plain")

        assert result.size == 5
        assert captured["filename"] == "a.txt"
        assert captured["data"] == b"hello"
        assert captured["headers"]["content-type"] == "text/plain"
        assert "content-encoding" not in captured["headers"]

    def test_upload_marks_gzip(self):
        captured = {}

        def handler(request):
            _, captured["headers"], _ = parse_multipart(request)
            return httpx.Response(201, json={"name": "a.gz", "size": 3})

        _transport(handler).upload("http://vs1:8080/3,01", "a.gz", b"abc", is_gzipped=True)

        assert captured["headers"]["content-encoding"] == "gzip"

    def test_upload_guesses_mime_from_filename(self):
        captured = {}

        def handler(request):
            _, captured["headers"], _ = parse_multipart(request)
            return httpx.Response(201, json={"size": 2})

        _transport(handler).upload("http://vs1:8080/3,01", "page.html", b"<p>")

        assert captured["headers"]["content-type"] == "text/html"

    def test_error_field_despite_2xx(self):
        def handler(request):
            return httpx.Response(201, json={"error": "needle too large"})

        with pytest.raises(UploadError, match="needle too large"):
            _transport(handler).upload("http://vs1:8080/3,01", "a", b"x")

    def test_non_2xx_status(self):
        def handler(request):
            return httpx.Response(500, json={"error": "disk full"})

        with pytest.raises(UploadError, match="disk full"):
            _transport(handler).upload("http://vs1:8080/3,01", "a", b"x")

    def test_transport_error_propagates(self):
        def handler(request):
            raise httpx.ConnectError("Connection refused")

        with pytest.raises(httpx.ConnectError):
            _transport(handler).upload("http://vs1:8080/3,01", "a", b"x")


class TestPostForm:
    """Tests for form POST."""

    def test_repeated_fields(self):
        captured = {}

        def handler(request):
            captured["body"] = request.read().decode()
            return httpx.Response(200, json={"ok": True})

        result = _transport(handler).post_form("http://m1:9333/vol/lookup", {"volumeId": ["3", "4"]})

        assert result == {"ok": True}
        assert captured["body"] == "volumeId=3&volumeId=4"

    def test_non_json_body(self):
        def handler(request):
            return httpx.Response(200, text="<html>")

        with pytest.raises(ProtocolError, match="invalid JSON"):
            _transport(handler).post_form("http://m1:9333/dir/assign", {})

    def test_non_2xx_keeps_status(self):
        def handler(request):
            return httpx.Response(503, text="unavailable")

        with pytest.raises(ProtocolError) as exc_info:
            _transport(handler).post_form("http://m1:9333/dir/assign", {})

        assert exc_info.value.status_code == 503


class TestDownload:
    """Tests for streaming download."""

    def test_filename_from_content_disposition(self):
        def handler(request):
            return httpx.Response(200, content=b"body", headers={"Content-Disposition": 'inline; filename="r.txt"'})

        filename, response = _transport(handler).download("http://vs1:8080/3,01")

        assert filename == "r.txt"
        assert response.read() == b"body"
        response.close()

    def test_missing_content_disposition(self):
        def handler(request):
            return httpx.Response(200, content=b"body")

        filename, response = _transport(handler).download("http://vs1:8080/3,01")

        assert filename == ""
        response.close()

    def test_non_200_raises(self):
        def handler(request):
            return httpx.Response(404)

        with pytest.raises(DownloadError, match="404"):
            _transport(handler).download("http://vs1:8080/3,01")


class TestDelete:
    """Tests for DELETE."""

    @pytest.mark.parametrize("status", [200, 202, 404])
    def test_success_statuses(self, status):
        def handler(request):
            return httpx.Response(status)

        _transport(handler).delete("http://vs1:8080/3,01")

    def test_error_from_json(self):
        def handler(request):
            return httpx.Response(500, json={"error": "volume is read only"})

        with pytest.raises(DeleteError, match="volume is read only"):
            _transport(handler).delete("http://vs1:8080/3,01")

    def test_error_from_raw_body(self):
        def handler(request):
            return httpx.Response(403, text="forbidden")

        with pytest.raises(DeleteError, match="forbidden"):
            _transport(handler).delete("http://vs1:8080/3,01")


def test_close_session(transport):
    transport.close()
    assert transport.session.is_closed
