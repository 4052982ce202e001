"""Shared pytest fixtures for all tests."""

import itertools
import threading
from urllib.parse import parse_qs, unquote

import httpx
import pytest

from common.protocol import ChunkManifest
from directory.directory_client import DirectoryClient
from directory.location_cache import LocationCache
from storage.http_transport import HttpTransport
from weedfs.client import WeedFS
from weedfs.config import Config

SEEDS = "m1:9333,m2:9333"


def parse_multipart(request: httpx.Request):
    """
    Extract the single file part of a multipart request.

    Returns:
        Tuple of (filename, part headers dict with lower-case keys, data)
    """
    content_type = request.headers["content-type"]
    boundary = content_type.split("boundary=")[1].strip('"').encode()
    body = request.read()

    part = body.split(b"--" + boundary)[1]
    head, _, data = part.partition(b"\r\n\r\n")
    data = data[:-2]

    headers = {}
    for line in head.strip(b"\r\n").split(b"\r\n"):
        key, _, value = line.decode().partition(":")
        headers[key.strip().lower()] = value.strip()

    disposition = headers.get("content-disposition", "")
    filename = disposition.split('filename="', 1)[1].rstrip('"') if 'filename="' in disposition else ""
    return filename, headers, data


class FakeClock:
    """Manually advanced time source for cache expiry tests."""

    def __init__(self, start: float = 1000.0):
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


class FakeCluster:
    """
    In-memory directory + volume servers behind an httpx.MockTransport.

    Every request is recorded so tests can count network calls per kind.
    """

    def __init__(self):
        self.seeds = SEEDS.split(",")
        self.volumes = {
            "3": [{"url": "vs1:8080", "publicUrl": "vs1:8080"}, {"url": "vs2:8080", "publicUrl": "vs2:8080"}],
            "4": [{"url": "vs2:8080", "publicUrl": "vs2:8080"}, {"url": "vs3:8080", "publicUrl": "vs3:8080"}],
            "5": [{"url": "vs3:8080", "publicUrl": "vs3:8080"}],
        }
        self.assign_volume = "3"
        self.objects = {}
        self.names = {}
        self.manifests = {}

        self.down_hosts = set()
        self.assign_error = ""
        self.lookup_reply = None
        self.failing_uploads = set()
        self.failing_deletes = set()

        self.assigns = []
        self.lookups = []
        self.vol_lookups = []
        self.uploads = []
        self.downloads = []
        self.deletes = []
        self.batch_deletes = []

        self._keys = itertools.count(1)
        self._lock = threading.Lock()

    def handle(self, request: httpx.Request) -> httpx.Response:
        host = f"{request.url.host}:{request.url.port}"
        if host in self.down_hosts:
            raise httpx.ConnectError(f"Connection refused: {host}", request=request)

        path = unquote(request.url.path)
        with self._lock:
            if host in self.seeds:
                return self._handle_directory(request, host, path)
            return self._handle_volume(request, host, path)

    def _form(self, request: httpx.Request) -> dict:
        return parse_qs(request.read().decode())

    def _handle_directory(self, request, host, path):
        form = self._form(request)

        if path == "/dir/assign":
            self.assigns.append((host, form))
            if self.assign_error:
                return httpx.Response(200, json={"error": self.assign_error})
            location = self.volumes[self.assign_volume][0]
            fid = f"{self.assign_volume},{next(self._keys):08x}"
            return httpx.Response(200, json={
                "fid": fid, "url": location["url"], "publicUrl": location["publicUrl"], "count": 1
            })

        if path == "/dir/lookup":
            vid = form["volumeId"][0]
            self.lookups.append((host, vid))
            if self.lookup_reply is not None:
                return httpx.Response(200, json=self.lookup_reply)
            if vid not in self.volumes:
                return httpx.Response(200, json={"volumeId": vid, "error": f"volume id {vid} not found"})
            return httpx.Response(200, json={"volumeId": vid, "locations": self.volumes[vid]})

        if path == "/vol/lookup":
            vids = form.get("volumeId", [])
            self.vol_lookups.append((host, vids))
            reply = {}
            for vid in vids:
                if vid in self.volumes:
                    reply[vid] = {"volumeId": vid, "locations": self.volumes[vid]}
                else:
                    reply[vid] = {"volumeId": vid, "error": "volumeId not found"}
            return httpx.Response(200, json=reply)

        return httpx.Response(404)

    def _handle_volume(self, request, host, path):
        if path == "/delete" and request.method == "POST":
            fids = self._form(request).get("fid", [])
            self.batch_deletes.append((host, fids))
            results = []
            for fid in fids:
                data = self.objects.pop(fid, None)
                status = 202 if data is not None else 404
                results.append({"fid": fid, "status": status, "size": len(data or b"")})
            return httpx.Response(200, json=results)

        fid = path.lstrip("/")

        if request.method == "POST":
            filename, headers, data = parse_multipart(request)
            self.uploads.append({
                "url": str(request.url),
                "fid": fid,
                "filename": filename,
                "headers": headers,
                "data": data,
                "params": dict(request.url.params),
            })
            if len(self.uploads) in self.failing_uploads:
                return httpx.Response(500, json={"error": f"upload {len(self.uploads)} rejected"})
            if request.url.params.get("cm") == "true":
                self.manifests[fid] = ChunkManifest.from_json(data)
            else:
                self.objects[fid] = data
            self.names[fid] = filename
            return httpx.Response(201, json={"name": filename, "size": len(data)})

        if request.method == "GET":
            self.downloads.append((host, fid))
            if fid in self.manifests:
                manifest = self.manifests[fid]
                body = b"".join(self.objects[chunk.fid] for chunk in manifest.chunks)
            elif fid in self.objects:
                body = self.objects[fid]
            else:
                return httpx.Response(404)
            headers = {"Content-Disposition": f'inline; filename="{self.names.get(fid, fid)}"'}
            return httpx.Response(200, content=body, headers=headers)

        if request.method == "DELETE":
            self.deletes.append((host, fid))
            if fid in self.failing_deletes:
                return httpx.Response(500, json={"error": f"cannot delete {fid}"})
            existed = self.objects.pop(fid, None) is not None
            existed = self.manifests.pop(fid, None) is not None or existed
            return httpx.Response(202 if existed else 404, json={})

        return httpx.Response(405)

    def manifest_uploads(self):
        return [u for u in self.uploads if u["params"].get("cm") == "true"]


@pytest.fixture
def cluster():
    """Fresh fake cluster."""
    return FakeCluster()


@pytest.fixture
def http_client(cluster):
    """httpx.Client routed to the fake cluster."""
    client = httpx.Client(transport=httpx.MockTransport(cluster.handle))
    yield client
    client.close()


@pytest.fixture
def transport(http_client):
    return HttpTransport(http_client)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    """Location cache with a 600s horizon driven by the fake clock."""
    return LocationCache(default_ttl=600, clock=clock)


@pytest.fixture
def directory(transport, cache):
    return DirectoryClient(SEEDS, transport, cache)


@pytest.fixture
def config(tmp_path):
    """
    Config with small chunks and no TTL.

    Args:
        tmp_path: pytest tmp_path fixture
    """
    return Config(tmp_path / 'weedfs.json', seeds=SEEDS, chunk_size=100, default_ttl="")


@pytest.fixture
def weedfs(config, http_client, cache):
    """WeedFS client wired to the fake cluster."""
    return WeedFS(config, session=http_client, cache=cache)


@pytest.fixture
def payload():
    """Deterministic binary payload covering every byte value."""
    return bytes(range(256)) + bytes(reversed(range(256)))
