"""Project-wide constants (chunk sizes, TTL defaults, protocol markers)."""

DEFAULT_CHUNK_SIZE_BYTES: int = 512 * 1024  # 512 KiB default chunk size
MAX_CHUNK_SIZE_BYTES: int = 1 * 1024 * 1024  # 1 MiB hard upper bound

DEFAULT_TTL: str = "26w"
TTL_UNITS: str = "mhdwMy"
DEFAULT_TTL_UNIT: str = "m"

LOCATION_CACHE_TTL_SECONDS: int = 10 * 60

DEFAULT_TIMEOUT_SECONDS: int = 30
DEFAULT_DELETE_WORKERS: int = 16

FILE_ID_SEPARATOR: str = ","
CHUNK_NAME_SEPARATOR: str = "-"

MANIFEST_QUERY_PARAM: str = "cm"
MANIFEST_MIME_TYPE: str = "application/json"
CHUNK_MIME_TYPE: str = "application/octet-stream"

# DELETE on a volume server: 404 means the needle is already gone
DELETE_OK_STATUS_CODES: frozenset = frozenset({200, 202, 404})

# Inner extensions for which the store would strip a trailing ".gz"
GZIP_RENAME_EXTENSIONS: frozenset = frozenset({
    ".pdf", ".txt", ".html", ".htm", ".css", ".js", ".json"
})
