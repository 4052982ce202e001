"""Configuration management for the object store adaptor."""

import json
import os
import shutil
from pathlib import Path
from typing import List, Optional

from common.constants import (
    DEFAULT_CHUNK_SIZE_BYTES,
    DEFAULT_DELETE_WORKERS,
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_TTL,
    LOCATION_CACHE_TTL_SECONDS,
    MAX_CHUNK_SIZE_BYTES,
)
from common.logging_config import get_logger
from common.ttl import parse_ttl
from directory.directory_client import split_seeds

logger = get_logger(__name__)


class Config:
    """Adaptor configuration: environment defaults overlaid by an optional JSON file."""

    DEFAULT_CONFIG = {
        "seeds": os.environ.get("WEED_SEEDS", "localhost:9333"),
        "chunk_size": int(os.environ.get("WEED_CHUNK_SIZE", str(DEFAULT_CHUNK_SIZE_BYTES))),
        "default_ttl": os.environ.get("WEED_DEFAULT_TTL", DEFAULT_TTL),
        "replication": os.environ.get("WEED_REPLICATION", ""),
        "data_center": os.environ.get("WEED_DATA_CENTER", ""),
        "rack": os.environ.get("WEED_RACK", ""),
        "timeout": int(os.environ.get("WEED_TIMEOUT", str(DEFAULT_TIMEOUT_SECONDS))),
        "location_cache_ttl": int(os.environ.get("WEED_LOCATION_CACHE_TTL", str(LOCATION_CACHE_TTL_SECONDS))),
        "delete_workers": int(os.environ.get("WEED_DELETE_WORKERS", str(DEFAULT_DELETE_WORKERS))),
    }

    def __init__(self, config_path: Optional[Path] = None, **overrides):
        """
        Initialize configuration manager.

        Args:
            config_path: Optional path to a JSON config file
            **overrides: Values taking precedence over file and environment
        """
        self.config_path = Path(config_path) if config_path else None
        self.data = self._load()
        self.data.update({k: v for k, v in overrides.items() if v is not None})

    def _load(self) -> dict:
        """
        Load configuration from file, falling back to defaults.

        A corrupted file is copied to <name>.json.bak and defaults are used.

        Returns:
            Configuration dictionary
        """
        config = self.DEFAULT_CONFIG.copy()

        if self.config_path is None or not self.config_path.exists():
            return config

        try:
            with open(self.config_path, 'r') as f:
                data = json.load(f)
            config.update(data)
            return config
        except (json.JSONDecodeError, IOError) as e:
            backup_path = self.config_path.with_suffix('.json.bak')
            logger.warning(f"Failed to load config from {self.config_path}: {e}, backing up to {backup_path}")
            try:
                shutil.copy(self.config_path, backup_path)
            except OSError as copy_error:
                logger.warning(f"Could not back up config file: {copy_error}")
            return config

    def save(self) -> None:
        """Save current configuration to file."""
        if self.config_path is None:
            return
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, 'w') as f:
            json.dump(self.data, f, indent=2)

    def get_seeds(self) -> List[str]:
        """
        Get directory seed addresses in failover order.

        Returns:
            List of "host:port" strings
        """
        return split_seeds(self.data.get('seeds', ''))

    def get_chunk_size(self) -> int:
        """
        Get chunk size threshold, clamped to MAX_CHUNK_SIZE_BYTES.

        Returns:
            Chunk size in bytes (0 disables chunking)
        """
        return clamp_chunk_size(int(self.data.get('chunk_size', DEFAULT_CHUNK_SIZE_BYTES)))

    def get_default_ttl(self) -> str:
        """
        Get TTL applied to new objects.

        Raises:
            InvalidTTLError: If the configured TTL is malformed
        """
        ttl = self.data.get('default_ttl', DEFAULT_TTL) or ""
        if ttl:
            parse_ttl(ttl)
        return ttl

    def get_replication(self) -> str:
        return self.data.get('replication', '')

    def get_data_center(self) -> str:
        return self.data.get('data_center', '')

    def get_rack(self) -> str:
        return self.data.get('rack', '')

    def get_timeout(self) -> int:
        """
        Get request timeout in seconds.

        Returns:
            Timeout value in seconds
        """
        return self.data.get('timeout', DEFAULT_TIMEOUT_SECONDS)

    def get_location_cache_ttl(self) -> int:
        return self.data.get('location_cache_ttl', LOCATION_CACHE_TTL_SECONDS)

    def get_delete_workers(self) -> int:
        return self.data.get('delete_workers', DEFAULT_DELETE_WORKERS)


def clamp_chunk_size(chunk_size: int) -> int:
    """
    Bound a chunk size to [0, MAX_CHUNK_SIZE_BYTES].

    Args:
        chunk_size: Requested chunk size in bytes

    Returns:
        Effective chunk size
    """
    if chunk_size > MAX_CHUNK_SIZE_BYTES:
        logger.warning(f"Chunk size {chunk_size} is too large, using {MAX_CHUNK_SIZE_BYTES} instead")
        return MAX_CHUNK_SIZE_BYTES
    return max(chunk_size, 0)
