import logging
import os
import re
import sys
from typing import Iterable, List, Optional

# Top-level logger namespaces of the adaptor's packages
ADAPTOR_NAMESPACES = ("common", "directory", "storage", "weedfs")

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class SensitiveDataFilter(logging.Filter):
    """Mask credentials that end up in logged URLs and headers."""

    PATTERNS = [
        (re.compile(r'(https?://)([^/\s:@]+):([^/\s@]+)@', re.IGNORECASE), r'\1\2:***MASKED***@'),
        (re.compile(r'([?&]jwt=)([^&\s]+)', re.IGNORECASE), r'\1***MASKED***'),
        (re.compile(r'(authorization["\']?\s*[:=]\s*["\']?(?:(?:bearer|basic)\s+)?)([^"\'}\s,]+)', re.IGNORECASE), r'\1***MASKED***'),
        (re.compile(r'(bearer\s+)([^\s,}\'\"]+)', re.IGNORECASE), r'\1***MASKED***'),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self.mask(record.msg)

        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: self.mask(v) for k, v in record.args.items()}
            elif isinstance(record.args, tuple):
                record.args = tuple(self.mask(arg) for arg in record.args)

        return True

    @classmethod
    def mask(cls, value):
        if not isinstance(value, str):
            return value
        for pattern, replacement in cls.PATTERNS:
            value = pattern.sub(replacement, value)
        return value


def resolve_log_level(log_level: Optional[str] = None) -> int:
    """
    Map a level name to a logging level.

    Falls back to WEED_LOG_LEVEL, then LOG_LEVEL, then INFO. Unknown names
    resolve to INFO.
    """
    if log_level is None:
        log_level = os.getenv('WEED_LOG_LEVEL') or os.getenv('LOG_LEVEL', 'INFO')
    level = getattr(logging, log_level.upper(), None)
    return level if isinstance(level, int) else logging.INFO


def setup_logging(
    log_level: Optional[str] = None,
    namespaces: Iterable[str] = ADAPTOR_NAMESPACES,
    stream=None
) -> List[logging.Logger]:
    """
    Attach a masked stdout handler to the adaptor's loggers.

    Meant for applications and scripts; the library itself only creates
    loggers. Calling it again updates the level without adding handlers.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to env
        namespaces: Logger namespaces to configure
        stream: Output stream (default: sys.stdout)

    Returns:
        Configured loggers
    """
    level = resolve_log_level(log_level)
    configured = []

    for namespace in namespaces:
        logger = logging.getLogger(namespace)
        logger.setLevel(level)

        handler = next((h for h in logger.handlers if getattr(h, '_weedfs_handler', False)), None)
        if handler is None:
            handler = logging.StreamHandler(stream or sys.stdout)
            handler._weedfs_handler = True
            handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
            handler.addFilter(SensitiveDataFilter())
            logger.addHandler(handler)
            logger.propagate = False
        handler.setLevel(level)

        configured.append(logger)

    return configured


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
