"""
Logging for the ChainSensor backend.

Everything goes through the standard ``logging`` module. ``setup_logging``
installs one stdout handler that masks bearer tokens, and keeps the HTTP
client libraries at WARNING so per-request lines (which carry user ids in
their query strings) stay out of the log.

Usage:
    from api.shared.logger import get_logger

    logger = get_logger(__name__)
    logger.info("Loaded %d datasets for %s", count, user_id)
"""

import logging
import re
import sys
from typing import Union

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Libraries that log every request at INFO
QUIET_LOGGERS = ("httpx", "httpcore")

_BEARER_RE = re.compile(r"(Bearer\s+)[\w.\-]+")

_configured = False


class TokenRedactingFilter(logging.Filter):
    """Replace ``Bearer <token>`` in a record's rendered message with ``Bearer ***``."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        if "Bearer" in message:
            record.msg = _BEARER_RE.sub(r"\1***", message)
            record.args = None
        return True


def _to_level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    return getattr(logging, str(level).upper(), logging.INFO)


def setup_logging(level: Union[str, int] = "INFO") -> None:
    """Install the backend's handler on the root logger.

    Only the first call installs the handler; later calls just change the level.
    """
    global _configured
    if _configured:
        set_level(level)
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
    handler.addFilter(TokenRedactingFilter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(_to_level(level))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    _configured = True


def set_level(level: Union[str, int]) -> int:
    """Change the root level at runtime (e.g. from loaded settings)."""
    resolved = _to_level(level)
    logging.getLogger().setLevel(resolved)
    return resolved


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
