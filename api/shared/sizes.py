"""Human-readable size strings and upload helpers.

Dataset sizes are stored the way the upload form produced them
(``"2.4 MB"``). Storage accounting parses them back into gigabytes.
"""

from __future__ import annotations

import re

_SIZE_RE = re.compile(r"^\s*(\d+(?:\.\d*)?|\.\d+)\s*([a-zA-Z]*)\s*$")

# Decimal units, MB is the unit the upload form writes
_UNIT_TO_GB = {
    "": 1e-3,
    "b": 1e-9,
    "kb": 1e-6,
    "k": 1e-6,
    "mb": 1e-3,
    "m": 1e-3,
    "gb": 1.0,
    "g": 1.0,
    "tb": 1e3,
    "t": 1e3,
}

_TYPE_BY_EXTENSION = {
    "csv": "data",
    "xlsx": "data",
    "json": "structured",
    "wav": "audio",
    "mp3": "audio",
    "mp4": "video",
}


def parse_size_gb(size: str | None) -> float:
    """Parse a human-readable size string into gigabytes.

    Unit-less numbers are read as megabytes. Strings that cannot be parsed
    count as zero so a malformed row never breaks storage accounting.
    """
    if not size:
        return 0.0
    match = _SIZE_RE.match(str(size))
    if not match:
        return 0.0
    factor = _UNIT_TO_GB.get(match.group(2).lower())
    if factor is None:
        return 0.0
    return float(match.group(1)) * factor


def format_upload_size(num_bytes: int) -> str:
    """Format an uploaded byte count the way the upload form does (``"1.5 MB"``)."""
    return f"{num_bytes / (1024 * 1024):.1f} MB"


def detect_dataset_type(filename: str) -> str:
    """Guess the dataset type tag from a file name extension."""
    _, dot, ext = filename.rpartition(".")
    if not dot:
        return "other"
    return _TYPE_BY_EXTENSION.get(ext.lower(), "other")
