"""
Shared utilities for the ChainSensor API.

Helpers used across the synchronization layer and several routers.
"""
from .sizes import detect_dataset_type, format_upload_size, parse_size_gb

__all__ = [
    "detect_dataset_type",
    "format_upload_size",
    "parse_size_gb",
]
