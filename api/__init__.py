"""
API package for the ChainSensor FastAPI backend.

This package provides:
- The client data-synchronization layer (data_store.py)
- The hosted row store adapter (store_adapter.py)
- The session/identity provider (session.py)
- Delayed status transitions (jobs/)
- REST endpoints for auth, datasets, sensors, deployments, dashboard and system
"""

from .data_store import DataStore
from .jobs import TransitionScheduler
from .session import Identity, SessionProvider
from .store_adapter import RemoteStore

__all__ = [
    "DataStore",
    "RemoteStore",
    "SessionProvider",
    "Identity",
    "TransitionScheduler",
]
