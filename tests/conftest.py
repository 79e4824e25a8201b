"""
Root conftest.py for ChainSensor backend tests.

Provides an in-memory stand-in for the hosted row store, a signed-in session
and a DataStore wired to both with very short transition delays.
"""

import asyncio
import itertools
import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

# Ensure the backend root is in the path
backend_root = Path(__file__).parent.parent
if str(backend_root) not in sys.path:
    sys.path.insert(0, str(backend_root))

from api.app_config import AppSettings
from api.data_store import DataStore
from api.jobs import TransitionScheduler
from api.session import Identity, SessionProvider

ALICE = Identity(id="user-alice", email="alice@example.com", access_token="token-alice")
BOB = Identity(id="user-bob", email="bob@example.com", access_token="token-bob")


def _matches(row: Dict[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
    return all(row.get(column) == value for column, value in (filters or {}).items())


class FakeRemoteStore:
    """In-memory replacement for ``RemoteStore`` that records every call."""

    TABLES = ("datasets", "sensors", "activities", "deployments")

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {t: [] for t in self.TABLES}
        self.calls: List[tuple] = []
        self.failures: Dict[tuple, Exception] = {}
        # Extra latency for inserts, keyed by the row's "name"
        self.insert_delays: Dict[str, float] = {}
        # Extra latency for selects, keyed by table
        self.select_delays: Dict[str, float] = {}
        self._ids = itertools.count(1)
        self._clock = datetime(2025, 1, 1, 12, 0, 0)

    def fail(self, method: str, table: str, error: Exception) -> None:
        self.failures[(method, table)] = error

    def _check(self, method: str, table: str) -> None:
        error = self.failures.get((method, table))
        if error is not None:
            raise error

    def seed(self, table: str, **row: Any) -> Dict[str, Any]:
        """Add a row directly, bypassing the call log."""
        row.setdefault("id", f"{table}-{next(self._ids)}")
        row.setdefault("created_at", self._tick())
        self.tables[table].append(row)
        return row

    def _tick(self) -> str:
        self._clock += timedelta(seconds=1)
        return self._clock.isoformat()

    async def select(self, table, filters=None, order_by=None, descending=True, limit=None, columns="*"):
        self.calls.append(("select", table, dict(filters or {})))
        await asyncio.sleep(self.select_delays.get(table, 0))
        self._check("select", table)
        rows = [dict(r) for r in self.tables[table] if _matches(r, filters)]
        if order_by:
            rows.sort(key=lambda r: r[order_by], reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        return rows

    async def insert(self, table, row):
        self.calls.append(("insert", table, dict(row)))
        await asyncio.sleep(self.insert_delays.get(row.get("name"), 0))
        self._check("insert", table)
        stored = dict(row)
        stored["id"] = f"{table}-{next(self._ids)}"
        stored["created_at"] = self._tick()
        self.tables[table].append(stored)
        return dict(stored)

    async def update(self, table, fields, filters):
        self.calls.append(("update", table, dict(fields), dict(filters)))
        await asyncio.sleep(0)
        self._check("update", table)
        matched = [r for r in self.tables[table] if _matches(r, filters)]
        for r in matched:
            r.update(fields)
        return [dict(r) for r in matched]

    async def delete(self, table, filters):
        self.calls.append(("delete", table, dict(filters)))
        await asyncio.sleep(0)
        self._check("delete", table)
        self.tables[table] = [r for r in self.tables[table] if not _matches(r, filters)]

    def calls_for(self, method: str, table: Optional[str] = None) -> List[tuple]:
        return [c for c in self.calls if c[0] == method and (table is None or c[1] == table)]


# ============================================================================
# Shared Fixtures
# ============================================================================


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(
        supabase_url="https://project.supabase.co",
        supabase_anon_key="anon-key",
        processing_delay=0.01,
        deployment_delay=0.01,
    )


@pytest.fixture
def remote() -> FakeRemoteStore:
    return FakeRemoteStore()


@pytest.fixture
def session() -> SessionProvider:
    """A session provider signed in as Alice (no auth service involved)."""
    provider = SessionProvider(MagicMock(), "https://project.supabase.co", "anon-key")
    provider._identity = ALICE
    return provider


@pytest.fixture
def signed_out_session() -> SessionProvider:
    return SessionProvider(MagicMock(), "https://project.supabase.co", "anon-key")


@pytest.fixture
def store(remote, session, settings) -> DataStore:
    return DataStore(remote, session, TransitionScheduler(), settings)
