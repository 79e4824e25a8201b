"""
Dashboard API routes for the ChainSensor backend.

This module provides FastAPI routes for dashboard statistics, recent
activity and reloading the cached collections.
"""

from fastapi import APIRouter, Depends

from .data_store import DataStore
from .dependencies import get_data_store

router = APIRouter()


@router.get("/dashboard")
async def get_dashboard(store: DataStore = Depends(get_data_store)):
    """Aggregate statistics plus the most recent activity."""
    return {
        "stats": store.metrics(),
        "recent_activity": [a.to_dict() for a in store.activities],
        "is_loading": store.is_loading,
    }


@router.get("/activities")
async def list_activities(store: DataStore = Depends(get_data_store)):
    """Most recent activity entries, newest first."""
    activities = store.activities
    return {"activities": [a.to_dict() for a in activities], "count": len(activities)}


@router.post("/refresh")
async def refresh_data(store: DataStore = Depends(get_data_store)):
    """Reload every collection from the remote store.

    A failed reload keeps the previous data; the error is reported so the
    client can offer a retry.
    """
    refreshed = await store.refresh()
    error = store.last_refresh_error
    return {
        "refreshed": refreshed,
        "error": str(error) if error else None,
        "stats": store.metrics(),
    }
