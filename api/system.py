"""
System API routes for the ChainSensor backend.

Health check, the in-memory server error log and the delayed transitions
currently scheduled.
"""

import traceback
from collections import deque
from datetime import datetime
from typing import Any, Deque, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request

from .data_store import DataStore
from .dependencies import get_data_store
from .shared.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()

_ERROR_LOG_SIZE = 200
_error_log: Deque[Dict[str, Any]] = deque(maxlen=_ERROR_LOG_SIZE)


def log_error(
    endpoint: str,
    message: str,
    level: str = "error",
    details: Optional[str] = None,
    exc: Optional[BaseException] = None,
) -> Dict[str, Any]:
    """Record a server-side error and log it.

    Args:
        endpoint: Request path that failed
        message: Human-readable error message
        level: "warning", "error" or "critical"
        details: Extra context (status code, exception type)
        exc: Exception to keep a traceback for

    Returns:
        The recorded entry
    """
    entry = {
        "timestamp": datetime.now().isoformat(),
        "endpoint": endpoint,
        "message": message,
        "level": level,
        "details": details,
        "traceback": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)) if exc else None,
    }
    _error_log.append(entry)
    log = logger.critical if level == "critical" else logger.warning if level == "warning" else logger.error
    log("%s: %s (%s)", endpoint, message, details or "")
    return entry


def get_error_log(limit: int = 50) -> list:
    """Most recent errors, newest first."""
    return list(reversed(_error_log))[:limit]


def clear_error_log() -> None:
    _error_log.clear()


@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint."""
    return {
        "status": "healthy",
        "message": "ChainSensor backend is running",
        "ready": getattr(request.app.state, "data_store", None) is not None,
    }


@router.get("/system/errors")
async def list_errors(limit: int = Query(default=50, ge=1, le=_ERROR_LOG_SIZE)):
    errors = get_error_log(limit)
    return {"errors": errors, "count": len(errors)}


@router.get("/system/transitions")
async def list_transitions(store: DataStore = Depends(get_data_store)):
    """Pending and recently finished delayed transitions."""
    scheduler = store.scheduler
    return {
        "pending": [t.to_dict() for t in scheduler.pending()],
        "history": [t.to_dict() for t in scheduler.history()],
    }
