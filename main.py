"""
FastAPI backend for ChainSensor.

This module is the composition root: it builds the HTTP client, the session
provider, the remote store adapter and the data store at startup, wires the
data store to sign-in / sign-out, and exposes the JSON API used by the
front end (datasets, sensors, deployments, dashboard, auth).
"""

import os
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import httpx
import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, ORJSONResponse

from api.app_config import AppSettings, load_settings
from api.exceptions import (
    AuthenticationError,
    NotAuthenticatedError,
    RemoteStoreError,
    ValidationError,
)
from api.shared.logger import get_logger, set_level, setup_logging

setup_logging(os.environ.get("CHAINSENSOR_LOG_LEVEL", "INFO"))
logger = get_logger(__name__)

from api.auth import router as auth_router
from api.dashboard import router as dashboard_router
from api.data_store import DataStore
from api.datasets import router as datasets_router
from api.deployments import router as deployments_router
from api.jobs import TransitionScheduler
from api.sensors import router as sensors_router
from api.session import SessionProvider
from api.store_adapter import RemoteStore
from api.system import log_error
from api.system import router as system_router


def build_services(settings: AppSettings, client: httpx.AsyncClient) -> Dict[str, Any]:
    """Create the session provider, remote store and data store for one app.

    The data store listens to the session provider: signing in loads the
    user's collections, signing out clears them.
    """
    session = SessionProvider(client, settings.supabase_url, settings.supabase_anon_key)
    remote = RemoteStore(
        client,
        settings.supabase_url,
        settings.supabase_anon_key,
        token_provider=lambda: session.access_token,
    )
    store = DataStore(remote, session, TransitionScheduler(), settings)
    session.add_listener(store.on_auth_change)
    return {"settings": settings, "session": session, "remote": remote, "data_store": store}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Own the services for the lifetime of the server process."""
    if getattr(app.state, "data_store", None) is not None:
        # Services injected by the caller (tests, embedding)
        yield
        return

    settings = load_settings()
    settings.validate()
    set_level(settings.log_level)
    logger.debug("Resolved settings: %s", settings.to_dict())
    client = httpx.AsyncClient(timeout=settings.request_timeout)
    services = build_services(settings, client)
    for name, service in services.items():
        setattr(app.state, name, service)
    logger.info("ChainSensor backend ready (store: %s)", settings.supabase_url)
    try:
        yield
    finally:
        await services["data_store"].close()
        await client.aclose()
        for name in services:
            setattr(app.state, name, None)
        logger.info("ChainSensor backend stopped")


# Create FastAPI app
app = FastAPI(
    title="ChainSensor API",
    description="Datasets, virtual sensors and simulated deployments for ChainSensor",
    version="1.0.0",
    default_response_class=ORJSONResponse,
    lifespan=lifespan,
)


# ============= Exception Handlers =============


def _error_response(status_code: int, detail: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail})


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Log HTTP exceptions and return JSON response."""
    # Only log 5xx errors (server errors)
    if exc.status_code >= 500:
        log_error(
            endpoint=str(request.url.path),
            message=str(exc.detail),
            level="error",
            details=f"Status code: {exc.status_code}",
        )
    return _error_response(exc.status_code, exc.detail)


@app.exception_handler(NotAuthenticatedError)
async def not_authenticated_handler(request: Request, exc: NotAuthenticatedError):
    return _error_response(401, str(exc))


@app.exception_handler(AuthenticationError)
async def authentication_error_handler(request: Request, exc: AuthenticationError):
    status_code: Optional[int] = exc.status_code
    if status_code is None or status_code >= 500:
        log_error(
            endpoint=str(request.url.path),
            message=str(exc),
            level="error",
            details="Authentication service failure",
        )
        return _error_response(502, str(exc))
    return _error_response(401 if status_code in (400, 401, 403) else status_code, str(exc))


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return _error_response(400, str(exc))


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return _error_response(400, str(exc))


@app.exception_handler(RemoteStoreError)
async def remote_store_error_handler(request: Request, exc: RemoteStoreError):
    """Remote store failures reach the client as 502 with the store's payload."""
    log_error(
        endpoint=str(request.url.path),
        message=exc.message,
        level="error",
        details=f"Remote store status: {exc.status_code}, code: {exc.code}",
    )
    return _error_response(502, exc.to_dict())


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Log unexpected exceptions and return JSON response."""
    log_error(
        endpoint=str(request.url.path),
        message=str(exc),
        level="critical",
        details=f"Unhandled exception: {type(exc).__name__}",
        exc=exc,
    )
    return _error_response(500, "Internal server error")


# Browser front end runs on its own dev server
_cors_origins = [o.strip() for o in os.environ.get("CHAINSENSOR_ALLOWED_ORIGINS", "*").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include API routes
app.include_router(auth_router, prefix="/api", tags=["auth"])
app.include_router(datasets_router, prefix="/api", tags=["datasets"])
app.include_router(sensors_router, prefix="/api", tags=["sensors"])
app.include_router(deployments_router, prefix="/api", tags=["deployments"])
app.include_router(dashboard_router, prefix="/api", tags=["dashboard"])
app.include_router(system_router, prefix="/api", tags=["system"])


def main() -> None:
    import argparse

    parser = argparse.ArgumentParser(description="ChainSensor backend server")
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.environ.get("CHAINSENSOR_PORT", 8000)),
        help="Port to run the server on (default: 8000 or CHAINSENSOR_PORT env var)",
    )
    parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--reload",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Enable auto-reload",
    )
    args = parser.parse_args()

    uvicorn.run(
        "main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info",
    )


if __name__ == "__main__":
    main()
