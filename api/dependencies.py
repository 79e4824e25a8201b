"""FastAPI dependencies resolving the collaborators owned by the application."""

from fastapi import HTTPException, Request

from .data_store import DataStore
from .session import Identity, SessionProvider


def get_data_store(request: Request) -> DataStore:
    """The application's DataStore (created in the lifespan)."""
    store = getattr(request.app.state, "data_store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Data store not initialized")
    return store


def get_session(request: Request) -> SessionProvider:
    """The application's SessionProvider (created in the lifespan)."""
    session = getattr(request.app.state, "session", None)
    if session is None:
        raise HTTPException(status_code=503, detail="Session provider not initialized")
    return session


def get_identity(request: Request) -> Identity:
    """The signed-in identity, or 401."""
    identity = get_session(request).identity
    if identity is None:
        raise HTTPException(status_code=401, detail="User not authenticated")
    return identity
