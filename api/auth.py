"""
Authentication API routes for the ChainSensor backend.

Sign-up, sign-in and sign-out go through the SessionProvider. The data store
listens to the provider, so signing in loads the user's data and signing out
clears it.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from .dependencies import get_session
from .session import SessionProvider

router = APIRouter()


class Credentials(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)


class SignUpRequest(Credentials):
    full_name: Optional[str] = None


@router.post("/auth/signup")
async def sign_up(body: SignUpRequest, session: SessionProvider = Depends(get_session)):
    """Create an account; signs in right away when the project allows it."""
    identity = await session.sign_up(body.email, body.password, body.full_name)
    return {
        "user": identity.to_dict() if identity else None,
        "confirmation_required": identity is None,
    }


@router.post("/auth/login")
async def sign_in(body: Credentials, session: SessionProvider = Depends(get_session)):
    identity = await session.sign_in(body.email, body.password)
    return {"user": identity.to_dict()}


@router.post("/auth/logout")
async def sign_out(session: SessionProvider = Depends(get_session)):
    await session.sign_out()
    return {"success": True}


@router.get("/auth/me")
async def current_user(session: SessionProvider = Depends(get_session)):
    identity = session.identity
    return {
        "authenticated": identity is not None,
        "user": identity.to_dict() if identity else None,
    }
