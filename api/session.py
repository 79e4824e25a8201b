"""
Session and identity provider for the ChainSensor backend.

Wraps the hosted authentication service (GoTrue) and holds the identity of
the signed-in user. Components interested in sign-in / sign-out register a
listener; the data store uses this to refresh on sign-in and to clear its
collections on sign-out.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from .exceptions import AuthenticationError
from .shared.logger import get_logger

logger = get_logger(__name__)

AuthListener = Callable[[Optional["Identity"]], Awaitable[None]]


@dataclass(frozen=True)
class Identity:
    """The signed-in user as seen by the synchronization layer."""

    id: str
    email: str
    access_token: str
    full_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        # Never echo the token back
        return {"id": self.id, "email": self.email, "full_name": self.full_name}


def _auth_error(response: httpx.Response) -> AuthenticationError:
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    message = (
        body.get("error_description")
        or body.get("msg")
        or body.get("message")
        or body.get("error")
        or f"Authentication failed ({response.status_code})"
    )
    return AuthenticationError(message, status_code=response.status_code)


def _identity_from_session(payload: Dict[str, Any]) -> Optional[Identity]:
    """Build an Identity from a GoTrue session payload, if it holds a session."""
    token = payload.get("access_token")
    user = payload.get("user") or {}
    if not token or not user.get("id"):
        return None
    metadata = user.get("user_metadata") or {}
    return Identity(
        id=str(user["id"]),
        email=user.get("email", ""),
        access_token=token,
        full_name=metadata.get("full_name"),
    )


class SessionProvider:
    """Holds the current identity and talks to the authentication service.

    Args:
        client: Shared ``httpx.AsyncClient``. The provider does not own it.
        base_url: Project URL (``https://<ref>.supabase.co``).
        anon_key: Public API key.
    """

    def __init__(self, client: httpx.AsyncClient, base_url: str, anon_key: str):
        self._client = client
        self._auth_url = f"{base_url.rstrip('/')}/auth/v1"
        self._anon_key = anon_key
        self._identity: Optional[Identity] = None
        self._listeners: List[AuthListener] = []

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    @property
    def is_authenticated(self) -> bool:
        return self._identity is not None

    @property
    def access_token(self) -> Optional[str]:
        return self._identity.access_token if self._identity else None

    def add_listener(self, listener: AuthListener) -> None:
        """Register an async callback for auth-state changes."""
        self._listeners.append(listener)

    def remove_listener(self, listener: AuthListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    async def _notify_listeners(self) -> None:
        identity = self._identity
        for listener in list(self._listeners):
            try:
                await listener(identity)
            except Exception as e:
                logger.error("Error in auth listener: %s", e)

    async def set_identity(self, identity: Optional[Identity]) -> None:
        """Replace the current identity and notify listeners on change."""
        if identity == self._identity:
            return
        self._identity = identity
        if identity:
            logger.info("Signed in as %s", identity.email or identity.id)
        else:
            logger.info("Signed out")
        await self._notify_listeners()

    def _headers(self, token: Optional[str] = None) -> Dict[str, str]:
        return {
            "apikey": self._anon_key,
            "Authorization": f"Bearer {token or self._anon_key}",
        }

    async def _post(self, path: str, payload: Optional[Dict[str, Any]] = None, token: Optional[str] = None) -> Dict[str, Any]:
        try:
            response = await self._client.post(
                f"{self._auth_url}{path}", json=payload, headers=self._headers(token)
            )
        except httpx.HTTPError as e:
            raise AuthenticationError(f"Authentication service unreachable: {e}") from e
        if response.status_code >= 400:
            raise _auth_error(response)
        if not response.content:
            return {}
        return response.json()

    async def sign_up(self, email: str, password: str, full_name: Optional[str] = None) -> Optional[Identity]:
        """Create an account.

        Returns the new identity when the service opens a session right away,
        ``None`` when the account still needs e-mail confirmation.
        """
        payload: Dict[str, Any] = {"email": email, "password": password}
        if full_name:
            payload["data"] = {"full_name": full_name}
        body = await self._post("/signup", payload)
        identity = _identity_from_session(body)
        if identity:
            await self.set_identity(identity)
        return identity

    async def sign_in(self, email: str, password: str) -> Identity:
        """Sign in with e-mail and password."""
        body = await self._post("/token?grant_type=password", {"email": email, "password": password})
        identity = _identity_from_session(body)
        if identity is None:
            raise AuthenticationError("Authentication service returned no session")
        await self.set_identity(identity)
        return identity

    async def sign_out(self) -> None:
        """End the session locally, and remotely when a token is held.

        The local identity is dropped even if the remote call fails.
        """
        token = self.access_token
        try:
            if token:
                await self._post("/logout", token=token)
        except AuthenticationError as e:
            logger.warning("Remote sign-out failed: %s", e)
        finally:
            await self.set_identity(None)
