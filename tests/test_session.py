"""Tests for the session and identity provider (api/session.py)."""

import json

import httpx
import pytest

from api.exceptions import AuthenticationError
from api.session import Identity, SessionProvider

from conftest import ALICE

SESSION_PAYLOAD = {
    "access_token": "jwt-token",
    "token_type": "bearer",
    "user": {
        "id": "user-alice",
        "email": "alice@example.com",
        "user_metadata": {"full_name": "Alice Example"},
    },
}


def _provider(handler):
    seen = []

    def recording(request):
        seen.append(request)
        return handler(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(recording))
    return SessionProvider(client, "https://project.supabase.co", "anon-key"), client, seen


class TestSignIn:
    @pytest.mark.asyncio
    async def test_sign_in_sets_identity_and_notifies(self):
        provider, client, seen = _provider(lambda r: httpx.Response(200, json=SESSION_PAYLOAD))
        events = []

        async def listener(identity):
            events.append(identity)

        provider.add_listener(listener)
        async with client:
            identity = await provider.sign_in("alice@example.com", "secret")

        assert identity == Identity("user-alice", "alice@example.com", "jwt-token", "Alice Example")
        assert provider.is_authenticated
        assert provider.access_token == "jwt-token"
        assert events == [identity]
        assert seen[0].url.path == "/auth/v1/token"
        assert seen[0].url.params["grant_type"] == "password"
        assert json.loads(seen[0].content) == {"email": "alice@example.com", "password": "secret"}

    @pytest.mark.asyncio
    async def test_rejected_credentials(self):
        body = {"error": "invalid_grant", "error_description": "Invalid login credentials"}
        provider, client, _ = _provider(lambda r: httpx.Response(400, json=body))
        async with client:
            with pytest.raises(AuthenticationError, match="Invalid login credentials") as exc_info:
                await provider.sign_in("alice@example.com", "wrong")

        assert exc_info.value.status_code == 400
        assert provider.identity is None

    @pytest.mark.asyncio
    async def test_unreachable_service(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        provider, client, _ = _provider(handler)
        async with client:
            with pytest.raises(AuthenticationError, match="unreachable") as exc_info:
                await provider.sign_in("alice@example.com", "secret")
        assert exc_info.value.status_code is None


class TestSignUp:
    @pytest.mark.asyncio
    async def test_sign_up_sends_full_name(self):
        provider, client, seen = _provider(lambda r: httpx.Response(200, json=SESSION_PAYLOAD))
        async with client:
            identity = await provider.sign_up("alice@example.com", "secret", full_name="Alice Example")

        assert identity.full_name == "Alice Example"
        assert json.loads(seen[0].content)["data"] == {"full_name": "Alice Example"}

    @pytest.mark.asyncio
    async def test_confirmation_pending_returns_none(self):
        user_only = {"id": "user-alice", "email": "alice@example.com"}
        provider, client, _ = _provider(lambda r: httpx.Response(200, json=user_only))
        async with client:
            assert await provider.sign_up("alice@example.com", "secret") is None
        assert provider.identity is None


class TestSignOut:
    @pytest.mark.asyncio
    async def test_sign_out_posts_with_token(self):
        provider, client, seen = _provider(lambda r: httpx.Response(204))
        provider._identity = ALICE
        async with client:
            await provider.sign_out()

        assert provider.identity is None
        assert seen[0].url.path == "/auth/v1/logout"
        assert seen[0].headers["authorization"] == "Bearer token-alice"

    @pytest.mark.asyncio
    async def test_sign_out_clears_even_when_remote_fails(self):
        provider, client, _ = _provider(lambda r: httpx.Response(500, json={"msg": "boom"}))
        provider._identity = ALICE
        events = []

        async def listener(identity):
            events.append(identity)

        provider.add_listener(listener)
        async with client:
            await provider.sign_out()

        assert provider.identity is None
        assert events == [None]

    @pytest.mark.asyncio
    async def test_sign_out_without_session_skips_remote(self):
        provider, client, seen = _provider(lambda r: httpx.Response(204))
        async with client:
            await provider.sign_out()
        assert seen == []


class TestListeners:
    @pytest.mark.asyncio
    async def test_unchanged_identity_does_not_notify(self):
        provider, client, _ = _provider(lambda r: httpx.Response(204))
        events = []

        async def listener(identity):
            events.append(identity)

        provider.add_listener(listener)
        await provider.set_identity(ALICE)
        await provider.set_identity(ALICE)
        await client.aclose()

        assert events == [ALICE]

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_block_others(self):
        provider, client, _ = _provider(lambda r: httpx.Response(204))
        events = []

        async def broken(identity):
            raise RuntimeError("listener failed")

        async def listener(identity):
            events.append(identity)

        provider.add_listener(broken)
        provider.add_listener(listener)
        await provider.set_identity(ALICE)
        provider.remove_listener(listener)
        provider.remove_listener(listener)
        await provider.set_identity(None)
        await client.aclose()

        assert events == [ALICE]

    def test_identity_dict_hides_token(self):
        assert "access_token" not in ALICE.to_dict()
