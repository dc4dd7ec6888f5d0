# Tests for auth/callback_server.py — real loopback sockets, mocked token exchange.
# Created: 2026-10-05

import asyncio
import socket
import urllib.parse
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from pocketcal.auth.callback_server import CallbackServer, CallbackState
from pocketcal.auth.client import OAuthClientConfig
from pocketcal.auth.credentials import Credential, CredentialStore, NotFound
from pocketcal.auth.errors import AuthError
from pocketcal.auth.token_manager import TokenManager


@pytest.fixture
def token_manager():
    manager = MagicMock()
    manager.exchange_code = AsyncMock(return_value=Credential(access_token="fresh"))
    manager.authorization_url = MagicMock(
        side_effect=lambda state="": f"https://accounts.example/auth?state={state}"
    )
    return manager


@pytest.fixture
async def callback(token_manager):
    server = CallbackServer(token_manager, port=0, single_shot=False)
    yield server
    await server.stop()


def _state_from(url: str) -> str:
    return urllib.parse.parse_qs(urllib.parse.urlparse(url).query)["state"][0]


async def _get(server: CallbackServer, **params) -> httpx.Response:
    async with httpx.AsyncClient(timeout=5) as client:
        return await client.get(
            f"http://127.0.0.1:{server.bound_port}{server.path}", params=params
        )


async def _wait_until(predicate, timeout: float = 5.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.02)


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    async def test_stop_when_never_started(self, token_manager):
        server = CallbackServer(token_manager, port=0)
        await server.stop()
        await server.stop()
        assert server.state is CallbackState.INERT
        assert server.bound_port is None

    async def test_start_then_stop_twice(self, callback):
        assert await callback.start() is True
        assert callback.state is CallbackState.LISTENING
        assert callback.listening
        assert callback.bound_port

        await callback.stop()
        assert callback.state is CallbackState.INERT
        assert callback.bound_port is None

        await callback.stop()
        assert callback.state is CallbackState.INERT

    async def test_start_is_idempotent_while_listening(self, callback):
        assert await callback.start() is True
        port = callback.bound_port
        assert await callback.start() is True
        assert callback.bound_port == port

    async def test_port_in_use(self, token_manager):
        blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        blocker.bind(("127.0.0.1", 0))
        blocker.listen(1)
        try:
            port = blocker.getsockname()[1]
            server = CallbackServer(token_manager, port=port)
            assert await server.start() is False
            assert server.state is CallbackState.INERT
            await server.stop()
        finally:
            blocker.close()

    async def test_restart_after_stop(self, callback):
        assert await callback.start() is True
        await callback.stop()
        assert await callback.start() is True
        assert callback.listening


# ---------------------------------------------------------------------------
# Redirect handling
# ---------------------------------------------------------------------------


async def test_successful_callback(callback, token_manager):
    await callback.start()
    state = _state_from(callback.authorization_url())

    resp = await _get(callback, code="auth-code", state=state)

    assert resp.status_code == 200
    assert "Successful" in resp.text
    token_manager.exchange_code.assert_awaited_once_with("auth-code")
    credential = await callback.wait_for_credential(timeout=1)
    assert credential is not None
    assert credential.access_token == "fresh"
    assert callback.pending_authorization_code is None
    assert callback.listening  # single_shot disabled


async def test_single_shot_stops_after_success(token_manager):
    server = CallbackServer(token_manager, port=0, single_shot=True)
    try:
        await server.start()
        state = _state_from(server.authorization_url())
        resp = await _get(server, code="auth-code", state=state)
        assert resp.status_code == 200

        await _wait_until(lambda: server.state is CallbackState.INERT)
    finally:
        await server.stop()


async def test_exchange_failure_keeps_listening(callback, token_manager):
    token_manager.exchange_code.side_effect = AuthError("invalid_grant")
    await callback.start()
    state = _state_from(callback.authorization_url())

    resp = await _get(callback, code="bad-code", state=state)

    assert resp.status_code == 502
    assert "invalid_grant" in resp.text
    assert callback.listening
    assert await callback.wait_for_credential(timeout=0.05) is None


async def test_provider_error(callback, token_manager):
    await callback.start()
    resp = await _get(callback, error="access_denied")

    assert resp.status_code == 400
    assert "access_denied" in resp.text
    token_manager.exchange_code.assert_not_called()


async def test_missing_code(callback, token_manager):
    await callback.start()
    resp = await _get(callback)

    assert resp.status_code == 400
    assert "Missing authorization code" in resp.text
    token_manager.exchange_code.assert_not_called()


async def test_state_mismatch(callback, token_manager):
    await callback.start()
    callback.authorization_url()

    resp = await _get(callback, code="auth-code", state="forged")

    assert resp.status_code == 400
    token_manager.exchange_code.assert_not_called()


async def test_error_text_is_escaped(callback):
    await callback.start()
    resp = await _get(callback, error="<script>alert(1)</script>")
    assert "<script>" not in resp.text


async def test_stop_waits_for_inflight_exchange(callback, token_manager):
    release = asyncio.Event()

    async def slow_exchange(code):
        await release.wait()
        return Credential(access_token="slow")

    token_manager.exchange_code.side_effect = slow_exchange
    await callback.start()
    state = _state_from(callback.authorization_url())

    request = asyncio.create_task(_get(callback, code="auth-code", state=state))
    await _wait_until(lambda: callback.pending_authorization_code == "auth-code")

    stopping = asyncio.create_task(callback.stop())
    await asyncio.sleep(0.1)
    assert not stopping.done()

    release.set()
    resp = await request
    await stopping

    assert resp.status_code == 200
    assert callback.state is CallbackState.INERT


async def test_malformed_token_reply_is_a_failed_exchange(tmp_path):
    manager = TokenManager(
        OAuthClientConfig(
            client_id="id",
            client_secret="secret",
            redirect_uri="http://localhost:3000/oauth2callback",
        ),
        CredentialStore(tmp_path / "token.json"),
    )
    server = CallbackServer(manager, port=0, single_shot=False)
    token_client = AsyncMock()
    token_reply = MagicMock()
    token_reply.json.return_value = {"access_token": "new", "expires_in": "soon"}
    token_client.post = AsyncMock(return_value=token_reply)
    token_client.__aenter__ = AsyncMock(return_value=token_client)
    token_client.__aexit__ = AsyncMock(return_value=False)

    try:
        await server.start()
        state = _state_from(server.authorization_url())
        url = f"http://127.0.0.1:{server.bound_port}{server.path}"
        async with httpx.AsyncClient(timeout=5) as browser:
            with patch("httpx.AsyncClient", return_value=token_client):
                resp = await browser.get(url, params={"code": "auth-code", "state": state})

        assert resp.status_code == 502
        assert "expires_in" in resp.text
        assert server.listening
        assert server.pending_authorization_code is None
        assert manager.credential is None
        assert isinstance(CredentialStore(tmp_path / "token.json").load(), NotFound)
    finally:
        await server.stop()
