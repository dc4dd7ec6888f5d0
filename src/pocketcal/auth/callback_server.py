"""OAuth callback listener for the interactive consent flow.

A short-lived FastAPI app served by uvicorn on a fixed local port. The provider
redirects the browser to ``GET <callback_path>?code=...&state=...``; the handler
exchanges the code through ``TokenManager.exchange_code`` (which persists the
credential) and answers with a small HTML page.

Lifecycle is ``INERT → LISTENING → INERT``. ``stop()`` is safe to call at any
time, any number of times, including from the signal-driven shutdown path.

Created: 2026-10-05
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import html
import logging
import secrets
import socket
from collections.abc import Iterator

import uvicorn
from fastapi import FastAPI, Query
from fastapi.responses import HTMLResponse

from pocketcal.auth.credentials import Credential
from pocketcal.auth.errors import AuthError, BindError
from pocketcal.auth.token_manager import TokenManager

logger = logging.getLogger(__name__)


class CallbackState(enum.Enum):
    INERT = "inert"
    LISTENING = "listening"


class _EmbeddedServer(uvicorn.Server):
    """uvicorn server that leaves process signal handling to the host."""

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield


def _page(title: str, body: str, status_code: int = 200) -> HTMLResponse:
    return HTMLResponse(
        f"<h2>{html.escape(title)}</h2><p>{html.escape(body)}</p>"
        "<p>You can close this window.</p>",
        status_code=status_code,
    )


class CallbackServer:
    """Local redirect target for the OAuth authorization code flow."""

    def __init__(
        self,
        token_manager: TokenManager,
        host: str = "127.0.0.1",
        port: int = 3000,
        path: str = "/oauth2callback",
        *,
        single_shot: bool = True,
    ):
        self.token_manager = token_manager
        self.host = host
        self.port = port
        self.path = path
        self.single_shot = single_shot

        self.state = CallbackState.INERT
        self.bound_port: int | None = None
        self.pending_authorization_code: str | None = None

        self._expected_state: str | None = None
        self._server: _EmbeddedServer | None = None
        self._serve_task: asyncio.Task | None = None
        self._lifecycle_lock = asyncio.Lock()
        self._exchange_lock = asyncio.Lock()
        self._completed = asyncio.Event()
        self._credential: Credential | None = None
        self._background: set[asyncio.Task] = set()

    @property
    def listening(self) -> bool:
        return self.state is CallbackState.LISTENING

    def authorization_url(self) -> str:
        """Return the consent URL, bound to a fresh anti-CSRF state value."""
        self._expected_state = secrets.token_urlsafe(24)
        return self.token_manager.authorization_url(state=self._expected_state)

    async def start(self) -> bool:
        """Bind the listener and start serving.

        Returns False (and stays inert) if the port cannot be bound.
        """
        async with self._lifecycle_lock:
            if self.state is CallbackState.LISTENING:
                logger.debug("OAuth callback listener already running on port %s", self.bound_port)
                return True

            try:
                sock = self._bind()
            except BindError as e:
                logger.error("%s", e)
                return False

            self._completed.clear()
            self._credential = None
            config = uvicorn.Config(
                self._create_app(),
                log_level="warning",
                log_config=None,
                access_log=False,
                lifespan="off",
            )
            server = _EmbeddedServer(config)
            self._server = server
            self._serve_task = asyncio.create_task(server.serve(sockets=[sock]))
            self.bound_port = sock.getsockname()[1]

            while not server.started and not self._serve_task.done():
                await asyncio.sleep(0.01)

            if not server.started:
                sock.close()
                self._server = None
                self._serve_task = None
                self.bound_port = None
                logger.error("OAuth callback listener failed to start")
                return False

            self.state = CallbackState.LISTENING
            logger.info(
                "OAuth callback listener on http://%s:%s%s", self.host, self.bound_port, self.path
            )
            return True

    async def stop(self) -> None:
        """Stop the listener. A no-op when it is not running."""
        async with self._lifecycle_lock:
            if self.state is CallbackState.INERT or self._server is None:
                return

            # Let an in-progress code exchange finish before teardown.
            async with self._exchange_lock:
                self._server.should_exit = True

            task = self._serve_task
            try:
                if task is not None:
                    await task
            except Exception:
                logger.warning("OAuth callback listener exited with an error", exc_info=True)
            finally:
                self._server = None
                self._serve_task = None
                self.bound_port = None
                self.state = CallbackState.INERT
                logger.info("OAuth callback listener stopped")

    async def wait_for_credential(self, timeout: float | None = None) -> Credential | None:
        """Wait until a code exchange succeeds; None on timeout."""
        try:
            await asyncio.wait_for(self._completed.wait(), timeout)
        except TimeoutError:
            return None
        return self._credential

    def _bind(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, self.port))
            sock.listen(16)
            sock.setblocking(False)
        except OSError as e:
            sock.close()
            raise BindError(
                f"Cannot bind OAuth callback listener to {self.host}:{self.port}: {e}"
            ) from e
        return sock

    def _create_app(self) -> FastAPI:
        app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)

        @app.get(self.path)
        async def oauth_callback(
            code: str = Query(""),
            state: str = Query(""),
            error: str = Query(""),
        ):
            return await self._handle_callback(code=code, state=state, error=error)

        return app

    async def _handle_callback(self, code: str, state: str, error: str) -> HTMLResponse:
        if error:
            logger.warning("OAuth provider returned error: %s", error)
            return _page("Authorization Failed", f"The provider reported: {error}", 400)

        if not code:
            return _page("Authorization Failed", "Missing authorization code.", 400)

        if self._expected_state is not None and not secrets.compare_digest(
            state, self._expected_state
        ):
            logger.warning("OAuth callback state mismatch; ignoring code")
            return _page("Authorization Failed", "State parameter did not match.", 400)

        async with self._exchange_lock:
            self.pending_authorization_code = code
            try:
                credential = await self.token_manager.exchange_code(code)
            except AuthError as e:
                logger.error("OAuth code exchange failed: %s", e)
                return _page("Authorization Failed", str(e), 502)
            finally:
                self.pending_authorization_code = None
            self._credential = credential
            self._completed.set()

        if self.single_shot:
            task = asyncio.create_task(self.stop())
            self._background.add(task)
            task.add_done_callback(self._background.discard)

        return _page("Authentication Successful", "Google Calendar access is authorized.")
