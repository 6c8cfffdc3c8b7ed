"""Reload broadcaster: tells connected browsers to refresh after a rebuild.

Browsers hold a WebSocket open to this server and send a keepalive message
periodically. When a rebuild finishes, every registered client is marked
pending; the next message a client sends is answered with the reload
instruction and that client's flag is cleared.

Each client has its own pending flag, so every open tab is told to reload
once per rebuild rather than only the first one to poll.
"""

import asyncio
import itertools
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import websockets

from inkwell_site.config import SiteConfig
from inkwell_site.errors import ServerError

logger = logging.getLogger(__name__)

RELOAD_MESSAGE = "reload"

_client_ids = itertools.count(1)


@dataclass
class ReloadClient:
    """A registered reload channel (one per browser tab)."""

    connection: Any
    client_id: int = field(default_factory=lambda: next(_client_ids))
    pending: bool = False


class ReloadState:
    """Registry of reload clients and their pending flags.

    Written by the orchestrator thread, read and cleared by the reload server's
    connection handlers. Every method holds the lock only for the flag or
    registry update itself.
    """

    def __init__(self):
        self._clients: Dict[int, ReloadClient] = {}
        self._lock = threading.Lock()

    @property
    def client_count(self) -> int:
        with self._lock:
            return len(self._clients)

    def register(self, connection: Any) -> ReloadClient:
        client = ReloadClient(connection)
        with self._lock:
            self._clients[client.client_id] = client
        return client

    def unregister(self, client: ReloadClient):
        with self._lock:
            self._clients.pop(client.client_id, None)

    def mark_pending(self) -> int:
        """Flag every connected client for reload. Returns how many were flagged."""
        with self._lock:
            for client in self._clients.values():
                client.pending = True
            return len(self._clients)

    def is_pending(self, client: ReloadClient) -> bool:
        with self._lock:
            return client.pending

    def take_pending(self, client: ReloadClient) -> bool:
        """Clear the client's flag, returning whether it was set."""
        with self._lock:
            pending = client.pending
            client.pending = False
            return pending


async def handle_client(state: ReloadState, websocket):
    """Serve one reload channel until the browser disconnects."""
    client = state.register(websocket)
    logger.debug(f"Reload client {client.client_id} connected")
    try:
        async for _message in websocket:
            if state.take_pending(client):
                await websocket.send(RELOAD_MESSAGE)
                logger.info(f"Sent reload to client {client.client_id}")
    except websockets.exceptions.ConnectionClosed:
        pass
    finally:
        state.unregister(client)
        logger.debug(f"Reload client {client.client_id} disconnected")


class ReloadServer:
    """WebSocket server for reload channels, on its own thread and event loop.

    It is started once and is independent of HTTP server restarts, so open
    reload channels survive them.
    """

    def __init__(self, config: SiteConfig, state: ReloadState, port: Optional[int] = None):
        self.config = config
        self.state = state
        self.host = config.host
        self.port = config.ws_port if port is None else port
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._stop: Optional[asyncio.Event] = None
        self._ready = threading.Event()
        self._error: Optional[BaseException] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def url(self) -> str:
        return self.config.reload_url(self.port)

    async def _handler(self, websocket):
        await handle_client(self.state, websocket)

    async def _serve(self):
        self._loop = asyncio.get_running_loop()
        self._stop = asyncio.Event()
        try:
            async with websockets.serve(self._handler, self.host, self.port) as server:
                self.port = next(iter(server.sockets)).getsockname()[1]
                logger.info(f"Reload server at ws://{self.host}:{self.port}")
                self._ready.set()
                await self._stop.wait()
        except OSError as e:
            # Reported to the caller of start().
            self._error = e
        finally:
            self._ready.set()

    def run(self):
        """Serve until stopped. Runs in the calling thread."""
        asyncio.run(self._serve())

    def start(self, target=None, timeout: float = 5.0):
        """Start in a background thread and wait until the port is bound.

        Raises:
            ServerError: If the server can't bind.
        """
        if self.is_running:
            return
        self._ready.clear()
        self._error = None
        self._thread = threading.Thread(
            target=target or self.run, name="inkwell-reload", daemon=True
        )
        self._thread.start()
        if not self._ready.wait(timeout):
            raise ServerError(f"Reload server did not start within {timeout}s")
        if self._error is not None:
            raise ServerError(
                f"Reload server could not bind {self.host}:{self.port}: {self._error}"
            ) from self._error

    def stop(self, timeout: float = 5.0):
        loop, stop = self._loop, self._stop
        if loop is not None and stop is not None and not loop.is_closed():
            try:
                loop.call_soon_threadsafe(stop.set)
            except RuntimeError:
                # Loop already finished.
                pass
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
