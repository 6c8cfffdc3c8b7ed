"""Tests for the reload broadcaster."""

import pytest
from websockets.sync.client import connect

from conftest import wait_until
from inkwell_live.reload import RELOAD_MESSAGE, ReloadServer, ReloadState, handle_client
from inkwell_site.errors import ServerError


class FakeWebSocket:
    """Replays inbound messages; records what is sent back."""

    def __init__(self, messages, on_message=None):
        self.messages = list(messages)
        self.on_message = on_message
        self.sent = []

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self.messages:
            raise StopAsyncIteration
        message = self.messages.pop(0)
        if self.on_message:
            self.on_message(message)
        return message

    async def send(self, message):
        self.sent.append(message)


def test_registry_membership():
    state = ReloadState()
    first = state.register(object())
    second = state.register(object())

    assert state.client_count == 2
    state.unregister(first)
    assert state.client_count == 1
    state.unregister(first)
    assert state.client_count == 1
    assert second.client_id != first.client_id


def test_pending_flag_stays_until_taken():
    state = ReloadState()
    client = state.register(object())

    assert state.mark_pending() == 1
    assert state.is_pending(client)
    assert state.is_pending(client)
    assert state.take_pending(client) is True
    assert state.take_pending(client) is False


def test_every_client_gets_its_own_flag():
    state = ReloadState()
    clients = [state.register(object()) for _ in range(3)]

    state.mark_pending()

    assert [state.take_pending(c) for c in clients] == [True, True, True]


def test_mark_pending_without_clients():
    assert ReloadState().mark_pending() == 0


@pytest.mark.asyncio
async def test_handler_sends_reload_once_per_change():
    state = ReloadState()
    # Flag the client when it sends its second message.
    ws = FakeWebSocket(
        ["ping", "ping", "ping"],
        on_message=lambda m: state.mark_pending() if len(ws.messages) == 1 else None,
    )

    await handle_client(state, ws)

    assert ws.sent == [RELOAD_MESSAGE]
    assert state.client_count == 0


@pytest.mark.asyncio
async def test_handler_silent_without_change():
    state = ReloadState()
    ws = FakeWebSocket(["ping", "ping"])

    await handle_client(state, ws)

    assert ws.sent == []


@pytest.fixture
def reload_server(config):
    server = ReloadServer(config, ReloadState())
    server.start()
    yield server
    server.stop()


def test_server_delivers_reload(reload_server):
    with connect(reload_server.url) as ws:
        assert wait_until(lambda: reload_server.state.client_count == 1)
        reload_server.state.mark_pending()

        ws.send("ping")
        assert ws.recv(timeout=5) == RELOAD_MESSAGE

        ws.send("ping")
        with pytest.raises(TimeoutError):
            ws.recv(timeout=0.3)

    assert wait_until(lambda: reload_server.state.client_count == 0)


def test_server_binds_assigned_port(reload_server):
    assert reload_server.port != 0
    assert reload_server.url == f"ws://127.0.0.1:{reload_server.port}"
    assert reload_server.is_running


def test_stop_ends_thread(config):
    server = ReloadServer(config, ReloadState())
    server.start()
    server.stop()
    assert not server.is_running


def test_port_in_use_raises(reload_server, config):
    other = ReloadServer(config, ReloadState(), port=reload_server.port)
    with pytest.raises(ServerError):
        other.start()
    other.stop()
