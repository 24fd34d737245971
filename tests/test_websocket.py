"""
Tests for the aiohttp websocket transport against a live test server.
"""

import asyncio

import pytest
from aiohttp import WSMsgType, web
from aiohttp.test_utils import TestServer

from shellmux.enums import SessionState
from shellmux.exception import TransportError
from shellmux.terminal import SessionManager
from shellmux.transport import WebSocketConnector, WebSocketTransport, build_endpoint

from conftest import ManualClock, RecordingSink


class RecordingListener:
    """TransportListener that records notifications and exposes events to await"""

    def __init__(self):
        self.events = []
        self.messages = []
        self.opened = asyncio.Event()
        self.closed = asyncio.Event()
        self.got_message = asyncio.Event()

    def on_open(self, transport):
        self.events.append("open")
        self.opened.set()

    def on_message(self, transport, chunk):
        self.messages.append(chunk)
        self.got_message.set()

    def on_close(self, transport):
        self.events.append("close")
        self.closed.set()

    def on_error(self, transport, error):
        self.events.append("error")


async def shell_handler(request):
    """Minimal fake shell: greets, echoes text and binary frames, exits on 'exit\\r'."""
    ws = web.WebSocketResponse()
    await ws.prepare(request)
    await ws.send_str("$ ")
    async for msg in ws:
        if msg.type == WSMsgType.TEXT:
            if msg.data == "exit\r":
                await ws.close()
                break
            await ws.send_str(f"echo:{msg.data}")
        elif msg.type == WSMsgType.BINARY:
            await ws.send_bytes(msg.data)
    return ws


@pytest.fixture
async def server():
    app = web.Application()
    app.router.add_get("/terminal/ws/terminal", shell_handler)
    test_server = TestServer(app)
    await test_server.start_server()
    yield test_server
    await test_server.close()


@pytest.fixture
async def connector():
    connector = WebSocketConnector(heartbeat=None)
    yield connector
    await connector.aclose()


def _url(server):
    return build_endpoint(str(server.make_url("/")))


async def _wait_for(predicate, timeout=2.0):
    async def poll():
        while not predicate():
            await asyncio.sleep(0.01)
    await asyncio.wait_for(poll(), timeout)


class TestWebSocketTransport:
    """Tests for WebSocketTransport and WebSocketConnector."""

    async def test_open_and_receive_greeting(self, server, connector):
        listener = RecordingListener()
        transport = connector.open(_url(server), listener)

        await asyncio.wait_for(listener.opened.wait(), 2.0)
        await asyncio.wait_for(listener.got_message.wait(), 2.0)

        assert listener.messages == ["$ "]
        assert not transport.closed

    async def test_send_preserves_order(self, server, connector):
        listener = RecordingListener()
        transport = connector.open(_url(server), listener)
        await asyncio.wait_for(listener.opened.wait(), 2.0)

        for chunk in ["a", "b", "c"]:
            transport.send(chunk)
        transport.send(b"\x03")

        await _wait_for(lambda: len(listener.messages) == 5)
        assert listener.messages == ["$ ", "echo:a", "echo:b", "echo:c", b"\x03"]

    async def test_server_close_notifies(self, server, connector):
        listener = RecordingListener()
        transport = connector.open(_url(server), listener)
        await asyncio.wait_for(listener.opened.wait(), 2.0)

        transport.send("exit\r")

        await asyncio.wait_for(listener.closed.wait(), 2.0)
        assert listener.events == ["open", "close"]
        assert transport.closed

    async def test_user_close_is_silent(self, server, connector):
        listener = RecordingListener()
        transport = connector.open(_url(server), listener)
        await asyncio.wait_for(listener.opened.wait(), 2.0)

        transport.close()
        await transport.wait_closed()

        assert listener.events == ["open"]
        assert transport.closed

    async def test_connect_failure_reports_error_then_close(self, connector):
        listener = RecordingListener()
        connector.open("ws://127.0.0.1:1/terminal/ws/terminal", listener)

        await asyncio.wait_for(listener.closed.wait(), 5.0)

        assert listener.events == ["error", "close"]

    def test_open_requires_running_loop(self):
        with pytest.raises(TransportError):
            WebSocketConnector().open("ws://127.0.0.1:1/", RecordingListener())


class TestManagerOverWebSocket:
    """End-to-end: SessionManager driving real websocket transports."""

    async def test_run_command_round_trip(self, server, connector):
        sinks = {}

        def factory(session_id, name):
            sinks[session_id] = RecordingSink(name)
            return sinks[session_id]

        manager = SessionManager(connector, ManualClock(), factory, _url(server), welcome_banner=False)
        session_id = manager.start()
        session = manager.get(session_id)

        await _wait_for(lambda: session.state == SessionState.OPEN)
        assert manager.run_command("ls") is True
        await _wait_for(lambda: "echo:ls\r" in sinks[session_id].text)

        assert sinks[session_id].text.startswith("$ ")
        manager.shutdown()

    async def test_server_exit_schedules_reconnect(self, server, connector):
        clock = ManualClock()
        manager = SessionManager(
            connector, clock, lambda i, n: RecordingSink(n), _url(server), welcome_banner=False
        )
        session = manager.get(manager.start())
        await _wait_for(lambda: session.state == SessionState.OPEN)

        manager.run_command("exit")

        await _wait_for(lambda: session.state == SessionState.RECONNECTING)
        assert session.reconnect_attempts == 1
        assert len(clock.pending) == 1

        clock.advance(2.0)
        await _wait_for(lambda: session.state == SessionState.OPEN)
        assert session.reconnect_attempts == 0
        manager.shutdown()


class BrokenSocket:
    """Stands in for a ClientWebSocketResponse whose peer has gone away"""

    def __init__(self):
        self.closed = False
        self.close_calls = 0

    async def send_str(self, data):
        raise ConnectionResetError("peer reset")

    async def send_bytes(self, data):
        raise ConnectionResetError("peer reset")

    async def close(self):
        self.close_calls += 1
        self.closed = True


class TestSendFailure:
    """A failed send is reported instead of leaving the transport half-open."""

    async def test_send_failure_reports_error_and_closes_socket(self):
        listener = RecordingListener()
        transport = WebSocketTransport("ws://unused/", listener, http_session=None)
        transport._ws = BrokenSocket()

        transport.send("ls\r")
        await asyncio.wait_for(transport._drain_outbox(), 2.0)

        assert listener.events == ["error"]
        assert transport._ws.close_calls == 1

    async def test_listener_closing_on_error_skips_socket_close(self):
        class ClosingListener(RecordingListener):
            def on_error(self, transport, error):
                super().on_error(transport, error)
                transport.close()

        listener = ClosingListener()
        transport = WebSocketTransport("ws://unused/", listener, http_session=None)
        transport._ws = BrokenSocket()

        transport.send(b"\x03")
        await asyncio.wait_for(transport._drain_outbox(), 2.0)

        assert listener.events == ["error"]
        assert transport.closed
        assert transport._ws.close_calls == 0
