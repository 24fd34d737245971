"""
Test configuration and fixtures.

Fakes stand in for the transport, render sink and clock so that the session
state machine can be driven one notification at a time.
"""

from typing import Callable, List, Optional, Tuple

import pytest

from shellmux.clock import Clock
from shellmux.exception import TransportError
from shellmux.terminal import RenderSink, SessionManager
from shellmux.transport import Chunk, Connector, Transport, TransportListener

TEST_URL = "ws://backend.test/terminal/ws/terminal"


class FakeTimerHandle:
    def __init__(self, due: float, delay: float, callback: Callable[[], None]):
        self.due = due
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def pending(self) -> bool:
        return not self.cancelled and not self.fired


class ManualClock(Clock):
    """Clock that only advances when told to"""

    def __init__(self):
        self.now = 0.0
        self.handles: List[FakeTimerHandle] = []

    def call_later(self, delay, callback):
        handle = FakeTimerHandle(self.now + delay, delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> List[FakeTimerHandle]:
        return [h for h in self.handles if h.pending]

    def advance(self, seconds: float) -> None:
        self.now += seconds
        for handle in list(self.handles):
            if handle.pending and handle.due <= self.now:
                handle.fired = True
                handle.callback()


class FakeTransport(Transport):
    """Transport whose notifications are triggered by the test"""

    def __init__(self, url: str, listener: TransportListener):
        self.url = url
        self.listener = listener
        self.sent: List[Chunk] = []
        self.close_calls = 0
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, chunk: Chunk) -> None:
        self.sent.append(chunk)

    def close(self) -> None:
        self.close_calls += 1
        self._closed = True

    # Test drivers
    def open(self) -> None:
        self.listener.on_open(self)

    def message(self, chunk: Chunk) -> None:
        self.listener.on_message(self, chunk)

    def drop(self) -> None:
        self._closed = True
        self.listener.on_close(self)

    def fail(self, error: Optional[BaseException] = None) -> None:
        self.listener.on_error(self, error or ConnectionResetError("reset"))


class FakeConnector(Connector):
    def __init__(self):
        self.transports: List[FakeTransport] = []
        self.refuse = False

    def open(self, url, listener):
        if self.refuse:
            raise TransportError("refused")
        transport = FakeTransport(url, listener)
        self.transports.append(transport)
        return transport

    @property
    def last(self) -> FakeTransport:
        return self.transports[-1]


class RecordingSink(RenderSink):
    """RenderSink that records every call, optionally into a shared log"""

    def __init__(self, name: str = "sink", log: Optional[list] = None):
        self.name = name
        self.log = log if log is not None else []
        self.chunks: List[Chunk] = []
        self.statuses: List[str] = []
        self.status: Optional[str] = None
        self.resizes: List[Tuple[int, int]] = []
        self.visible = False
        self.cleared = 0
        self.disposed = False
        self.fail_resize = False

    def write(self, chunk):
        self.chunks.append(chunk)

    def write_status(self, text):
        self.statuses.append(text)
        self.status = text

    def clear_status(self):
        self.status = None

    def resize(self, cols, rows):
        if self.fail_resize:
            raise RuntimeError("surface not attached")
        self.resizes.append((cols, rows))

    def clear(self):
        self.cleared += 1

    def set_visible(self, visible):
        self.visible = visible

    def dispose(self):
        self.disposed = True
        self.log.append(("dispose", self.name))

    @property
    def text(self) -> str:
        return "".join(c.decode() if isinstance(c, bytes) else c for c in self.chunks)


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def connector():
    return FakeConnector()


@pytest.fixture
def event_log():
    return []


@pytest.fixture
def sinks(event_log):
    """Sinks created by the manager, keyed by session id"""
    return {}


@pytest.fixture
def viewport():
    return {"size": (120, 40)}


@pytest.fixture
def manager(connector, clock, sinks, event_log, viewport):
    def sink_factory(session_id, name):
        sink = RecordingSink(name, event_log)
        sinks[session_id] = sink
        event_log.append(("create", name))
        return sink

    return SessionManager(
        connector=connector,
        clock=clock,
        sink_factory=sink_factory,
        url=TEST_URL,
        viewport=lambda: viewport["size"],
        welcome_banner=False,
    )
