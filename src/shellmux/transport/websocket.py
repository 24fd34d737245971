"""Websocket transport built on aiohttp.

Each WebSocketTransport runs one reader task for the lifetime of its
connection and one writer task draining an outbound queue, so output and
input are each delivered in order.
"""

import asyncio
import itertools
import logging
import weakref
from typing import Optional

import aiohttp

from ..exception import TransportError
from .base import Chunk, Connector, Transport, TransportListener

logger = logging.getLogger(__name__)

_transport_ids = itertools.count(1)


class WebSocketTransport(Transport):
    """
    One websocket connection to the shell backend.

    Lifecycle:
    1. start() - spawn the reader task, which connects
    2. on_open - reader connected, writer task started
    3. on_message - one call per text/binary frame, in arrival order
    4. on_error / on_close - connection failed or ended on its own
    5. close() - user teardown, listener is detached first

    Attributes:
        url: Websocket endpoint
        transport_id: Process-local sequence number used in logs and task names
    """

    def __init__(
        self,
        url: str,
        listener: TransportListener,
        http_session: aiohttp.ClientSession,
        heartbeat: Optional[float] = None,
    ):
        self.url = url
        self.transport_id = next(_transport_ids)
        self._listener: Optional[TransportListener] = listener
        self._http_session = http_session
        self._heartbeat = heartbeat

        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._outbox: asyncio.Queue = asyncio.Queue()
        self._reader_task: Optional[asyncio.Task] = None
        self._writer_task: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        if self._reader_task is not None:
            return
        self._reader_task = asyncio.create_task(
            self._run(),
            name=f"ws-transport-{self.transport_id}"
        )

    def send(self, chunk: Chunk) -> None:
        if self._closed:
            logger.debug(f"[WebSocketTransport] Dropping send on closed transport {self.transport_id}")
            return
        self._outbox.put_nowait(chunk)

    def close(self) -> None:
        if self._closed:
            return
        logger.debug(f"[WebSocketTransport] Closing transport {self.transport_id}")
        self._closed = True
        self._listener = None
        if self._reader_task is not None and not self._reader_task.done():
            self._reader_task.cancel()

    async def wait_closed(self) -> None:
        """Wait until the reader task has finished and the socket is released"""
        if self._reader_task is None:
            return
        await asyncio.gather(self._reader_task, return_exceptions=True)

    # ========== Background Tasks ==========

    async def _run(self) -> None:
        try:
            await self._connect_and_read()
        finally:
            if self._writer_task is not None:
                self._writer_task.cancel()
            if self._ws is not None and not self._ws.closed:
                await self._ws.close()

    async def _connect_and_read(self) -> None:
        logger.info(f"[WebSocketTransport] Connecting {self.transport_id}: url={self.url}")
        try:
            self._ws = await self._http_session.ws_connect(self.url, heartbeat=self._heartbeat)
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            logger.warning(f"[WebSocketTransport] Connect failed {self.transport_id}: {e}")
            self._emit_error(e)
            self._emit_close()
            return

        self._writer_task = asyncio.create_task(
            self._drain_outbox(),
            name=f"ws-transport-writer-{self.transport_id}"
        )
        logger.info(f"[WebSocketTransport] Connected {self.transport_id}")
        self._emit_open()

        try:
            async for msg in self._ws:
                if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                    self._emit_message(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    self._emit_error(self._ws.exception() or TransportError("websocket error frame"))
        except aiohttp.ClientError as e:
            logger.warning(f"[WebSocketTransport] Read error {self.transport_id}: {e}")
            self._emit_error(e)

        logger.info(
            f"[WebSocketTransport] Connection ended {self.transport_id}: "
            f"close_code={self._ws.close_code}"
        )
        self._emit_close()

    async def _drain_outbox(self) -> None:
        while True:
            chunk = await self._outbox.get()
            try:
                if isinstance(chunk, bytes):
                    await self._ws.send_bytes(chunk)
                else:
                    await self._ws.send_str(chunk)
            except (aiohttp.ClientError, ConnectionError) as e:
                logger.warning(f"[WebSocketTransport] Send failed {self.transport_id}: {e}")
                self._emit_error(e)
                # Listener kept the transport: end the reader so on_close follows
                if not self._closed and not self._ws.closed:
                    await self._ws.close()
                return

    # ========== Listener Dispatch ==========

    def _dispatch(self, method: str, *args) -> None:
        listener = self._listener
        if listener is None:
            return
        try:
            getattr(listener, method)(self, *args)
        except Exception:
            logger.exception(f"[WebSocketTransport] Listener {method} failed for transport {self.transport_id}")

    def _emit_open(self) -> None:
        self._dispatch("on_open")

    def _emit_message(self, chunk: Chunk) -> None:
        self._dispatch("on_message", chunk)

    def _emit_error(self, error: BaseException) -> None:
        self._dispatch("on_error", error)

    def _emit_close(self) -> None:
        self._closed = True
        self._dispatch("on_close")
        self._listener = None


class WebSocketConnector(Connector):
    """
    Opens WebSocketTransports over a shared aiohttp.ClientSession.

    Usage:
        connector = WebSocketConnector(heartbeat=30.0)
        transport = connector.open("ws://127.0.0.1:8000/terminal/ws/terminal", listener)
        ...
        await connector.aclose()
    """

    def __init__(
        self,
        http_session: Optional[aiohttp.ClientSession] = None,
        heartbeat: Optional[float] = 30.0,
    ):
        """
        Args:
            http_session: Session to reuse; created lazily and owned by the connector if None
            heartbeat: Websocket ping interval in seconds, None disables pings
        """
        self._http_session = http_session
        self._owns_session = http_session is None
        self._heartbeat = heartbeat
        self._transports: "weakref.WeakSet[WebSocketTransport]" = weakref.WeakSet()

    def open(self, url: str, listener: TransportListener) -> WebSocketTransport:
        try:
            asyncio.get_running_loop()
        except RuntimeError as e:
            raise TransportError("WebSocketConnector.open() requires a running event loop") from e

        if self._http_session is None or self._http_session.closed:
            if not self._owns_session:
                raise TransportError("Shared aiohttp session is closed")
            self._http_session = aiohttp.ClientSession()

        transport = WebSocketTransport(url, listener, self._http_session, self._heartbeat)
        self._transports.add(transport)
        transport.start()
        return transport

    async def aclose(self) -> None:
        """Close every live transport and the owned HTTP session"""
        transports = list(self._transports)
        for transport in transports:
            transport.close()
        await asyncio.gather(*(t.wait_closed() for t in transports))
        if self._owns_session and self._http_session is not None and not self._http_session.closed:
            await self._http_session.close()
        logger.info("[WebSocketConnector] Closed")
