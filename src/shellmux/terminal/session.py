"""Terminal session: one shell bound to one transport.

This module owns the connection state machine of a single session:

    CONNECTING -> OPEN <-> RECONNECTING -> CLOSED

Unsolicited disconnects are retried a bounded number of times after a fixed
delay. A user close sets a suppression flag before anything is torn down so
the teardown itself is never mistaken for a failure.
"""

import logging
from typing import Callable, Dict, FrozenSet, Optional

from ..clock import Clock, TimerHandle
from ..enums import SessionState
from ..exception import InvalidStateTransitionError, TransportError
from ..transport.base import Chunk, Connector, Transport
from .sink import RenderSink

logger = logging.getLogger(__name__)

MAX_RECONNECT_ATTEMPTS = 5
RECONNECT_DELAY = 2.0
CONNECTING_STATUS = "Connecting to terminal..."

_TRANSITIONS: Dict[SessionState, FrozenSet[SessionState]] = {
    SessionState.CONNECTING: frozenset({
        SessionState.OPEN,
        SessionState.RECONNECTING,
        SessionState.CLOSED,
    }),
    SessionState.OPEN: frozenset({
        SessionState.RECONNECTING,
        SessionState.CLOSED,
    }),
    SessionState.RECONNECTING: frozenset({
        SessionState.OPEN,
        SessionState.RECONNECTING,
        SessionState.CLOSED,
    }),
    # Only a manual reconnect of a failed session leaves CLOSED
    SessionState.CLOSED: frozenset({
        SessionState.RECONNECTING,
    }),
}


class TerminalSession:
    """
    One interactive shell session and its connection state machine.

    Architecture:
    - Created and owned by SessionManager
    - Acts as the TransportListener for every transport it opens
    - Reports state changes to the manager through on_state_change

    Attributes:
        session_id: Opaque unique identifier
        display_name: Human label shown in session lists
        url: Websocket endpoint used for every (re)connect
        sink: RenderSink receiving this session's output
        state: Current SessionState
        reconnect_attempts: Automatic attempts since the last successful open
    """

    def __init__(
        self,
        session_id: str,
        display_name: str,
        url: str,
        connector: Connector,
        clock: Clock,
        sink: RenderSink,
        max_reconnect_attempts: int = MAX_RECONNECT_ATTEMPTS,
        reconnect_delay: float = RECONNECT_DELAY,
        on_state_change: Optional[Callable[["TerminalSession"], None]] = None,
    ):
        self.session_id = session_id
        self.display_name = display_name
        self.url = url
        self.sink = sink
        self.max_reconnect_attempts = max_reconnect_attempts
        self.reconnect_delay = reconnect_delay

        self.state = SessionState.CONNECTING
        self.reconnect_attempts = 0

        self._connector = connector
        self._clock = clock
        self._on_state_change = on_state_change
        self._transport: Optional[Transport] = None
        self._retry_handle: Optional[TimerHandle] = None
        self._status_shown = False
        self._disposed = False

        logger.debug(f"TerminalSession created: session_id={session_id}, url={url}")

    @property
    def transport(self) -> Optional[Transport]:
        return self._transport

    @property
    def pending_retry(self) -> Optional[TimerHandle]:
        return self._retry_handle

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def is_open(self) -> bool:
        return self.state == SessionState.OPEN

    @property
    def is_connecting(self) -> bool:
        return self.state in (SessionState.CONNECTING, SessionState.RECONNECTING)

    # ========== Connection Control ==========

    def connect(self) -> None:
        """
        Open a fresh transport, replacing any previous one.

        The reconnect counter is left untouched; only a successful open
        resets it. A connector that refuses synchronously is treated like
        a transport that failed immediately.
        """
        if self._disposed:
            return

        self._cancel_retry()
        self._release_transport()

        self.sink.write_status(CONNECTING_STATUS)
        self._status_shown = True

        logger.info(
            f"[TerminalSession] Connecting: session_id={self.session_id}, "
            f"state={self.state.value}, attempts={self.reconnect_attempts}"
        )
        try:
            self._transport = self._connector.open(self.url, self)
        except TransportError as e:
            logger.warning(f"[TerminalSession] Transport open refused for {self.session_id}: {e}")
            self._transport = None
            self._handle_disconnect()

    def reconnect(self) -> bool:
        """
        Manually trigger a reconnect.

        Returns:
            True if a new attempt was started, False if one is already in
            progress, the session is open, or the session was disposed
        """
        if self._disposed or self.is_connecting or self.is_open:
            return False

        logger.info(f"[TerminalSession] Manual reconnect: session_id={self.session_id}")
        self._set_state(SessionState.RECONNECTING)
        self.connect()
        return True

    def send(self, chunk: Chunk) -> bool:
        """
        Forward input to the shell.

        Input is only delivered while OPEN; otherwise it is dropped.

        Returns:
            True if the chunk was handed to the transport
        """
        if not self.is_open or self._transport is None:
            logger.debug(
                f"[TerminalSession] Dropping input for {self.session_id}: "
                f"state={self.state.value}, length={len(chunk)}"
            )
            return False
        self._transport.send(chunk)
        return True

    def dispose(self) -> None:
        """
        User-initiated teardown.

        Order matters: suppression first, then retry cancellation, then the
        transport, so neither a close notification nor a timer can start a
        new attempt for a disposed session.
        """
        if self._disposed:
            return
        self._disposed = True
        self._cancel_retry()
        self._release_transport()
        if self.state != SessionState.CLOSED:
            self._set_state(SessionState.CLOSED)
        self.sink.dispose()
        logger.info(f"[TerminalSession] Disposed: session_id={self.session_id}")

    # ========== Transport Notifications ==========

    def on_open(self, transport: Transport) -> None:
        if not self._is_current(transport):
            return
        self.reconnect_attempts = 0
        if self._status_shown:
            self.sink.clear_status()
            self._status_shown = False
        self._set_state(SessionState.OPEN)
        logger.info(f"[TerminalSession] Connected: session_id={self.session_id}")

    def on_message(self, transport: Transport, chunk: Chunk) -> None:
        if not self._is_current(transport):
            return
        self.sink.write(chunk)

    def on_close(self, transport: Transport) -> None:
        if not self._is_current(transport):
            return
        logger.info(f"[TerminalSession] Disconnected: session_id={self.session_id}")
        self._release_transport()
        self._handle_disconnect()

    def on_error(self, transport: Transport, error: BaseException) -> None:
        if not self._is_current(transport):
            return
        logger.warning(f"[TerminalSession] Transport error for {self.session_id}: {error}")
        # The close that usually follows is stale once the transport is released
        self._release_transport()
        self._handle_disconnect()

    # ========== Internals ==========

    def _is_current(self, transport: Transport) -> bool:
        return not self._disposed and transport is self._transport

    def _handle_disconnect(self) -> None:
        if self._disposed:
            return

        if self.reconnect_attempts < self.max_reconnect_attempts:
            self.reconnect_attempts += 1
            self._set_state(SessionState.RECONNECTING)
            self._retry_handle = self._clock.call_later(self.reconnect_delay, self._on_retry_timer)
            logger.info(
                f"[TerminalSession] Reconnect {self.reconnect_attempts}/{self.max_reconnect_attempts} "
                f"scheduled in {self.reconnect_delay}s: session_id={self.session_id}"
            )
        else:
            self._set_state(SessionState.CLOSED)
            logger.warning(
                f"[TerminalSession] Giving up after {self.reconnect_attempts} attempts: "
                f"session_id={self.session_id}"
            )

    def _on_retry_timer(self) -> None:
        self._retry_handle = None
        if self._disposed:
            return
        self.connect()

    def _cancel_retry(self) -> None:
        if self._retry_handle is not None:
            self._retry_handle.cancel()
            self._retry_handle = None

    def _release_transport(self) -> None:
        transport, self._transport = self._transport, None
        if transport is not None:
            transport.close()

    def _set_state(self, new_state: SessionState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise InvalidStateTransitionError(
                f"Session {self.session_id}: {self.state.value} -> {new_state.value} is not allowed"
            )
        old_state, self.state = self.state, new_state
        logger.debug(
            f"[TerminalSession] State {old_state.value} -> {new_state.value}: "
            f"session_id={self.session_id}"
        )
        if self._on_state_change is not None:
            self._on_state_change(self)
