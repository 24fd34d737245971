"""Session manager for coordinating all terminal sessions.

This module provides centralized management of terminal sessions, handling:
- Session lifecycle (creation, tracking, teardown)
- The active-session pointer and input routing
- Geometry/visibility synchronization with render sinks
- Change notification for session lists
"""

import logging
import uuid
from typing import Callable, Dict, List, Optional, Tuple

from ..clock import Clock
from ..config import Settings
from ..exception import ManagerClosedError
from ..schema import SessionSummary
from ..transport.base import Chunk, Connector
from ..transport.endpoint import build_endpoint
from .session import MAX_RECONNECT_ATTEMPTS, RECONNECT_DELAY, TerminalSession
from .sink import RenderSink

logger = logging.getLogger(__name__)

LINE_TERMINATOR = "\r"
CLEAR_COMMAND = "clear"

SinkFactory = Callable[[str, str], RenderSink]
Viewport = Callable[[], Tuple[int, int]]
ChangeListener = Callable[[List[SessionSummary]], None]

WELCOME_BANNER = (
    "\x1b[1;36m╔════════════════════════════════════════╗\x1b[0m\r\n"
    "\x1b[1;36m║\x1b[0m        \x1b[1;33mshellmux terminal\x1b[0m               \x1b[1;36m║\x1b[0m\r\n"
    "\x1b[1;36m╚════════════════════════════════════════╝\x1b[0m\r\n"
    "\r\n"
)


class SessionManager:
    """
    Owner of all terminal sessions and the active-session pointer.

    Architecture:
    - One instance per workspace, passed explicitly to whatever needs it
    - All methods run on the event loop thread (no locking needed)
    - Sessions report state changes back through a callback

    Invariants:
    - After start() and until shutdown(), there is always at least one
      session and active_id names one of them
    - Closing the last session creates its replacement first

    Attributes:
        url: Websocket endpoint every session connects to
        collapsed: Whether the presentation panel is collapsed
    """

    def __init__(
        self,
        connector: Connector,
        clock: Clock,
        sink_factory: SinkFactory,
        url: str,
        max_reconnect_attempts: int = MAX_RECONNECT_ATTEMPTS,
        reconnect_delay: float = RECONNECT_DELAY,
        viewport: Optional[Viewport] = None,
        welcome_banner: bool = True,
    ):
        """
        Initialize session manager.

        Args:
            connector: Opens one transport per (re)connect attempt
            clock: Schedules reconnect attempts
            sink_factory: Called with (session_id, display_name) to build each session's sink
            url: Websocket endpoint
            max_reconnect_attempts: Automatic attempts before a session gives up
            reconnect_delay: Seconds between automatic attempts
            viewport: Returns the current (cols, rows); geometry sync is skipped if None
            welcome_banner: Write a banner into each new session's sink
        """
        self.url = url
        self.collapsed = False

        self._connector = connector
        self._clock = clock
        self._sink_factory = sink_factory
        self._max_reconnect_attempts = max_reconnect_attempts
        self._reconnect_delay = reconnect_delay
        self._viewport = viewport
        self._welcome_banner = welcome_banner

        self._sessions: Dict[str, TerminalSession] = {}
        self._active_id: Optional[str] = None
        self._counter = 0
        self._listeners: List[ChangeListener] = []
        self._shut_down = False

        logger.info(f"SessionManager initialized: url={url}")

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        connector: Connector,
        clock: Clock,
        sink_factory: SinkFactory,
        viewport: Optional[Viewport] = None,
    ) -> "SessionManager":
        """Build a manager from loaded Settings"""
        return cls(
            connector=connector,
            clock=clock,
            sink_factory=sink_factory,
            url=build_endpoint(settings.server.base_url, settings.server.session_path),
            max_reconnect_attempts=settings.reconnect.max_attempts,
            reconnect_delay=settings.reconnect.delay,
            viewport=viewport,
            welcome_banner=settings.terminal.welcome_banner,
        )

    # ========== Queries ==========

    @property
    def active_id(self) -> Optional[str]:
        return self._active_id

    @property
    def active(self) -> Optional[TerminalSession]:
        if self._active_id is None:
            return None
        return self._sessions.get(self._active_id)

    def get(self, session_id: str) -> Optional[TerminalSession]:
        return self._sessions.get(session_id)

    def list(self) -> List[SessionSummary]:
        """Ordered summaries of all sessions, in creation order"""
        return [
            SessionSummary(
                id=session.session_id,
                display_name=session.display_name,
                is_active=session.session_id == self._active_id,
                state=session.state,
                reconnect_attempts=session.reconnect_attempts,
            )
            for session in self._sessions.values()
        ]

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    # ========== Lifecycle ==========

    def start(self) -> str:
        """Create the first session if there is none; returns the active id"""
        self._ensure_running()
        if not self._sessions:
            return self.create()
        return self._active_id

    def create(self, name: Optional[str] = None) -> str:
        """
        Create a session, make it active and start connecting.

        Args:
            name: Display name; defaults to "Session N"

        Returns:
            The new session's id

        Note:
            Never fails because of the backend: connection problems are
            handled by the session's reconnect policy.
        """
        self._ensure_running()

        self._counter += 1
        session_id = f"term-{uuid.uuid4().hex}"
        display_name = name or f"Session {self._counter}"

        sink = self._sink_factory(session_id, display_name)
        session = TerminalSession(
            session_id=session_id,
            display_name=display_name,
            url=self.url,
            connector=self._connector,
            clock=self._clock,
            sink=sink,
            max_reconnect_attempts=self._max_reconnect_attempts,
            reconnect_delay=self._reconnect_delay,
            on_state_change=self._on_session_state_change,
        )
        self._sessions[session_id] = session
        self._activate(session_id)

        if self._welcome_banner:
            sink.write(WELCOME_BANNER)

        logger.info(f"[SessionManager] Created session: session_id={session_id}, name={display_name}")
        session.connect()
        self._notify()
        return session_id

    def close(self, session_id: str) -> None:
        """
        Close a session.

        Steps:
        1. Ignore unknown ids
        2. If this is the last session, create and activate a replacement
        3. Dispose the session (suppress retries, cancel timer, drop transport)
        4. Remove it from the registry
        5. If it was still active, activate the first remaining session
        """
        self._ensure_running()

        session = self._sessions.get(session_id)
        if session is None:
            logger.debug(f"[SessionManager] close: unknown session_id={session_id}")
            return

        if len(self._sessions) == 1:
            logger.info("[SessionManager] Closing last session, creating replacement first")
            self.create()

        session.dispose()
        del self._sessions[session_id]
        logger.info(f"[SessionManager] Closed session: session_id={session_id}")

        if self._active_id == session_id:
            self._active_id = None
            self._activate(next(iter(self._sessions)))

        self._notify()

    def shutdown(self) -> None:
        """
        Dispose every session and retire the manager.

        Called on application exit. Any later public operation raises
        ManagerClosedError.
        """
        if self._shut_down:
            return
        logger.info(f"[SessionManager] Shutting down {len(self._sessions)} sessions")
        self._shut_down = True
        for session in list(self._sessions.values()):
            session.dispose()
        self._sessions.clear()
        self._active_id = None
        self._notify()

    # ========== Activation & Geometry ==========

    def switch_active(self, session_id: str) -> None:
        """Make session_id the active session; unknown or already-active ids are ignored"""
        self._ensure_running()
        if session_id not in self._sessions or session_id == self._active_id:
            return
        self._activate(session_id)
        self._notify()

    def fit(self, session_id: Optional[str] = None) -> bool:
        """
        Resize a session's sink to the current viewport.

        Best-effort: skipped while collapsed, and any failure is logged and
        swallowed.

        Returns:
            True if the sink was resized
        """
        self._ensure_running()
        session = self._resolve(session_id)
        if session is None:
            logger.debug(f"[SessionManager] fit: unknown session_id={session_id}")
            return False
        if self.collapsed or self._viewport is None:
            return False
        try:
            cols, rows = self._viewport()
            session.sink.resize(cols, rows)
        except Exception as e:
            logger.debug(f"[SessionManager] Ignoring fit failure for {session.session_id}: {e}")
            return False
        return True

    def on_viewport_resize(self) -> bool:
        """Container was resized"""
        return self.fit()

    def toggle(self) -> bool:
        """Flip the collapsed state; returns the new value"""
        self.set_collapsed(not self.collapsed)
        return self.collapsed

    def set_collapsed(self, collapsed: bool) -> None:
        self._ensure_running()
        if collapsed == self.collapsed:
            return
        self.collapsed = collapsed
        if not collapsed:
            self.fit()

    # ========== Input Routing ==========

    def route_input(self, data: Chunk, session_id: Optional[str] = None) -> bool:
        """
        Send raw input to a session (default: the active one).

        Input for a session that is not OPEN is dropped, not buffered. If
        the session is not already connecting, a reconnect is started.

        Returns:
            True if the input reached the transport
        """
        self._ensure_running()
        session = self._resolve(session_id)
        if session is None:
            logger.debug(f"[SessionManager] route_input: unknown session_id={session_id}")
            return False

        if session.is_open:
            return session.send(data)

        logger.info(
            f"[SessionManager] Input dropped, session not open: "
            f"session_id={session.session_id}, state={session.state.value}"
        )
        if not session.is_connecting:
            session.reconnect()
        return False

    def run_command(self, command: str, session_id: Optional[str] = None) -> bool:
        """Run a command line in a session"""
        return self.route_input(command + LINE_TERMINATOR, session_id)

    def change_directory(self, path: str, session_id: Optional[str] = None) -> bool:
        """Sync a session's working directory to path"""
        self._ensure_running()
        target = self._resolve(session_id)
        if target is None:
            logger.debug(f"[SessionManager] change_directory: unknown session_id={session_id}")
            return False
        escaped = path.replace("\\", "\\\\").replace('"', '\\"')
        sent = self.run_command(f'cd "{escaped}"', target.session_id)
        if target.session_id == self._active_id:
            name = path.replace("\\", "/").rstrip("/").rsplit("/", 1)[-1] or path
            logger.info(f"[SessionManager] Syncing terminal to: {name}")
        return sent

    def clear(self, session_id: Optional[str] = None) -> None:
        """Clear the local screen and, if connected, the remote shell's screen"""
        self._ensure_running()
        session = self._resolve(session_id)
        if session is None:
            logger.debug(f"[SessionManager] clear: unknown session_id={session_id}")
            return
        session.sink.clear()
        if session.is_open:
            session.send(CLEAR_COMMAND + LINE_TERMINATOR)

    # ========== Local Notices ==========

    def write(self, text: str, session_id: Optional[str] = None) -> None:
        """Write text to a session's sink without sending it to the shell"""
        self._ensure_running()
        session = self._resolve(session_id)
        if session is None:
            logger.debug(f"[SessionManager] write: unknown session_id={session_id}")
            return
        session.sink.write(text)

    def write_error(self, message: str, session_id: Optional[str] = None) -> None:
        self.write(f"\r\n\x1b[1;31mError: {message}\x1b[0m\r\n", session_id)

    def write_success(self, message: str, session_id: Optional[str] = None) -> None:
        self.write(f"\r\n\x1b[1;32m{message}\x1b[0m\r\n", session_id)

    def write_warning(self, message: str, session_id: Optional[str] = None) -> None:
        self.write(f"\r\n\x1b[1;33m{message}\x1b[0m\r\n", session_id)

    # ========== Change Notification ==========

    def add_change_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def remove_change_listener(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ========== Internals ==========

    def _ensure_running(self) -> None:
        if self._shut_down:
            raise ManagerClosedError()

    def _resolve(self, session_id: Optional[str]) -> Optional[TerminalSession]:
        if session_id is None:
            session_id = self._active_id
        if session_id is None:
            return None
        return self._sessions.get(session_id)

    def _activate(self, session_id: str) -> None:
        previous = self.active
        if previous is not None:
            previous.sink.set_visible(False)
        self._active_id = session_id
        self._sessions[session_id].sink.set_visible(True)
        logger.debug(f"[SessionManager] Active session: {session_id}")
        self.fit(session_id)

    def _on_session_state_change(self, session: TerminalSession) -> None:
        if session.disposed or session.session_id not in self._sessions:
            return
        self._notify()

    def _notify(self) -> None:
        if not self._listeners:
            return
        summaries = self.list()
        for listener in list(self._listeners):
            try:
                listener(summaries)
            except Exception:
                logger.exception(f"[SessionManager] Change listener {listener!r} failed")
