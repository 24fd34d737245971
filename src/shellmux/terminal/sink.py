"""Render sinks: presentation-side consumers of a session's output.

A sink receives the raw output stream verbatim plus a single transient
status line that the session may overwrite or clear. It never interprets
escape sequences; that is the terminal's job.
"""

import logging
from abc import ABC, abstractmethod
from collections import deque
from typing import Deque, Optional

from rich.console import Console
from rich.text import Text

from ..transport.base import Chunk

logger = logging.getLogger(__name__)

CLEAR_LINE = "\r\x1b[K"


class RenderSink(ABC):
    """Per-session output target owned by the presentation layer"""

    @abstractmethod
    def write(self, chunk: Chunk) -> None:
        """Render a chunk of shell output verbatim"""

    @abstractmethod
    def write_status(self, text: str) -> None:
        """Show a transient status line, replacing any previous one"""

    @abstractmethod
    def clear_status(self) -> None:
        """Remove the transient status line if one is shown"""

    @abstractmethod
    def resize(self, cols: int, rows: int) -> None:
        """Fit the rendering surface to cols x rows"""

    @abstractmethod
    def dispose(self) -> None:
        """Release the rendering surface; no calls follow"""

    def clear(self) -> None:
        """Clear the local screen contents"""

    def set_visible(self, visible: bool) -> None:
        """Called when the session becomes (or stops being) the one on screen"""


class ConsoleSink(RenderSink):
    """
    RenderSink that writes to a rich Console.

    Only one session is on screen at a time. While hidden, output is kept in a
    bounded backlog and replayed when the session is shown again.

    Attributes:
        label: Display name of the owning session
        cols: Last geometry passed to resize(), None before the first fit
        rows: Last geometry passed to resize(), None before the first fit
    """

    def __init__(self, console: Console, label: str, backlog_limit: int = 2000):
        self.console = console
        self.label = label
        self.cols: Optional[int] = None
        self.rows: Optional[int] = None
        self.visible = False

        self._backlog: Deque[str] = deque(maxlen=backlog_limit)
        self._status: Optional[str] = None
        self._disposed = False

    def write(self, chunk: Chunk) -> None:
        if self._disposed:
            return
        text = chunk.decode("utf-8", errors="replace") if isinstance(chunk, bytes) else chunk
        if self.visible:
            self._emit(text)
        else:
            self._backlog.append(text)

    def write_status(self, text: str) -> None:
        if self._disposed:
            return
        if self.visible and self._status is not None:
            self._emit(CLEAR_LINE)
        self._status = text
        if self.visible:
            self._render_status()

    def clear_status(self) -> None:
        if self._status is None:
            return
        self._status = None
        if self.visible and not self._disposed:
            self._emit(CLEAR_LINE)

    def resize(self, cols: int, rows: int) -> None:
        if cols <= 0 or rows <= 0:
            raise ValueError(f"Invalid geometry: {cols}x{rows}")
        self.cols = cols
        self.rows = rows

    def clear(self) -> None:
        self._backlog.clear()
        if self.visible and not self._disposed:
            self.console.clear()

    def set_visible(self, visible: bool) -> None:
        if visible == self.visible:
            return
        self.visible = visible
        if not visible or self._disposed:
            return
        while self._backlog:
            self._emit(self._backlog.popleft())
        if self._status is not None:
            self._render_status()

    def dispose(self) -> None:
        self._disposed = True
        self._backlog.clear()
        self._status = None
        self.visible = False
        logger.debug(f"[ConsoleSink] Disposed: {self.label}")

    def _render_status(self) -> None:
        self.console.print(Text(self._status, style="yellow"), end="")
        self.console.file.flush()

    def _emit(self, text: str) -> None:
        self.console.file.write(text)
        self.console.file.flush()
