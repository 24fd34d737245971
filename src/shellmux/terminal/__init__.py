"""Terminal multiplexing module.

This module provides multi-session terminal support over remote shell
connections. It handles session lifecycle, reconnection and input/output
routing.

Components:
- SessionManager: Owner of all sessions and the active-session pointer
- TerminalSession: One shell session and its connection state machine
- RenderSink / ConsoleSink: Presentation-side output targets
"""

from .manager import SessionManager
from .session import TerminalSession
from .sink import ConsoleSink, RenderSink

__all__ = ['SessionManager', 'TerminalSession', 'RenderSink', 'ConsoleSink']
