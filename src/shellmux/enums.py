"""Enumeration types for shellmux"""
from enum import Enum


class SessionState(str, Enum):
    """Connection state of a terminal session

    CONNECTING: First transport is being opened after creation
    OPEN: Transport is connected, input is forwarded
    RECONNECTING: Previous transport failed, a retry is scheduled or in flight
    CLOSED: Terminal state, either disposed by the user or out of retries
    """
    CONNECTING = "connecting"
    OPEN = "open"
    RECONNECTING = "reconnecting"
    CLOSED = "closed"
