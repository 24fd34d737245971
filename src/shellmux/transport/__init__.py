"""Transport layer for terminal sessions.

Components:
- Connector / Transport / TransportListener: abstract connection contract
- WebSocketConnector / WebSocketTransport: aiohttp implementation
- build_endpoint: derive the websocket URL from the backend base URL
"""

from .base import Chunk, Connector, Transport, TransportListener
from .endpoint import DEFAULT_SESSION_PATH, build_endpoint
from .websocket import WebSocketConnector, WebSocketTransport

__all__ = [
    'Chunk',
    'Connector',
    'Transport',
    'TransportListener',
    'DEFAULT_SESSION_PATH',
    'build_endpoint',
    'WebSocketConnector',
    'WebSocketTransport',
]
