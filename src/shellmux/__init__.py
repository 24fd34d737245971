"""shellmux - multi-session terminal multiplexer over websocket shells"""

__version__ = "0.1.0"
