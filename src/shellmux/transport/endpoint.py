"""Websocket endpoint derivation"""

from urllib.parse import urlsplit, urlunsplit

from ..exception import ConfigError

DEFAULT_SESSION_PATH = "/terminal/ws/terminal"

_SCHEME_MAP = {
    "http": "ws",
    "https": "wss",
    "ws": "ws",
    "wss": "wss",
}


def build_endpoint(base_url: str, session_path: str = DEFAULT_SESSION_PATH) -> str:
    """Derive the websocket URL for a new terminal session

    The scheme of base_url is switched to its websocket counterpart and the
    session path is appended to whatever path base_url already has. The
    server assigns one shell per connection, so nothing session-specific
    goes into the URL.

    Args:
        base_url: Backend API address, e.g. "https://host:8000/api"
        session_path: Path of the terminal websocket route

    Returns:
        Websocket URL, e.g. "wss://host:8000/api/terminal/ws/terminal"

    Raises:
        ConfigError: If base_url has no host or an unsupported scheme
    """
    parts = urlsplit(base_url.strip())
    scheme = _SCHEME_MAP.get(parts.scheme.lower())
    if scheme is None:
        raise ConfigError(f"Unsupported base URL scheme: {base_url!r}")
    if not parts.netloc:
        raise ConfigError(f"Base URL has no host: {base_url!r}")

    path = parts.path.rstrip("/") + "/" + session_path.lstrip("/")
    return urlunsplit((scheme, parts.netloc, path, parts.query, ""))
