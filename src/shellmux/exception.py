"""Custom exceptions for shellmux"""


class ShellmuxException(Exception):
    """Base exception for all shellmux errors

    All custom exceptions should inherit from this class.
    The CLI catches this and reports the message before aborting.

    Attributes:
        message: Human-readable error message
        code: Error code for programmatic handling
    """

    def __init__(self, message: str, code: str):
        """Initialize shellmux exception

        Args:
            message: Human-readable error message
            code: Error code (e.g., "CONFIG_ERROR", "TRANSPORT_ERROR")
        """
        self.message = message
        self.code = code
        super().__init__(message)


class ConfigError(ShellmuxException):
    """Configuration error

    Examples:
        - config.toml cannot be parsed
        - Invalid base URL scheme
        - Negative reconnect delay
    """

    def __init__(self, message: str):
        super().__init__(message, "CONFIG_ERROR")


class TransportError(ShellmuxException):
    """Transport could not be opened or used

    Raised synchronously by a Connector when a transport cannot even be
    attempted (malformed URL, no running event loop). Failures that happen
    while connecting are reported through the listener instead.
    """

    def __init__(self, message: str):
        super().__init__(message, "TRANSPORT_ERROR")


# ==================== Session Layer Exceptions ====================


class SessionError(ShellmuxException):
    """Base exception for terminal session errors"""

    def __init__(self, message: str, code: str = "SESSION_ERROR"):
        super().__init__(message, code)


class InvalidStateTransitionError(SessionError):
    """A session was asked to move along an edge the state machine forbids

    Examples:
        - CLOSED -> OPEN
        - OPEN -> CONNECTING
    """

    def __init__(self, message: str):
        super().__init__(message, "INVALID_STATE_TRANSITION")


class ManagerClosedError(ShellmuxException):
    """SessionManager was used after shutdown()"""

    def __init__(self, message: str = "SessionManager has been shut down"):
        super().__init__(message, "MANAGER_CLOSED")
