"""Transport abstraction consumed by terminal sessions.

A transport is one persistent duplex connection carrying a single shell's
input and output. Connectors create transports; listeners receive their
notifications. Every notification carries the originating transport so a
listener can tell a live connection from one it has already replaced.
"""

from abc import ABC, abstractmethod
from typing import Protocol, Union

Chunk = Union[str, bytes]


class TransportListener(Protocol):
    """Receiver of transport notifications"""

    def on_open(self, transport: "Transport") -> None:
        ...

    def on_message(self, transport: "Transport", chunk: Chunk) -> None:
        ...

    def on_close(self, transport: "Transport") -> None:
        ...

    def on_error(self, transport: "Transport", error: BaseException) -> None:
        ...


class Transport(ABC):
    """One duplex connection to the shell backend"""

    @abstractmethod
    def send(self, chunk: Chunk) -> None:
        """
        Queue a chunk for delivery.

        Chunks are delivered in the order send() was called.
        """

    @abstractmethod
    def close(self) -> None:
        """
        Tear down the connection.

        Idempotent. After close() returns, the listener receives no further
        notifications from this transport.
        """

    @property
    @abstractmethod
    def closed(self) -> bool:
        ...


class Connector(ABC):
    """Factory for transports"""

    @abstractmethod
    def open(self, url: str, listener: TransportListener) -> Transport:
        """
        Start opening a transport to url.

        Returns immediately; success and failure are reported to listener.

        Raises:
            TransportError: If the attempt cannot even be started
        """
