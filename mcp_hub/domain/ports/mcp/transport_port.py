"""
MCPTransportPort - Abstract interface for MCP message transport.

A transport moves JSON-RPC messages between the adapter and one tool
server. Inbound messages, closure and errors are delivered to registered
handlers rather than pulled by the caller.
"""

from abc import abstractmethod
from typing import Any, Callable, Protocol, runtime_checkable

# Handler type aliases
MessageHandler = Callable[[dict[str, Any]], Any]
CloseHandler = Callable[[], Any]
ErrorHandler = Callable[[Exception], Any]


@runtime_checkable
class MCPTransportPort(Protocol):
    """
    Abstract interface for an MCP transport.

    Implementations: child process (newline-delimited JSON over stdio),
    single-endpoint HTTP and streamable HTTP.
    """

    @abstractmethod
    async def start(self) -> None:
        """
        Open the transport.

        Idempotent: a second call while starting or started is a no-op.

        Raises:
            MCPTransportError: If the transport cannot be opened.
        """
        ...

    @abstractmethod
    async def send(self, message: dict[str, Any]) -> None:
        """
        Send one JSON-RPC message.

        Raises:
            MCPTransportError: If the message cannot be delivered.
            MCPTransportClosedError: If the transport is not open.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """
        Close the transport and release its resources.

        Should be idempotent - safe to call multiple times.
        """
        ...

    @abstractmethod
    def on_message(self, handler: MessageHandler) -> None:
        """Register a handler for inbound JSON-RPC messages."""
        ...

    @abstractmethod
    def on_close(self, handler: CloseHandler) -> None:
        """Register a handler invoked once when the transport closes."""
        ...

    @abstractmethod
    def on_error(self, handler: ErrorHandler) -> None:
        """Register a handler for asynchronous transport errors."""
        ...

    @abstractmethod
    def is_ready(self) -> bool:
        """Check if the transport is started and able to send."""
        ...

    @property
    @abstractmethod
    def close_reason(self) -> str | None:
        """Why the transport closed on its own (e.g. process exit code), if known."""
        ...
