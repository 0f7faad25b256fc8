"""
Base transport implementation for MCP.

Provides handler registration, close-once notification and the error types
shared by all transport implementations.
"""

import inspect
import logging
from abc import ABC, abstractmethod
from types import TracebackType
from typing import Any

from mcp_hub.domain.exceptions.mcp import MCPConnectionError
from mcp_hub.domain.model.mcp.server import ServerDefinition
from mcp_hub.domain.ports.mcp.transport_port import CloseHandler, ErrorHandler, MessageHandler

logger = logging.getLogger(__name__)


class BaseTransport(ABC):
    """
    Abstract base class for MCP transport implementations.

    Inbound messages, errors and closure are pushed to registered handlers.
    Handlers may be plain callables or coroutine functions; a failing handler
    is logged and never interrupts dispatch to the others.
    """

    def __init__(self, server: ServerDefinition) -> None:
        """
        Initialize base transport.

        Args:
            server: Definition of the server this transport talks to.
        """
        self._server = server
        self._is_open = False
        self._close_notified = False
        self._close_reason: str | None = None
        self._message_handlers: list[MessageHandler] = []
        self._close_handlers: list[CloseHandler] = []
        self._error_handlers: list[ErrorHandler] = []

    @property
    def server(self) -> ServerDefinition:
        return self._server

    @property
    def server_id(self) -> str:
        return self._server.id

    @property
    def server_name(self) -> str:
        return self._server.name

    @property
    def is_open(self) -> bool:
        """Check if transport is currently open."""
        return self._is_open

    @property
    def close_reason(self) -> str | None:
        """Why the transport closed on its own, when known."""
        return self._close_reason

    def is_ready(self) -> bool:
        """Check if the transport is started and able to send."""
        return self._is_open

    def on_message(self, handler: MessageHandler) -> None:
        self._message_handlers.append(handler)

    def on_close(self, handler: CloseHandler) -> None:
        self._close_handlers.append(handler)

    def on_error(self, handler: ErrorHandler) -> None:
        self._error_handlers.append(handler)

    async def _notify_message(self, message: dict[str, Any]) -> None:
        for handler in list(self._message_handlers):
            try:
                result = handler(message)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(f"[{self.server_id}] Message handler failed: {e}")

    async def _notify_error(self, error: Exception) -> None:
        for handler in list(self._error_handlers):
            try:
                result = handler(error)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(f"[{self.server_id}] Error handler failed: {e}")

    async def _notify_close(self) -> None:
        """Invoke close handlers. Only the first call has any effect."""
        if self._close_notified:
            return
        self._close_notified = True
        for handler in list(self._close_handlers):
            try:
                result = handler()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(f"[{self.server_id}] Close handler failed: {e}")

    @abstractmethod
    async def start(self) -> None:
        """
        Open the transport.

        Raises:
            MCPTransportError: If transport fails to start.
        """
        ...

    @abstractmethod
    async def send(self, message: dict[str, Any]) -> None:
        """
        Send a message over the transport.

        Raises:
            MCPTransportError: If send fails.
            MCPTransportClosedError: If the transport is not open.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """
        Close the transport.

        Should be idempotent.
        """
        ...

    async def __aenter__(self) -> "BaseTransport":
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Async context manager exit."""
        await self.close()


class MCPTransportError(MCPConnectionError):
    """Base exception for transport errors."""

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        super().__init__(message, original_error=original_error)


class MCPTransportClosedError(MCPTransportError):
    """Exception raised when sending on a transport that is not open."""

    pass


class MCPProtocolError(MCPTransportError):
    """Exception raised when a response body cannot be parsed."""

    pass
