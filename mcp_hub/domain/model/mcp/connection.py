"""
MCP Connection Domain Models.

Defines the per-server connection record owned by the adapter, the status
snapshots derived from it, and the adapter's initialization state.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from mcp_hub.domain.model.mcp.server import ServerDefinition

if TYPE_CHECKING:
    from mcp_hub.domain.ports.mcp.client_port import MCPClientPort


class InitializationState(str, Enum):
    """Adapter initialization state."""

    IDLE = "idle"
    INITIALIZING = "initializing"
    READY = "ready"


@dataclass(frozen=True)
class ServerConnection:
    """
    Connection record for one configured server.

    Immutable: the adapter replaces the whole record on every state change,
    so readers never observe a half-updated connection.
    """

    server: ServerDefinition
    client: "MCPClientPort | None" = None
    tools: Mapping[str, Any] = field(default_factory=dict)
    is_connected: bool = False
    last_error: str | None = None

    @classmethod
    def connected(
        cls,
        server: ServerDefinition,
        client: "MCPClientPort",
        tools: Mapping[str, Any],
    ) -> "ServerConnection":
        """Create a connected record."""
        return cls(server=server, client=client, tools=dict(tools), is_connected=True)

    @classmethod
    def failed(cls, server: ServerDefinition, error: str) -> "ServerConnection":
        """Create a failed record carrying a human-readable error."""
        return cls(server=server, client=None, tools={}, is_connected=False, last_error=error)

    @property
    def server_id(self) -> str:
        return self.server.id

    @property
    def tool_count(self) -> int:
        return len(self.tools)

    def to_status(self) -> "ServerStatus":
        """Project into a status snapshot."""
        return ServerStatus(
            is_connected=self.is_connected,
            error=self.last_error,
            tool_count=self.tool_count,
        )


@dataclass(frozen=True)
class ServerStatus:
    """Read-only connection status of one server."""

    is_connected: bool
    error: str | None = None
    tool_count: int = 0

    @classmethod
    def not_found(cls) -> "ServerStatus":
        return cls(is_connected=False, error="Server not found")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "is_connected": self.is_connected,
            "error": self.error,
            "tool_count": self.tool_count,
        }


@dataclass(frozen=True)
class ConnectionTestResult:
    """Outcome of a throwaway connection attempt."""

    success: bool
    error: str | None = None
    tool_count: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        result: dict[str, Any] = {"success": self.success}
        if self.error is not None:
            result["error"] = self.error
        if self.tool_count is not None:
            result["tool_count"] = self.tool_count
        return result
