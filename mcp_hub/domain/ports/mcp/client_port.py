"""
MCPClientPort - Abstract interface for an MCP protocol client.

A client speaks the MCP request/response protocol over one transport
after the initialize handshake has completed.
"""

from abc import abstractmethod
from typing import Any, Protocol, runtime_checkable

from mcp_hub.domain.model.mcp.tool import MCPToolResult


@runtime_checkable
class MCPClientPort(Protocol):
    """Abstract interface for a connected MCP client."""

    @abstractmethod
    async def list_tools(self) -> dict[str, Any]:
        """
        List the tools exposed by the server.

        Returns:
            Mapping of tool name to an invocable tool handle.

        Raises:
            MCPConnectionError: If the transport is lost.
            MCPRequestError: If the server answers with an error.
        """
        ...

    @abstractmethod
    async def call_tool(
        self,
        name: str,
        arguments: dict[str, Any] | None = None,
    ) -> MCPToolResult:
        """
        Invoke a tool on the server.

        Args:
            name: Unprefixed tool name.
            arguments: Tool arguments.

        Returns:
            MCPToolResult with tool execution output.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close the client and its transport. Idempotent."""
        ...
