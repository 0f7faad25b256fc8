"""
MCP domain exceptions.

Exception hierarchy for connecting to tool servers and resolving their tools.

Exception Hierarchy:
    MCPError (base)
    ├── MCPConfigurationError           - Invalid server definition
    ├── MCPConnectionError              - Spawn/handshake/network failure
    │   └── MCPTransportError           - (infrastructure.mcp.transport.base)
    ├── MCPRequestError                 - JSON-RPC error returned by a server
    ├── MCPServerError
    │   ├── MCPServerNotFoundError      - Server definition not found by ID
    │   ├── MCPBuiltInServerError       - Built-in definitions cannot be deleted
    │   └── MCPServerNotConnectedError  - Server not in connected state
    └── MCPToolError
        ├── MCPToolNotFoundError        - Tool not found on server
        └── MCPInvalidToolNameError     - Malformed prefixed tool name
"""

from typing import Any


class MCPError(Exception):
    """Base exception for all MCP-related errors."""

    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error
        self.details = details or {}

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message} (caused by: {self.original_error})"
        return self.message


class MCPConfigurationError(MCPError):
    """Raised when a server definition fails validation."""

    def __init__(
        self,
        errors: list[str],
        server_id: str | None = None,
        message: str | None = None,
    ) -> None:
        self.errors = list(errors)
        self.server_id = server_id
        msg = message or f"Invalid server configuration: {', '.join(self.errors)}"
        super().__init__(msg, details={"server_id": server_id, "errors": self.errors})


class MCPConnectionError(MCPError):
    """Raised when MCP connection or transport fails."""

    def __init__(
        self,
        message: str | None = None,
        endpoint: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        self.endpoint = endpoint
        msg = message or "MCP connection failed"
        if endpoint:
            msg += f" (endpoint: {endpoint})"
        super().__init__(msg, original_error=original_error, details={"endpoint": endpoint})


class MCPRequestError(MCPError):
    """Raised when a server answers a request with a JSON-RPC error object."""

    def __init__(
        self,
        method: str,
        code: int | None = None,
        message: str | None = None,
        data: Any = None,
    ) -> None:
        self.method = method
        self.code = code
        self.data = data
        msg = f"MCP server error on '{method}': {message or 'unknown error'}"
        if code is not None:
            msg += f" (code {code})"
        super().__init__(msg, details={"method": method, "code": code, "data": data})


class MCPServerError(MCPError):
    """Base exception for MCP server errors."""


class MCPServerNotFoundError(MCPServerError):
    """Raised when an MCP server definition cannot be found."""

    def __init__(self, server_id: str, message: str | None = None) -> None:
        self.server_id = server_id
        msg = message or f"MCP server '{server_id}' not found"
        super().__init__(msg, details={"server_id": server_id})


class MCPBuiltInServerError(MCPServerError):
    """Raised when deleting a built-in MCP server definition."""

    def __init__(self, server_id: str, message: str | None = None) -> None:
        self.server_id = server_id
        msg = message or f"Cannot delete built-in MCP server '{server_id}'"
        super().__init__(msg, details={"server_id": server_id})


class MCPServerNotConnectedError(MCPServerError):
    """Raised when attempting operations on a disconnected server."""

    def __init__(self, server_id: str, message: str | None = None) -> None:
        self.server_id = server_id
        msg = message or f"MCP server '{server_id}' is not connected"
        super().__init__(msg, details={"server_id": server_id})


class MCPToolError(MCPError):
    """Base exception for MCP tool resolution errors."""


class MCPToolNotFoundError(MCPToolError):
    """Raised when a tool cannot be found on an MCP server."""

    def __init__(
        self,
        tool_name: str,
        server_id: str | None = None,
        message: str | None = None,
    ) -> None:
        self.tool_name = tool_name
        self.server_id = server_id
        if server_id:
            msg = message or f"Tool '{tool_name}' not found in MCP server '{server_id}'"
        else:
            msg = message or f"Tool '{tool_name}' not found"
        super().__init__(msg, details={"tool_name": tool_name, "server_id": server_id})


class MCPInvalidToolNameError(MCPToolError):
    """Raised when a prefixed tool name cannot be split into server and tool."""

    def __init__(self, prefixed_name: str, message: str | None = None) -> None:
        self.prefixed_name = prefixed_name
        msg = message or (
            f"Invalid prefixed tool name format: {prefixed_name}. "
            "Expected format: {server_id}__{tool_name}"
        )
        super().__init__(msg, details={"prefixed_name": prefixed_name})
