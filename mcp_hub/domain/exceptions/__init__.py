"""
Domain exceptions for MCP Hub.

This module provides the hierarchy of exceptions raised while validating
server definitions, connecting to tool servers and resolving their tools.
"""

from mcp_hub.domain.exceptions.mcp import (
    MCPBuiltInServerError,
    MCPConfigurationError,
    MCPConnectionError,
    MCPError,
    MCPInvalidToolNameError,
    MCPRequestError,
    MCPServerError,
    MCPServerNotConnectedError,
    MCPServerNotFoundError,
    MCPToolError,
    MCPToolNotFoundError,
)

__all__ = [
    "MCPError",
    "MCPConfigurationError",
    "MCPConnectionError",
    "MCPRequestError",
    "MCPServerError",
    "MCPServerNotFoundError",
    "MCPBuiltInServerError",
    "MCPServerNotConnectedError",
    "MCPToolError",
    "MCPToolNotFoundError",
    "MCPInvalidToolNameError",
]
