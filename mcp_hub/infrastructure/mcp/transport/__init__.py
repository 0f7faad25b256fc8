"""
MCP Transport Layer.

This package provides transport implementations for MCP protocol communication:
- process: child process, newline-delimited JSON-RPC over stdin/stdout
- http-request: single JSON-RPC endpoint
- http-streaming: streamable HTTP with event-stream responses

All transports implement the MCPTransportPort interface from the domain layer.
"""

from mcp_hub.infrastructure.mcp.transport.base import (
    BaseTransport,
    MCPProtocolError,
    MCPTransportClosedError,
    MCPTransportError,
)
from mcp_hub.infrastructure.mcp.transport.factory import TransportFactory, ValidationResult
from mcp_hub.infrastructure.mcp.transport.http import HTTPTransport
from mcp_hub.infrastructure.mcp.transport.stdio import StdioTransport
from mcp_hub.infrastructure.mcp.transport.streamable_http import StreamableHTTPTransport

__all__ = [
    "BaseTransport",
    "MCPProtocolError",
    "MCPTransportClosedError",
    "MCPTransportError",
    "TransportFactory",
    "ValidationResult",
    "StdioTransport",
    "HTTPTransport",
    "StreamableHTTPTransport",
]
