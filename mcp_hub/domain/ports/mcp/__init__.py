"""
MCP Port Definitions.

This package defines the abstract interfaces (ports) for MCP functionality,
following hexagonal architecture principles. Implementations are provided
by infrastructure adapters.
"""

from mcp_hub.domain.ports.mcp.client_port import MCPClientPort
from mcp_hub.domain.ports.mcp.server_store_port import ServerDefinitionStorePort
from mcp_hub.domain.ports.mcp.transport_port import (
    CloseHandler,
    ErrorHandler,
    MCPTransportPort,
    MessageHandler,
)

__all__ = [
    "CloseHandler",
    "ErrorHandler",
    "MCPClientPort",
    "MCPTransportPort",
    "MessageHandler",
    "ServerDefinitionStorePort",
]
