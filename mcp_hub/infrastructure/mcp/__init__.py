"""
MCP infrastructure.

Transports, the JSON-RPC protocol client and the multi-server tool adapter.
"""

from mcp_hub.infrastructure.mcp.adapter import MultiServerToolAdapter
from mcp_hub.infrastructure.mcp.client import MCPProtocolClient, MCPTool, create_client

__all__ = [
    "MCPProtocolClient",
    "MCPTool",
    "MultiServerToolAdapter",
    "create_client",
]
